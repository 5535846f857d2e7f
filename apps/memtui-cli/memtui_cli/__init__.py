"""memtui terminal application: app core, widgets, front end and CLI."""

__version__ = "0.1.0"
