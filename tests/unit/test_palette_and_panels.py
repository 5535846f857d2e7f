from memtui_core import ServerStats

from memtui_cli.messages import (
    ActionMsg,
    CloseOverlayMsg,
    CommandCancelMsg,
    CommandExecuteMsg,
    KeyMsg,
    PaletteCommand,
)
from memtui_cli.palette import CommandPalette, default_commands, fuzzy_match, rank_commands
from memtui_cli.panels import BINDINGS, CATEGORIES, HelpPanel, StatsPanel


def k(name: str) -> KeyMsg:
    return KeyMsg(name, name if len(name) == 1 else "")


def text_of(fragments) -> str:
    return "".join(t for _s, t in fragments)


# ---------- fuzzy matching ----------
def test_fuzzy_substring_scores():
    assert fuzzy_match("", "anything") == (True, 0)
    assert fuzzy_match("ref", "Refresh keys") == (True, 150)
    assert fuzzy_match("Quit", "Quit") == (True, 210)
    assert fuzzy_match("keys", "Refresh keys") == (True, 135)
    assert fuzzy_match("resh", "Refresh keys") == (True, 110)


def test_fuzzy_subsequence_scores():
    # r: 10 + boundary 15 + adjacency 5; k: 10 + boundary 15
    assert fuzzy_match("rk", "Refresh keys") == (True, 55)
    assert fuzzy_match("zz", "Quit") == (False, 0)
    assert fuzzy_match("tq", "Quit") == (False, 0)


def test_rank_commands_orders_by_score_and_keeps_ties_stable():
    cmds = default_commands()
    assert rank_commands(cmds, "") == cmds
    ranked = rank_commands(cmds, "del")
    assert ranked[0].name == "Delete key"
    assert all(c.name != "Quit" for c in ranked)

    a = PaletteCommand("Alpha one", "x")
    b = PaletteCommand("Alpha two", "x")
    assert rank_commands([a, b], "alpha") == [a, b]


def test_default_commands_dispatch_actions():
    by_name = {c.name: c for c in default_commands()}
    assert len(by_name) == 10
    assert by_name["Quit"].action() == ActionMsg("quit")
    assert by_name["Toggle theme"].action() == ActionMsg("theme")
    assert by_name["Copy value"].shortcut == "c"


# ---------- palette widget ----------
def test_palette_filters_and_executes():
    p = CommandPalette()
    for ch in "quit":
        p.update(KeyMsg(ch, ch))
    assert p.input.value == "quit"
    assert p.filtered[0].name == "Quit"
    msg = p.update(k("enter"))
    assert isinstance(msg, CommandExecuteMsg)
    assert msg.command.action() == ActionMsg("quit")


def test_palette_navigation_wraps_and_jk_only_with_empty_query():
    p = CommandPalette()
    p.update(k("up"))
    assert p.selected == len(p.filtered) - 1
    p.update(k("down"))
    assert p.selected == 0
    p.update(k("j"))
    assert p.selected == 1
    assert p.input.value == ""
    p.update(k("k"))
    assert p.selected == 0

    p.update(KeyMsg("s", "s"))
    p.update(k("j"))
    assert p.input.value == "sj"
    assert p.selected == 0


def test_palette_cancel_reset_and_empty_results():
    p = CommandPalette()
    for ch in "zzzz":
        p.update(KeyMsg(ch, ch))
    assert p.filtered == []
    assert p.update(k("enter")) is None
    assert "No matching commands" in text_of(p.render())
    assert p.update(k("esc")) == CommandCancelMsg()
    p.reset()
    assert p.input.value == ""
    assert len(p.filtered) == 10


def test_palette_render_caps_visible_items():
    cmds = [PaletteCommand(f"Command {i}", f"does {i}") for i in range(12)]
    p = CommandPalette(cmds)
    out = text_of(p.render())
    assert out.startswith("Command Palette")
    assert "Command 9" in out
    assert "Command 10" not in out
    assert "... and 2 more" in out
    assert "Enter: execute  Esc: cancel  Up/Down: navigate" in out


# ---------- help / stats ----------
def test_help_panel_lists_every_category_and_closes():
    panel = HelpPanel()
    out = text_of(panel.render())
    assert out.startswith("Keybindings Help")
    for cat in CATEGORIES:
        assert cat in out
    assert all(b.action in out for b in BINDINGS)
    assert out.endswith("Press ? or Esc to close")
    for key in ("?", "esc", "q"):
        assert panel.update(k(key)) == CloseOverlayMsg()
    assert panel.update(k("j")) is None


def test_stats_panel_lifecycle():
    panel = StatsPanel()
    assert panel.loading
    assert "Loading statistics..." in text_of(panel.render())

    panel.set_stats(
        ServerStats.from_map(
            {"version": "1.6.21", "uptime": "90061", "get_hits": "9", "get_misses": "1",
             "bytes": "1048576", "limit_maxbytes": "67108864", "evictions": "5000"}
        )
    )
    out = text_of(panel.render())
    for section in ("Server Info", "Connections", "Items", "Memory", "Performance", "Network I/O"):
        assert section in out
    assert "1.6.21" in out
    assert "1d 1h 1m 1s" in out
    assert "90.00%" in out
    assert "1.00 MB" in out
    styles = dict((t, s) for s, t in panel.render())
    assert styles["5000"] == "class:stats.bad"

    assert panel.update(k("r")) == ActionMsg("stats")
    assert panel.loading

    panel.set_error("failed to load stats: boom")
    out = text_of(panel.render())
    assert "failed to load stats: boom" in out
    assert "Press 'r' to retry" in out
    for key in ("s", "q", "esc"):
        assert panel.update(k(key)) == CloseOverlayMsg()


def test_prefix_match_outranks_interior_match():
    interior = PaletteCommand("Autoload", "Same description")
    prefix = PaletteCommand("Loader", "Same description")
    assert rank_commands([interior, prefix], "load") == [prefix, interior]
    assert fuzzy_match("load", "Loader")[1] > fuzzy_match("load", "Autoload")[1]
