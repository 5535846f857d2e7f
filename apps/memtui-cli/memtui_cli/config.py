"""User configuration and saved servers.

Both files live in the memtui config directory (override with MEMTUI_HOME)
and are plain YAML validated through pydantic models.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from memtui_core.errors import ConnectError
from memtui_core.wire import parse_address

logger = logging.getLogger(__name__)

yaml = YAML()
yaml.default_flow_style = False

APP_NAME = "memtui"
CONFIG_FILE = "config.yaml"
SERVERS_FILE = "servers.yaml"
LOG_FILE = "memtui.log"


class ConfigError(Exception):
    """Configuration could not be read, parsed or validated."""


# ---------- models ----------
class Timeouts(BaseModel):
    connection: float = Field(default=10.0, gt=0, description="Connect/probe timeout (s)")
    key_enumeration: float = Field(default=30.0, gt=0, description="METADUMP deadline (s)")
    operation: float = Field(default=10.0, gt=0, description="Per-operation socket timeout (s)")


class ConnectionConfig(BaseModel):
    default_address: str = "localhost:11211"
    timeouts: Timeouts = Field(default_factory=Timeouts)


class LayoutConfig(BaseModel):
    keylist_width_percent: int = Field(default=30, ge=10, le=90)
    content_padding: int = Field(default=4, ge=0, le=20)


class UIConfig(BaseModel):
    theme: Literal["dark", "light"] = "dark"
    key_delimiter: str = ":"
    default_view_mode: Literal["auto", "json", "hex", "text"] = "auto"


class Keybindings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quit: str = "q"
    refresh: str = "r"
    filter: str = "/"
    delete: str = "d"
    edit: str = "e"
    new: str = "n"
    help: str = "?"
    commands: str = "ctrl+p"
    # "copy" would shadow BaseModel.copy
    copy_value: str = Field("c", alias="copy")
    stats: str = "s"

    def by_key(self) -> dict[str, str]:
        """Reverse map: key name -> action name."""
        return {key: action for action, key in self.model_dump(by_alias=True).items() if key}


class Config(BaseModel):
    model_config = ConfigDict(extra="ignore")

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    keybindings: Keybindings = Field(default_factory=Keybindings)


class ServerEntry(BaseModel):
    name: str
    address: str
    default: bool = False

    @field_validator("name", "address")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class ServersConfig(BaseModel):
    servers: list[ServerEntry] = Field(default_factory=list)
    last_used: str = ""


# ---------- locations ----------
def config_dir() -> Path:
    """Per-user config directory (override with MEMTUI_HOME)."""
    env = os.environ.get("MEMTUI_HOME")
    if env:
        return Path(env).expanduser().resolve()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser() / APP_NAME
    return Path.home() / ".config" / APP_NAME


def config_path() -> Path:
    return config_dir() / CONFIG_FILE


def servers_path() -> Path:
    return config_dir() / SERVERS_FILE


def log_path() -> Path:
    return config_dir() / LOG_FILE


# ---------- yaml helpers ----------
def _read_yaml(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.load(f)
    except (OSError, YAMLError) as e:
        raise ConfigError(f"failed to read {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return data


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        yaml.dump(data, f)
    tmp.replace(path)


def _plain(data: Any) -> Any:
    # ruamel round-trip types -> builtins, so pydantic sees plain values
    if isinstance(data, dict):
        return {str(k): _plain(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_plain(v) for v in data]
    return data


# ---------- config ----------
def load_config(path: Path | None = None) -> Config:
    path = path or config_path()
    data = _read_yaml(path)
    if data is None:
        logger.info(f"No config at {path}; using defaults")
        return Config()
    try:
        return Config.model_validate(_plain(data))
    except ValidationError as e:
        raise ConfigError(f"invalid config {path}: {e}") from e


def save_config(cfg: Config, path: Path | None = None) -> None:
    _write_yaml(path or config_path(), cfg.model_dump(by_alias=True))


# ---------- saved servers ----------
def default_servers() -> ServersConfig:
    return ServersConfig(servers=[ServerEntry(name="localhost", address="localhost:11211", default=True)])


def load_servers() -> ServersConfig:
    data = _read_yaml(servers_path())
    if data is None:
        return default_servers()
    try:
        return ServersConfig.model_validate(_plain(data))
    except ValidationError as e:
        raise ConfigError(f"invalid servers file {servers_path()}: {e}") from e


def save_servers(cfg: ServersConfig) -> None:
    _write_yaml(servers_path(), cfg.model_dump())


def _check_address(address: str) -> None:
    try:
        parse_address(address)
    except ConnectError as e:
        raise ConfigError(f"invalid address format: {e}") from e


def add_server(name: str, address: str) -> ServerEntry:
    if not name:
        raise ConfigError("server name cannot be empty")
    if not address:
        raise ConfigError("server address cannot be empty")
    _check_address(address)
    cfg = load_servers()
    if any(s.name == name for s in cfg.servers):
        raise ConfigError(f"server with name {name!r} already exists")
    entry = ServerEntry(name=name, address=address, default=not cfg.servers)
    cfg.servers.append(entry)
    save_servers(cfg)
    return entry


def remove_server(name: str) -> None:
    cfg = load_servers()
    if not any(s.name == name for s in cfg.servers):
        raise ConfigError(f"server {name!r} not found")
    if len(cfg.servers) <= 1:
        raise ConfigError("cannot remove the last server")
    was_default = any(s.name == name and s.default for s in cfg.servers)
    cfg.servers = [s for s in cfg.servers if s.name != name]
    if was_default:
        cfg.servers[0].default = True
    if cfg.last_used == name:
        cfg.last_used = cfg.servers[0].name
    save_servers(cfg)


def set_default(name: str) -> None:
    cfg = load_servers()
    if not any(s.name == name for s in cfg.servers):
        raise ConfigError(f"server {name!r} not found")
    for s in cfg.servers:
        s.default = s.name == name
    save_servers(cfg)


def get_server(name: str) -> ServerEntry:
    for s in load_servers().servers:
        if s.name == name:
            return s
    raise ConfigError(f"server {name!r} not found")


def get_default() -> ServerEntry | None:
    servers = load_servers().servers
    if not servers:
        return None
    for s in servers:
        if s.default:
            return s
    return servers[0]


def resolve_address(cfg: Config, addr: str | None = None, server: str | None = None) -> str:
    """--addr, then --server NAME, then the default saved server, then the config default."""
    if addr:
        return addr
    if server:
        return get_server(server).address
    if servers_path().exists():
        entry = get_default()
        if entry is not None:
            return entry.address
    return cfg.connection.default_address
