"""Load repl-sessions configuration, usually stored in config.toml"""

import logging
import tomllib
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError

LOG = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "repl-sessions" / "config.toml"
DEFAULT_HISTORY_PATH = Path.home() / ".cache" / "repl-sessions" / "history"
CONFIG_SECTION = "repl-sessions"
IMPLEMENTATIONS_SECTION = "implementations"

# longer spellings accepted in config files
KEY_ALIASES = {
    "auto-jump-to-first-error-location": "auto_jump_to_first_error",
    "auto-display-embedded-images": "auto_display_images",
    "enable-session-autocomplete-on-start": "enable_autocomplete_on_start",
}


class AnsiTreatment(str, Enum):
    NONE = "none"
    INTERPRET = "interpret"
    STRIP = "strip"


@dataclass(frozen=True)
class ImplementationOverride:
    binary: Optional[str] = None
    args: Optional[tuple] = None
    prompt: Optional[str] = None

    def __post_init__(self):
        # lists are not hashable
        if self.args is not None:
            object.__setattr__(self, "args", tuple(self.args))


@dataclass
class Config:
    always_display_input_after: bool = False
    long_input_line_threshold: int = 6
    jump_to_panel_on_error: bool = True
    show_panel_on_error: bool = True
    auto_jump_to_first_error: bool = False
    auto_display_images: bool = True
    ansi_treatment: AnsiTreatment = AnsiTreatment.NONE
    history_file_path: Path = DEFAULT_HISTORY_PATH
    history_max_size: int = 500
    enable_autocomplete_on_start: bool = False
    handshake_timeout: float = 10.0
    default_implementation: Optional[str] = None
    implementations: dict = field(default_factory=dict)

    def __post_init__(self):
        self.history_file_path = Path(self.history_file_path).expanduser()
        try:
            self.ansi_treatment = AnsiTreatment(self.ansi_treatment)
        except ValueError:
            raise ConfigError(
                f"Bad ansi-treatment: {self.ansi_treatment}",
                f"Supported values: {[t.value for t in AnsiTreatment]}",
            )
        if self.long_input_line_threshold < 0:
            raise ConfigError(
                "long-input-line-threshold cannot be negative",
                "Use 0 to always display the input after the result",
            )

    def override_for(self, identity: str) -> ImplementationOverride:
        return self.implementations.get(identity, ImplementationOverride())

    def history_path_for(self, identity: str) -> Path:
        """History is kept per implementation, next to the configured path."""
        path = self.history_file_path
        return path.with_name(f"{path.name}.{identity}")


def _field_names():
    return {f.name for f in fields(Config)} - {"implementations"}


def load_config(path: Optional[Path] = None) -> Config:
    """Load the configuration file, falling back to defaults.

    An explicitly requested file must exist; the default location is
    optional.
    """
    config_file = Path(path) if path else DEFAULT_CONFIG_PATH

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        if path:
            raise ConfigError(
                f"{config_file} not found",
                "Create it, or drop --config to use the defaults.",
            )
        LOG.debug("No config at %s, using defaults", config_file)
        return Config()
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Could not parse {config_file}: {e}", "Fix the TOML syntax.")

    LOG.info("Loaded config from %s", config_file)
    return config_from_dict(data, source=config_file)


def config_from_dict(data: dict, source="<dict>") -> Config:
    options = {}
    known = _field_names()
    for key, value in data.get(CONFIG_SECTION, {}).items():
        name = KEY_ALIASES.get(key) or key.replace("-", "_")
        if name not in known:
            raise ConfigError(
                f"Unknown option `{key}' in {source}",
                f"Known options: {sorted(k.replace('_', '-') for k in known)}",
            )
        options[name] = value

    overrides = {}
    for identity, table in data.get(IMPLEMENTATIONS_SECTION, {}).items():
        try:
            overrides[identity] = ImplementationOverride(**table)
        except TypeError:
            raise ConfigError(
                f"Bad [{IMPLEMENTATIONS_SECTION}.{identity}] table in {source}",
                "Only binary, args and prompt can be set per implementation.",
            )

    return Config(implementations=overrides, **options)
