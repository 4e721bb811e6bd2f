"""
Configuration and persisted user settings.

Config comes from defaults, then an optional YAML file, then CLI flags.
Settings (the theme) are user preferences rewritten while the app runs.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .audio.tone import Envelope, OscillatorShape
from .catalog import DEFAULT_SYMBOL
from .engine.normalizer import DeltaMode
from .engine.notes import MappingMode
from .engine.scheduler import MIN_TIME_BETWEEN_SOUNDS, NOTE_DURATION, NOTE_GAIN_DB, Arbitration
from .types import MelodyError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = os.path.join("~", ".config", "market-melody", "settings.yaml")
THEMES = ("dark", "light")


def system_theme(environ=None) -> str:
    """
    Preferred theme when none is saved.

    Terminals that export COLORFGBG ("fg;bg", e.g. "0;15") report their
    background colour; ANSI 7 and 9-15 are light backgrounds.
    """
    environ = os.environ if environ is None else environ
    value = environ.get("COLORFGBG", "")
    bg = value.rsplit(";", 1)[-1]
    if bg.isdigit() and (int(bg) == 7 or 9 <= int(bg) <= 15):
        return "light"
    return "dark"


class ConfigError(MelodyError):
    """Invalid configuration file or value."""


_ENUMS = {
    "shape": OscillatorShape,
    "mapping": MappingMode,
    "delta_mode": DeltaMode,
    "arbitration": Arbitration,
}


@dataclass
class MelodyConfig:
    symbol: str = DEFAULT_SYMBOL
    receive_interval_ms: int = 100
    min_sound_interval: float = MIN_TIME_BETWEEN_SOUNDS
    note_duration: float = NOTE_DURATION
    note_gain_db: float = NOTE_GAIN_DB
    base_volume_db: float = -6.0
    envelope: Envelope = field(default_factory=Envelope)
    shape: OscillatorShape = OscillatorShape.SINE
    mapping: MappingMode = MappingMode.ZSCORE
    delta_mode: DeltaMode = DeltaMode.DIFFERENCE
    arbitration: Arbitration = Arbitration.RANDOM
    reconnect: bool = False
    reconnect_delay: float = 2.0
    silent: bool = False
    log_level: str = "INFO"
    log_file: str | None = "market_melody.log"
    settings_path: str = DEFAULT_SETTINGS_PATH

    def replace(self, **overrides: Any) -> MelodyConfig:
        """Copy with non-None overrides applied."""
        return dataclasses.replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _coerce(key: str, value: Any) -> Any:
    if key in _ENUMS:
        try:
            return _ENUMS[key](value)
        except ValueError:
            choices = ", ".join(m.value for m in _ENUMS[key])
            raise ConfigError(f"{key}: {value!r} is not one of {choices}") from None
    if key == "envelope":
        if not isinstance(value, dict):
            raise ConfigError("envelope: expected a mapping of attack/decay/sustain/release")
        try:
            return Envelope(**{k: float(v) for k, v in value.items()})
        except (TypeError, ValueError) as e:
            raise ConfigError(f"envelope: {e}") from None
    if key == "symbol":
        return str(value).upper()
    return value


def config_from_dict(data: dict[str, Any], base: MelodyConfig | None = None) -> MelodyConfig:
    """Build a config from a parsed YAML mapping. Unknown keys are an error."""
    base = base or MelodyConfig()
    known = {f.name for f in dataclasses.fields(MelodyConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    return dataclasses.replace(base, **{k: _coerce(k, v) for k, v in data.items()})


def load_config(path: str | None) -> MelodyConfig:
    """Load config from a YAML file; defaults when path is None."""
    if path is None:
        return MelodyConfig()
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return config_from_dict(data)


class Settings:
    """Persisted user preferences (currently just the theme)."""

    def __init__(self, path: str = DEFAULT_SETTINGS_PATH) -> None:
        self.path = Path(path).expanduser()
        self.theme = system_theme()

    def load(self) -> Settings:
        """Read settings if present; a missing or broken file keeps the system theme."""
        if not self.path.exists():
            return self
        try:
            data = yaml.safe_load(self.path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable settings %s: %s", self.path, e)
            return self
        theme = data.get("theme") if isinstance(data, dict) else None
        if theme in THEMES:
            self.theme = theme
        return self

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump({"theme": self.theme}))

    def toggle_theme(self) -> str:
        """Flip dark/light and persist."""
        self.theme = "light" if self.theme == "dark" else "dark"
        self.save()
        return self.theme
