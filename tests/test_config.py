"""
Tests for config loading, CLI merging and persisted settings.
"""

import pytest
import yaml

from market_melody.audio.tone import Envelope, OscillatorShape
from market_melody.config import (
    ConfigError,
    MelodyConfig,
    Settings,
    config_from_dict,
    load_config,
    system_theme,
)
from market_melody.engine.normalizer import DeltaMode
from market_melody.engine.notes import MappingMode
from market_melody.engine.scheduler import Arbitration
from market_melody.main import build_parser, resolve_config


class TestMelodyConfig:

    def test_defaults(self):
        cfg = MelodyConfig()
        assert cfg.symbol == "BTCUSDT"
        assert cfg.receive_interval_ms == 100
        assert cfg.min_sound_interval == 0.125
        assert cfg.note_duration == 0.15
        assert cfg.note_gain_db == -12.0
        assert cfg.envelope == Envelope(0.005, 0.1, 0.3, 0.1)
        assert cfg.mapping is MappingMode.ZSCORE
        assert cfg.delta_mode is DeltaMode.DIFFERENCE
        assert cfg.arbitration is Arbitration.RANDOM
        assert cfg.reconnect is False

    def test_from_dict(self):
        cfg = config_from_dict({
            "symbol": "ethbtc",
            "shape": "triangle",
            "mapping": "bands",
            "arbitration": "alternate",
            "envelope": {"attack": 0.01, "release": 0.2},
            "reconnect": True,
        })
        assert cfg.symbol == "ETHBTC"
        assert cfg.shape is OscillatorShape.TRIANGLE
        assert cfg.mapping is MappingMode.BANDS
        assert cfg.arbitration is Arbitration.ALTERNATE
        assert cfg.envelope == Envelope(attack=0.01, decay=0.1, sustain=0.3, release=0.2)
        assert cfg.reconnect is True

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="volume"):
            config_from_dict({"volume": 3})

    def test_bad_enum(self):
        with pytest.raises(ConfigError, match="mapping"):
            config_from_dict({"mapping": "loud"})

    def test_bad_envelope(self):
        with pytest.raises(ConfigError):
            config_from_dict({"envelope": {"attack": "fast"}})
        with pytest.raises(ConfigError):
            config_from_dict({"envelope": {"hold": 1.0}})

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "melody.yaml"
        path.write_text(yaml.safe_dump({"symbol": "SOLUSDT", "delta_mode": "raw"}))
        cfg = load_config(str(path))
        assert cfg.symbol == "SOLUSDT"
        assert cfg.delta_mode is DeltaMode.RAW

    def test_load_none_is_defaults(self):
        assert load_config(None) == MelodyConfig()

    def test_load_errors(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.yaml"))

        bad = tmp_path / "bad.yaml"
        bad.write_text("symbol: [unclosed")
        with pytest.raises(ConfigError):
            load_config(str(bad))

        scalar = tmp_path / "scalar.yaml"
        scalar.write_text("just a string")
        with pytest.raises(ConfigError):
            load_config(str(scalar))


class TestCliMerge:

    def test_cli_overrides_file(self, tmp_path):
        path = tmp_path / "melody.yaml"
        path.write_text(yaml.safe_dump({"symbol": "SOLUSDT", "mapping": "bands", "reconnect": True}))
        args = build_parser().parse_args(["adausdt", "--config", str(path), "--arbitration", "alternate"])

        cfg = resolve_config(args)

        assert cfg.symbol == "ADAUSDT"
        assert cfg.mapping is MappingMode.BANDS
        assert cfg.arbitration is Arbitration.ALTERNATE
        # Flag not given: file value survives
        assert cfg.reconnect is True

    def test_no_args(self):
        cfg = resolve_config(build_parser().parse_args([]))
        assert cfg == MelodyConfig()


class TestSettings:

    @pytest.fixture(autouse=True)
    def dark_terminal(self, monkeypatch):
        monkeypatch.delenv("COLORFGBG", raising=False)

    def test_defaults_without_file(self, tmp_path):
        s = Settings(str(tmp_path / "settings.yaml")).load()
        assert s.theme == "dark"

    def test_toggle_persists(self, tmp_path):
        path = tmp_path / "nested" / "settings.yaml"
        s = Settings(str(path))
        assert s.toggle_theme() == "light"
        assert Settings(str(path)).load().theme == "light"
        assert s.toggle_theme() == "dark"
        assert Settings(str(path)).load().theme == "dark"

    def test_broken_file_keeps_default(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("theme: [")
        assert Settings(str(path)).load().theme == "dark"

    def test_unknown_theme_ignored(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("theme: neon\n")
        assert Settings(str(path)).load().theme == "dark"

    def test_light_terminal_default(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COLORFGBG", "0;15")
        s = Settings(str(tmp_path / "settings.yaml")).load()
        assert s.theme == "light"
        assert s.toggle_theme() == "dark"

    def test_saved_theme_beats_terminal(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("theme: dark\n")
        monkeypatch.setenv("COLORFGBG", "0;15")
        assert Settings(str(path)).load().theme == "dark"


class TestSystemTheme:

    def test_unset_is_dark(self):
        assert system_theme({}) == "dark"

    def test_background_colour(self):
        assert system_theme({"COLORFGBG": "15;0"}) == "dark"
        assert system_theme({"COLORFGBG": "0;7"}) == "light"
        assert system_theme({"COLORFGBG": "0;default;15"}) == "light"
        assert system_theme({"COLORFGBG": "garbage"}) == "dark"
