"""
Tests for configuration management
"""

import json

import pytest

from dicehouse.config import Config, ConfigError, _env_int


@pytest.fixture
def cfg():
    return Config(validate=False)


class TestConfigDefaults:
    """Tests for built-in values"""

    def test_game_rules(self, cfg):
        assert cfg.get("game_rules", "min_roll") == 2
        assert cfg.get("game_rules", "max_roll") == 96
        assert "outcome_range" not in cfg.GAME_RULES

    def test_program_seeds(self, cfg):
        assert cfg.get("program", "vault_seed") == b"vault"
        assert cfg.get("program", "bet_seed") == b"bet"
        assert cfg.get("program", "envelope_index") == 0

    def test_ledger_constants(self, cfg):
        assert cfg.get("ledger", "lamports_per_byte_year") == 3480
        assert cfg.get("ledger", "exemption_threshold_years") == 2

    def test_missing_key_default(self, cfg):
        assert cfg.get("game_rules", "nope", 5) == 5
        assert cfg.get("nope", "nope") is None

    def test_defaults_validate(self, cfg):
        cfg.validate()


class TestConfigOverrides:
    """Tests for set/reset"""

    def test_set_overrides_section(self, cfg):
        cfg.set("game_rules", "max_roll", 90)
        assert cfg.get("game_rules", "max_roll") == 90
        assert cfg.GAME_RULES["max_roll"] == 96

    def test_reset(self, cfg):
        cfg.set("financial", "min_bet", 1)
        cfg.reset()
        assert cfg.get("financial", "min_bet") == cfg.FINANCIAL["min_bet"]

    def test_validate_rejects_bad_rules(self, cfg):
        cfg.set("game_rules", "max_roll", 100)
        with pytest.raises(ConfigError):
            cfg.validate()

    def test_validate_rejects_bad_program_id(self, cfg):
        cfg.set("program", "program_id", "not-base58-0OIl")
        with pytest.raises(ConfigError):
            cfg.validate()


class TestConfigPersistence:
    """Tests for JSON load/save"""

    def test_save_and_load(self, cfg, tmp_path):
        cfg.set("program", "vault_seed", b"treasury")
        cfg.set("game_rules", "refund_timeout_slots", 50)
        path = tmp_path / "config.json"
        cfg.save_to_file(path)

        loaded = Config(validate=False)
        loaded.load_from_file(path)

        assert loaded.get("program", "vault_seed") == b"treasury"
        assert loaded.get("game_rules", "refund_timeout_slots") == 50

    def test_load_missing_file_is_noop(self, cfg, tmp_path):
        cfg.load_from_file(tmp_path / "absent.json")
        assert cfg.get("game_rules", "max_roll") == 96

    def test_load_invalid_json(self, cfg, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            cfg.load_from_file(path)

    def test_to_dict_serializes_bytes(self, cfg):
        data = cfg.to_dict()
        assert data["program"]["vault_seed"] == {"__bytes__": b"vault".hex()}
        json.dumps(data)


class TestEnvInt:
    def test_parses(self, monkeypatch):
        monkeypatch.setenv("DICE_TEST_INT", "42")
        assert _env_int("DICE_TEST_INT", 1) == 42

    def test_clamps(self, monkeypatch):
        monkeypatch.setenv("DICE_TEST_INT", "0")
        assert _env_int("DICE_TEST_INT", 5, floor=1) == 1

    def test_invalid_falls_back(self, monkeypatch):
        monkeypatch.setenv("DICE_TEST_INT", "abc")
        assert _env_int("DICE_TEST_INT", 7) == 7

    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("DICE_TEST_INT", raising=False)
        assert _env_int("DICE_TEST_INT", 9) == 9


class TestConfigSection:
    def test_section_merges_overrides(self, cfg):
        cfg.set("financial", "min_bet", 500)
        values = cfg.section("financial")
        assert values["min_bet"] == 500
        assert values["lamports_per_sol"] == 1_000_000_000

    def test_load_ignores_unknown_sections(self, cfg, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"game_rules": {"max_roll": 80}, "files": {"log_dir": "/x"}}))
        cfg.load_from_file(path)
        assert cfg.get("game_rules", "max_roll") == 80
        assert str(cfg.get("files", "log_dir")) != "/x"

    def test_load_rejects_non_object(self, cfg, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            cfg.load_from_file(path)
