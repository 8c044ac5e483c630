import tomllib

from studyclock.tracker.controllers import CONFIG_NAME, AppConfig, ConfigManager


def test_to_toml_roundtrip():
    cfg = AppConfig(db_path="study.db", top_chapters_limit=3, log_level="DEBUG")
    parsed = AppConfig.from_toml(tomllib.loads(cfg.to_toml()))
    assert parsed == cfg


def test_from_toml_falls_back_on_bad_values():
    parsed = AppConfig.from_toml(
        {"db_path": "", "top_chapters_limit": "lots", "recent_sessions_limit": 0, "log_level": "loud"}
    )
    assert parsed.db_path == "data.db"
    assert parsed.top_chapters_limit == 5
    assert parsed.recent_sessions_limit == 1
    assert parsed.log_level == "INFO"


def test_config_manager_writes_defaults(tmp_path):
    manager = ConfigManager(tmp_path)
    assert (tmp_path / CONFIG_NAME).exists()
    assert manager.config == AppConfig()
    assert manager.resolve("data.db") == tmp_path / "data.db"
    assert manager.resolve(str(tmp_path / "elsewhere.db")) == tmp_path / "elsewhere.db"


def test_config_manager_reads_user_file(tmp_path):
    (tmp_path / CONFIG_NAME).write_text('export_path = "out.xlsx"\nrecent_sessions_limit = 7\n', encoding="utf-8")
    config = ConfigManager(tmp_path).config
    assert config.export_path == "out.xlsx"
    assert config.recent_sessions_limit == 7
    assert config.chart_dir == "charts"


def test_invalid_config_uses_defaults(tmp_path):
    (tmp_path / CONFIG_NAME).write_text("this is = = not toml", encoding="utf-8")
    assert ConfigManager(tmp_path).config == AppConfig()
