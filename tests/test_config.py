from trait_xp.core.config import load_config


def test_defaults_without_files(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("TRAIT_XP_DATABASE", raising=False)
    monkeypatch.delenv("TRAIT_XP_PORT", raising=False)
    config = load_config(tmp_path)
    assert config.scoring.xp_per_token == 10
    assert config.storage.database == "data/trait_xp.db"


def test_local_overrides_default_and_env_wins(tmp_path, monkeypatch) -> None:
    (tmp_path / "default.yaml").write_text(
        "web:\n  port: 9000\n  host: 127.0.0.1\nscoring:\n  xp_per_token: 10\n"
    )
    (tmp_path / "local.yaml").write_text("web:\n  port: 9100\n")
    monkeypatch.setenv("TRAIT_XP_DATABASE", str(tmp_path / "x.db"))
    monkeypatch.delenv("TRAIT_XP_PORT", raising=False)

    config = load_config(tmp_path)
    assert config.web.port == 9100
    assert config.web.host == "127.0.0.1"
    assert config.storage.database == str(tmp_path / "x.db")

    monkeypatch.setenv("TRAIT_XP_PORT", "9200")
    assert load_config(tmp_path).web.port == 9200


def test_repo_default_config_loads(monkeypatch) -> None:
    from pathlib import Path

    monkeypatch.delenv("TRAIT_XP_DATABASE", raising=False)
    monkeypatch.delenv("TRAIT_XP_PORT", raising=False)
    config = load_config(Path(__file__).resolve().parent.parent / "config")
    assert config.scoring.mint_source_batch == "task_complete"
    assert config.web.port == 8890
    assert set(config.web.model_dump()) == {"host", "port"}
