import json
from pathlib import Path

from famtree_py.config import load_config, Config, _load_json_file
from famtree_py.templating import TEMPLATES_DIR


def test_defaults():
    cfg = Config()
    assert cfg.data_path == Path("data") / "family-data.json"
    assert cfg.settings_path == Path("data") / "settings.json"
    assert cfg.templates_dir == TEMPLATES_DIR
    assert cfg.max_depth == 10
    assert cfg.seed is True


def test_load_config_from_file(tmp_path, monkeypatch):
    cfgfile = tmp_path / "cfg.json"
    data = {
        "data_dir": "mydata",
        "data_file": "tree.json",
        "templates_dir": "mytpl",
        "log_level": "debug",
        "max_depth": 4,
        "seed": False,
    }
    cfgfile.write_text(json.dumps(data))
    monkeypatch.setenv("FAMTREE_DATA_DIR", "ignored")
    cfg = load_config(str(cfgfile))
    assert cfg.data_dir == Path("mydata")
    assert cfg.data_path == Path("mydata") / "tree.json"
    assert cfg.templates_dir == Path("mytpl")
    assert cfg.log_level == "DEBUG"
    assert cfg.max_depth == 4
    assert cfg.seed is False


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv("FAMTREE_CONFIG", raising=False)
    monkeypatch.setenv("FAMTREE_DATA_DIR", "envdata")
    monkeypatch.setenv("FAMTREE_TEMPLATES_DIR", "envtpl")
    monkeypatch.setenv("FAMTREE_MAX_DEPTH", "3")
    monkeypatch.setenv("FAMTREE_SEED", "no")
    cfg = load_config(None)
    assert cfg.data_dir == Path("envdata")
    assert cfg.templates_dir == Path("envtpl")
    assert cfg.max_depth == 3
    assert cfg.seed is False


def test_env_config_file_then_env(tmp_path, monkeypatch):
    cfgfile = tmp_path / "cfg.json"
    cfgfile.write_text(json.dumps({"data_dir": "filedata", "data_file": "f.json"}))
    monkeypatch.setenv("FAMTREE_CONFIG", str(cfgfile))
    monkeypatch.setenv("FAMTREE_DATA_DIR", "envdata")
    cfg = load_config()
    assert cfg.data_dir == Path("envdata")
    assert cfg.data_file == "f.json"


def test_bad_max_depth_keeps_default(monkeypatch):
    monkeypatch.delenv("FAMTREE_CONFIG", raising=False)
    monkeypatch.setenv("FAMTREE_MAX_DEPTH", "deep")
    assert load_config().max_depth == 10


def test_unreadable_config_file(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{oops")
    assert _load_json_file(bad) is None
    assert _load_json_file(tmp_path / "missing.json") is None
    cfg = load_config(str(bad))
    assert cfg.data_file == "family-data.json"
