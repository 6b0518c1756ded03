import pytest

from arcana.config.loader import DEFAULT_CONFIG, ConfigError, get_config_value, load_config, merge_dicts


@pytest.mark.unit
def test_load_config_merges_over_defaults(make_config):
    config_path = make_config({"scanning": {"duplicate_policy": "reject"}})

    cfg = load_config(str(config_path))

    assert cfg["scanning"]["duplicate_policy"] == "reject"
    assert cfg["scanning"]["default_genre"] == "Unknown"
    assert cfg["steam"]["request_timeout"] == 30
    assert cfg["logging"]["level"] == "WARNING"


@pytest.mark.unit
def test_load_config_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "does-not-exist.yaml"))


@pytest.mark.unit
def test_load_config_invalid_yaml(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("invalid: [unclosed")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(str(config_path))


@pytest.mark.unit
def test_load_config_non_mapping(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError, match="YAML dictionary"):
        load_config(str(config_path))


@pytest.mark.unit
def test_load_config_empty_file_uses_defaults(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("")

    assert load_config(str(config_path)) == DEFAULT_CONFIG


@pytest.mark.unit
def test_load_config_defaults_to_cwd(tmp_path, monkeypatch, make_config):
    make_config({"steam": {"steam_id": "76561197960287930"}})
    monkeypatch.chdir(tmp_path)

    cfg = load_config()

    assert cfg["steam"]["steam_id"] == "76561197960287930"


@pytest.mark.unit
def test_merge_dicts_is_recursive_and_pure():
    base = {"a": {"b": 1, "c": 2}, "d": 3}

    merged = merge_dicts(base, {"a": {"c": 20}, "e": 5})

    assert merged == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}
    assert base == {"a": {"b": 1, "c": 2}, "d": 3}


@pytest.mark.unit
def test_get_config_value():
    cfg = merge_dicts(DEFAULT_CONFIG, {})

    assert get_config_value(cfg, "scanning.duplicate_policy") == "coalesce"
    assert get_config_value(cfg, "steam.missing", "fallback") == "fallback"
    assert get_config_value(cfg, "scanning.duplicate_policy.deeper") is None


@pytest.mark.unit
def test_load_config_empty_section_keeps_defaults(make_config):
    config_path = make_config()
    with open(config_path, "a") as f:
        f.write("scanning:\n")

    cfg = load_config(str(config_path))

    assert cfg["scanning"] == DEFAULT_CONFIG["scanning"]


@pytest.mark.unit
def test_merge_dicts_none_keeps_nested_defaults():
    merged = merge_dicts({"a": {"b": 1}, "c": 2}, {"a": None, "c": None})

    assert merged == {"a": {"b": 1}, "c": None}
