import pytest

from opencode_client.config import (
    CONFIG_DIR,
    ClientOptions,
    load_options,
    save_default_options,
    save_options,
)


def test_config_dir_default():
    assert CONFIG_DIR.name == "opencode-client"
    assert "config" in str(CONFIG_DIR).lower()


def test_defaults():
    options = ClientOptions()
    assert options.base_url == "http://localhost:4096"
    assert options.timeout == 300.0
    assert options.default_provider_id == "anthropic"
    assert options.default_model_id == "claude-3-5-sonnet-20241022"
    assert options.throw_on_error is True


def test_load_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENCODE_BASE_URL", raising=False)
    monkeypatch.delenv("OPENCODE_TIMEOUT", raising=False)
    assert load_options(tmp_path / "missing.toml") == ClientOptions()


def test_load_from_file(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENCODE_BASE_URL", raising=False)
    monkeypatch.delenv("OPENCODE_TIMEOUT", raising=False)
    config_file = tmp_path / "config.toml"
    config_file.write_text("""
[client]
base_url = "http://remote:9000"
timeout = 12
default_model_id = "gpt-4o"
throw_on_error = false
""")
    options = load_options(config_file)
    assert options.base_url == "http://remote:9000"
    assert options.timeout == 12.0
    assert options.default_provider_id == "anthropic"
    assert options.default_model_id == "gpt-4o"
    assert options.throw_on_error is False


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENCODE_BASE_URL", "http://env:1")
    monkeypatch.setenv("OPENCODE_TIMEOUT", "7.5")
    options = load_options(tmp_path / "missing.toml")
    assert options.base_url == "http://env:1"
    assert options.timeout == 7.5


def test_save_round_trip(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENCODE_BASE_URL", raising=False)
    monkeypatch.delenv("OPENCODE_TIMEOUT", raising=False)
    path = save_options(ClientOptions(base_url="http://saved:1", timeout=3.0), tmp_path / "c.toml")
    assert load_options(path) == ClientOptions(base_url="http://saved:1", timeout=3.0)


def test_save_default_does_not_overwrite(tmp_path):
    config_file = tmp_path / "nested" / "config.toml"
    save_default_options(config_file)
    assert "[client]" in config_file.read_text()
    config_file.write_text("# edited\n")
    save_default_options(config_file)
    assert config_file.read_text() == "# edited\n"


@pytest.mark.parametrize(
    "overrides",
    [{"base_url": ""}, {"timeout": 0}, {"default_provider_id": ""}, {"default_model_id": ""}],
)
def test_validate_presence(overrides):
    with pytest.raises(ValueError):
        ClientOptions(**overrides).validate()
