import pytest

from inkls.config.server_config import DEFAULT_COMPILER_TIMEOUT, default_server_config, load_server_config
from inkls.config.settings import get_default_settings, normalize_settings


def write_config(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_default_config_is_used_when_home_config_is_missing(tmp_path, monkeypatch):
    """Without any config file the defaults apply."""
    monkeypatch.setenv("HOME", str(tmp_path))

    config = load_server_config()

    assert config == default_server_config()
    assert config["compiler"]["timeout"] == DEFAULT_COMPILER_TIMEOUT
    assert config["compiler"]["launcher"] == []
    assert config["mirror"]["extensions"] == [".ink"]


def test_home_config_is_loaded(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / ".inkls").mkdir()
    write_config(
        tmp_path / ".inkls" / "config.yml",
        "inkls: 1\ncompiler:\n  executable: /opt/ink/inklecate\n  timeout: 5\n",
    )

    config = load_server_config()

    assert config["compiler"]["executable"] == "/opt/ink/inklecate"
    assert config["compiler"]["timeout"] == 5
    assert config["mirror"]["temp_root"] is None


def test_explicit_path_takes_precedence_over_environment(tmp_path, monkeypatch):
    env_config = write_config(tmp_path / "env.yml", "inkls: 1\ncompiler:\n  timeout: 7\n")
    explicit = write_config(tmp_path / "explicit.yml", "inkls: 1\ncompiler:\n  timeout: 3\n")
    monkeypatch.setenv("INKLS_CONFIG", str(env_config))

    assert load_server_config(explicit)["compiler"]["timeout"] == 3
    assert load_server_config()["compiler"]["timeout"] == 7


def test_missing_explicit_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_server_config(tmp_path / "missing.yml")


def test_missing_environment_config_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("INKLS_CONFIG", str(tmp_path / "missing.yml"))
    with pytest.raises(FileNotFoundError):
        load_server_config()


@pytest.mark.parametrize(
    "text",
    [
        "inkls: 2\n",
        "inkls: 1\ncompiler:\n  timeout: -1\n",
        "inkls: 1\nmirror:\n  extensions: [ink]\n",
        "inkls: 1\nunknown: true\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_config_raises_value_error(tmp_path, text):
    path = write_config(tmp_path / "config.yml", text)
    with pytest.raises(ValueError, match="Invalid server config"):
        load_server_config(path)


def test_empty_config_file_uses_defaults(tmp_path):
    path = write_config(tmp_path / "config.yml", "")
    assert load_server_config(path) == default_server_config()


def test_default_settings_are_independent_copies():
    settings = get_default_settings()
    settings["mainStoryPath"] = "other.ink"
    assert get_default_settings()["mainStoryPath"] == "main.ink"


def test_normalize_settings_merges_over_defaults():
    settings = normalize_settings({"mainStoryPath": "story/start.ink", "runThroughMono": None})

    assert settings["mainStoryPath"] == "story/start.ink"
    assert settings["runThroughMono"] is False
    assert settings["inklecateExecutablePath"] is None


def test_normalize_settings_without_client_value():
    assert normalize_settings(None) == get_default_settings()
    assert normalize_settings({}) == get_default_settings()


def test_normalize_settings_falls_back_on_invalid_values():
    settings = normalize_settings({"mainStoryPath": "main.ink", "runThroughMono": "yes"})
    assert settings == get_default_settings()
