import logging

import pytest

from substudio.config_loader import ConfigLoader, build_app_config, load_app_config
from substudio.exceptions import ConfigurationError
from substudio.log_setup import setup_logging


def test_load_config_reads_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("port: 9000\nextract_audio: yes\n", encoding="utf-8")

    assert ConfigLoader().load_config(str(path)) == {"port": 9000, "extract_audio": True}


def test_empty_file_is_an_empty_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert ConfigLoader().load_config(str(path)) == {}


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader().load_config(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
def test_invalid_yaml_is_a_configuration_error(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigLoader().load_config(str(path))


def test_build_app_config_coerces_and_ignores_unknown_keys():
    config = build_app_config(
        {"port": "8080", "extract_audio": "true", "mymemory_delay_seconds": "0.5", "whisper_model": "x"},
        use_env=False,
    )

    assert config.port == 8080
    assert config.extract_audio is True
    assert config.mymemory_delay_seconds == 0.5
    assert not hasattr(config, "whisper_model")


def test_bad_value_and_format_are_rejected():
    with pytest.raises(ConfigurationError):
        build_app_config({"port": "eighty"}, use_env=False)
    with pytest.raises(ConfigurationError):
        build_app_config({"output_format": "vtt"}, use_env=False)


def test_environment_overrides_yaml(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    monkeypatch.setenv("SUBSTUDIO_PUBLIC_URL", "https://subs.example.com/")

    config = build_app_config({"openai_api_key": "sk-from-yaml"})

    assert config.openai_api_key == "sk-from-env"
    assert config.public_base_url == "https://subs.example.com"


@pytest.mark.parametrize("key, configured, valid", [
    (None, False, False),
    ("not-a-key", True, False),
    ("sk-abc", True, True),
])
def test_key_validity_is_a_prefix_check(key, configured, valid):
    config = build_app_config({"openai_api_key": key}, use_env=False)

    assert config.openai_configured is configured
    assert config.openai_key_valid is valid


def test_load_app_config_without_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("SUBSTUDIO_ENV", raising=False)

    config = load_app_config(str(tmp_path / "absent.yaml"))

    assert config.primary_model == "gpt-4o"
    assert config.environment == "development"


def test_setup_logging_replaces_handlers(tmp_path, restore_logging):
    setup_logging(logging.DEBUG, log_dir=str(tmp_path / "a"), log_file="one.log")
    setup_logging(logging.INFO, log_dir=str(tmp_path / "b"), log_file="two.log")

    root = logging.getLogger()
    assert len(root.handlers) == 2
    assert (tmp_path / "b" / "two.log").exists()
    assert logging.getLogger("httpx").level == logging.WARNING
