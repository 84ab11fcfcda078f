"""Handles loading configuration from YAML files and the environment."""

import yaml
import os
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Secrets and deployment facts come from the process environment, never from YAML.
ENV_OVERRIDES = {
    "openai_api_key": "OPENAI_API_KEY",
    "openai_base_url": "OPENAI_BASE_URL",
    "upload_secret": "SUBSTUDIO_UPLOAD_SECRET",
    "public_base_url": "SUBSTUDIO_PUBLIC_URL",
    "environment": "SUBSTUDIO_ENV",
}


class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the loaded configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
            raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if config is None:
            logger.warning(f"Configuration file is empty: {config_path}")
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config


@dataclass
class AppConfig:
    """Typed view over the merged YAML + environment settings."""
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_max_retries: int = 2
    primary_model: str = "gpt-4o"
    fallback_model: str = "gpt-4-turbo"
    transcription_model: str = "whisper-1"
    request_timeout_seconds: float = 300.0

    mymemory_url: str = "https://api.mymemory.translated.net/get"
    mymemory_delay_seconds: float = 0.1

    temp_dir: str = "tmp"
    log_dir: str = "logs"
    log_file: str = "substudio.log"

    storage_dir: str = "blobs"
    public_base_url: str = "http://127.0.0.1:8000"
    upload_secret: Optional[str] = None
    upload_token_ttl_seconds: int = 3600

    extract_audio: bool = False
    ffmpeg_path: Optional[str] = None

    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    output_format: str = "srt"
    environment: str = "development"
    version: str = "1.0.0"

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def openai_key_valid(self) -> bool:
        # Shape check only; the key is never sent anywhere to validate it.
        return self.openai_configured and self.openai_api_key.startswith("sk-")


def build_app_config(raw: Optional[Dict[str, Any]] = None, use_env: bool = True) -> AppConfig:
    """
    Builds an AppConfig from a loaded YAML mapping plus environment overrides.

    Unknown keys in ``raw`` are ignored (logged at debug level) so that one
    config file can also carry settings for other tools.

    Raises:
        ConfigurationError: If a value has the wrong type or output_format is unsupported.
    """
    raw = dict(raw or {})
    if use_env:
        load_dotenv()
        for key, env_name in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                raw[key] = value

    known = {f.name: f for f in fields(AppConfig)}
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.debug(f"Ignoring unknown configuration key: {key}")
            continue
        if value is None:
            continue
        default = known[key].default
        try:
            if isinstance(default, bool):
                value = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes", "on")
            elif isinstance(default, int):
                value = int(value)
            elif isinstance(default, float):
                value = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value for '{key}': {value!r}") from e
        kwargs[key] = value

    config = AppConfig(**kwargs)
    if config.output_format.lower() != "srt":
        raise ConfigurationError(f"Unsupported output format '{config.output_format}' specified in config.")
    config.public_base_url = config.public_base_url.rstrip("/")
    return config


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """Loads the YAML file when it exists and returns the merged AppConfig."""
    raw: Dict[str, Any] = {}
    if config_path and os.path.exists(config_path):
        raw = ConfigLoader().load_config(config_path)
    elif config_path:
        logger.warning(f"Configuration file {config_path} not found, using defaults and environment.")
    return build_app_config(raw)
