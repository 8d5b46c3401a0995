"""
Configuration loading utilities.
"""

from typing import Any, Dict, Optional

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from perplexity_mcp.errors import ConfigurationError
from perplexity_mcp.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.perplexity.ai/chat/completions"
DEFAULT_MODEL = "sonar-pro"

# Sent with every request unless the config file or the tool call overrides them
DEFAULT_REQUEST_OPTIONS: Dict[str, Any] = {
    "return_related_questions": False,
    "search_recency_filter": "month",
    "return_images": True,
    "return_citations": True,
}


class ServerSettings(BaseSettings):
    """
    Runtime settings for the Perplexity MCP server.

    Values come from keyword arguments (the YAML config file), the
    environment and ``.env``; environment variables win over the file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_url: str = Field(DEFAULT_API_URL, validation_alias="PERPLEXITY_API_URL")
    model: str = Field(DEFAULT_MODEL, validation_alias="PERPLEXITY_MODEL")
    api_key: Optional[str] = Field(None, validation_alias="PERPLEXITY_API_KEY")
    tool_argument: str = Field("query", validation_alias="PERPLEXITY_TOOL_ARGUMENT")
    request_defaults: Dict[str, Any] = Field(
        default_factory=lambda: dict(DEFAULT_REQUEST_OPTIONS),
        validation_alias="PERPLEXITY_REQUEST_DEFAULTS",
    )
    timeout: Optional[float] = Field(None, validation_alias="PERPLEXITY_TIMEOUT")
    host: str = Field("127.0.0.1", validation_alias="PERPLEXITY_MCP_HOST")
    port: int = 3001
    log_level: str = "INFO"

    @field_validator("request_defaults", mode="before")
    @classmethod
    def _merge_request_defaults(cls, value: Any) -> Any:
        if value is None:
            return dict(DEFAULT_REQUEST_OPTIONS)
        if isinstance(value, dict):
            return {**DEFAULT_REQUEST_OPTIONS, **value}
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def _read_yaml(config_path: str) -> Dict[str, Any]:
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning(f"Config file {config_path} not found. Using default configuration.")
        return {}
    except Exception as e:
        logger.error(f"Error loading config: {e}. Using default configuration.", exc_info=True)
        return {}

    if config is None:
        return {}
    if not isinstance(config, dict):
        logger.error(f"Config file {config_path} must contain a mapping. Using defaults.")
        return {}

    known = set(ServerSettings.model_fields)
    values = {}
    for key, value in config.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        values[key] = value
    return values


def load_config(config_path: str = "config.yaml") -> ServerSettings:
    """
    Load server settings from a YAML file and the environment.

    Args:
        config_path: Path to the configuration file

    Returns:
        Server settings

    Raises:
        ConfigurationError: A value from the file or the environment has the wrong type
    """
    values = _read_yaml(config_path)
    try:
        return ServerSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
