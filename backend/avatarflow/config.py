"""Configuration management with YAML and environment variable support."""

import os
from pathlib import Path
from typing import ClassVar, Optional

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        yaml_path = Path(os.environ.get("AVATARFLOW_CONFIG", "config.yaml"))
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class HeyGenConfig(BaseModel):
    """HeyGen API configuration.

    api_key falls back to the plain HEYGEN_API_KEY environment variable.
    Settings also reads that name from the .env file, so the web app's
    existing .env keeps working.
    """

    api_key: Optional[str] = Field(default=None, validate_default=True)
    base_url: str = "https://api.heygen.com"
    timeout_seconds: float = 60.0
    video_width: int = 1280
    video_height: int = 720
    default_title: str = "Generated Video"

    @field_validator("api_key", mode="after")
    @classmethod
    def fallback_to_plain_env(cls, v):
        return v or os.environ.get("HEYGEN_API_KEY") or None


class PollingConfig(BaseModel):
    """Job polling parameters."""

    interval_seconds: float = Field(default=5.0, gt=0)
    test_interval_seconds: float = Field(default=2.0, gt=0)
    # 1 means a single failed status check aborts polling
    transient_retry_attempts: int = Field(default=1, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)


class Field59Config(BaseModel):
    """Field59 video hosting configuration."""

    base_url: str = "https://api.field59.com"
    username: Optional[str] = None
    password: Optional[str] = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: AVATARFLOW_, delimiter: __)
    2. .env file
    3. YAML file (config.yaml, or the path in AVATARFLOW_CONFIG)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="AVATARFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    heygen: HeyGenConfig = Field(default_factory=HeyGenConfig)
    polling: PollingConfig = PollingConfig()
    field59: Field59Config = Field59Config()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def heygen_key_from_dotenv(self):
        """Pick up a plain HEYGEN_API_KEY line from the .env file.

        pydantic-settings only loads .env entries that match declared
        fields, so the unprefixed name has to be read separately.
        """
        if not self.heygen.api_key:
            env_file = self.model_config.get("env_file")
            if env_file and Path(env_file).exists():
                self.heygen.api_key = dotenv_values(env_file).get("HEYGEN_API_KEY") or None
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Singleton instance
settings = Settings()
