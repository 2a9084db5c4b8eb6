"""Configuration management using environment variables and TOML files."""

from pathlib import Path
from typing import Optional, Tuple, Type

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)


# Later files override earlier ones
DEFAULT_CONFIG_FILES = (
    "settings.toml",
    "/usr/etc/g86-car-telemetry/gps-to-mqtt.toml",
)


class Settings(BaseSettings):
    """Application settings with environment variable and TOML file support."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
        toml_file=list(DEFAULT_CONFIG_FILES),
    )

    # Serial Port Configuration
    port_name: str = Field(
        default="/dev/ttyACM0",
        min_length=1,
        description="Serial device the GPS receiver is attached to"
    )
    baud_rate: int = Field(
        default=9600,
        ge=1200,
        le=921600,
        description="Serial baud rate"
    )
    serial_read_timeout: float = Field(
        default=1.0,
        gt=0.0,
        le=30.0,
        description="Seconds to wait for a line before polling for shutdown"
    )
    set_gps_to_10hz: bool = Field(
        default=False,
        description="Send the UBX CFG-RATE command for 10Hz measurements on open"
    )

    # Reconnect Configuration
    serial_reconnect_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Seconds between serial reopen attempts"
    )
    serial_long_reconnect_delay: float = Field(
        default=10.0,
        ge=0.0,
        le=600.0,
        description="Seconds to pause after too many failed reopen attempts"
    )
    serial_max_consecutive_failures: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Failed reopen attempts before taking the long pause"
    )

    # MQTT Configuration
    mqtt_host: str = Field(
        default="localhost",
        min_length=1,
        description="MQTT broker host"
    )
    mqtt_port: int = Field(
        default=1883,
        ge=1,
        le=65535,
        description="MQTT broker port"
    )
    mqtt_base_topic: str = Field(
        default="/GOLF86/GPS/",
        min_length=1,
        description="Prefix prepended to every published topic suffix"
    )
    mqtt_client_id: str = Field(
        default="gps-to-mqtt",
        description="MQTT client identifier"
    )
    mqtt_username: Optional[str] = Field(
        default=None,
        description="Optional MQTT username"
    )
    mqtt_password: Optional[str] = Field(
        default=None,
        description="Optional MQTT password"
    )
    mqtt_keepalive: int = Field(
        default=60,
        ge=5,
        le=3600,
        description="MQTT keepalive interval in seconds"
    )
    mqtt_connect_timeout: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="Seconds to wait for the broker to acknowledge the connection"
    )
    mqtt_qos: int = Field(
        default=0,
        ge=0,
        le=2,
        description="QoS level used for every publish"
    )

    # NMEA Configuration
    nmea_verify_checksum: bool = Field(
        default=False,
        description="Reject sentences whose XOR checksum does not match"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_format: str = Field(
        default="text",
        description="Log format (json or text)"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path"
    )

    # Metrics Configuration
    metrics_enabled: bool = Field(
        default=False,
        description="Enable Prometheus metrics"
    )
    metrics_port: int = Field(
        default=9108,
        ge=1,
        le=65535,
        description="Port for Prometheus metrics endpoint"
    )

    # Health Check Configuration
    health_check_interval: int = Field(
        default=30,
        ge=5,
        le=300,
        description="Seconds between statistics log lines"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Read TOML files below environment variables and .env in priority."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError(f"Invalid log format: {v}. Must be json or text")
        return v_lower

    @property
    def mqtt_url(self) -> str:
        """Broker address in URL form, for logging."""
        return f"mqtt://{self.mqtt_host}:{self.mqtt_port}"

    def topic(self, suffix: str) -> str:
        """Build a full topic from the configured base topic and a suffix."""
        return f"{self.mqtt_base_topic}{suffix}"

    def get_summary(self) -> dict:
        """Get configuration summary for logging."""
        return {
            "serial_port": f"{self.port_name}@{self.baud_rate}",
            "gps_10hz": self.set_gps_to_10hz,
            "mqtt_broker": self.mqtt_url,
            "base_topic": self.mqtt_base_topic,
            "qos": self.mqtt_qos,
            "verify_checksum": self.nmea_verify_checksum,
            "log_level": self.log_level,
            "metrics": f"port {self.metrics_port}" if self.metrics_enabled else "disabled"
        }


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings, optionally from an explicit TOML file.

    Args:
        config_path: Path to a TOML file replacing the default search list

    Returns:
        Loaded settings

    Raises:
        FileNotFoundError: If ``config_path`` does not point to a file
        pydantic.ValidationError: If any setting is invalid
    """
    if config_path is None:
        return Settings()

    if not Path(config_path).is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    class FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=config_path)

    return FileSettings()
