import os
from functools import lru_cache
from typing import Optional

from loguru import logger
from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

INT_MIN = 0
INT_MAX = 1_000_000


class Settings(BaseSettings):
    MQTT_BROKER: str = "192.168.4.1"
    MQTT_PORT: int = 1883
    MQTT_CLIENT_ID: Optional[str] = None
    MQTT_TOPIC: str = "#"
    MQTT_DB_PATH: str = "./mqtt_messages.db"
    MQTT_KEEPALIVE: int = 30
    NETWORK_FIX_SCRIPT: str = "./handle_network_error.sh"
    RECONNECT_MIN_S: int = 2
    RECONNECT_MAX_S: int = 60
    REPAIR_MIN_INTERVAL_S: int = 20
    REPAIR_TIMEOUT_S: int = 0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    @field_validator(
        "MQTT_PORT",
        "MQTT_KEEPALIVE",
        "RECONNECT_MIN_S",
        "RECONNECT_MAX_S",
        "REPAIR_MIN_INTERVAL_S",
        "REPAIR_TIMEOUT_S",
        mode="before",
    )
    @classmethod
    def _lenient_int(cls, v, info: ValidationInfo):
        """Unparsable or out-of-range integers fall back to the field default."""
        default = cls.model_fields[info.field_name].default
        if isinstance(v, bool):
            v = str(v)
        if isinstance(v, int):
            value = v
        else:
            try:
                value = int(str(v).strip(), 10)
            except ValueError:
                logger.warning(f"{info.field_name}={v!r} is not an integer, using {default}")
                return default
        if value < INT_MIN or value > INT_MAX:
            logger.warning(f"{info.field_name}={value} out of range, using {default}")
            return default
        return value

    @model_validator(mode="after")
    def _sane_backoff(self):
        if self.RECONNECT_MIN_S == 0:
            logger.warning("RECONNECT_MIN_S=0 would busy-loop reconnects, using 1")
            self.RECONNECT_MIN_S = 1
        if self.RECONNECT_MAX_S < self.RECONNECT_MIN_S:
            logger.warning(
                f"RECONNECT_MAX_S={self.RECONNECT_MAX_S} below minimum, using {self.RECONNECT_MIN_S}"
            )
            self.RECONNECT_MAX_S = self.RECONNECT_MIN_S
        return self

    @property
    def client_id(self) -> str:
        return self.MQTT_CLIENT_ID or f"mqtt2sqlite-{os.getpid()}"

    @property
    def db_path(self) -> str:
        return self.MQTT_DB_PATH

    @property
    def repair_timeout(self) -> Optional[float]:
        return float(self.REPAIR_TIMEOUT_S) if self.REPAIR_TIMEOUT_S else None


@lru_cache()
def get_settings() -> Settings:
    return Settings()
