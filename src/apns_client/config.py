from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Any, Dict, Optional

from .connection import ConnectionConfig


class Settings(BaseSettings):
    APNS_HOST: str = "gateway.push.apple.com"
    APNS_CERT: Optional[str] = None
    APNS_CERT_PASS: str = ""
    APNS_CA_FILE: Optional[str] = None
    APNS_CONNECT_TIMEOUT: float = 10.0
    APNS_EXCEPTION_LIMIT: int = 20
    APNS_EXCEPTION_LIMIT_PER_MESSAGE: int = 3
    APNS_POLL_TIMEOUT: float = 0.1
    APNS_FINAL_TIMEOUT: float = 2.0

    def connection_config(self, **overrides: Any) -> ConnectionConfig:
        values: Dict[str, Any] = {
            "host": self.APNS_HOST,
            "cert": self.APNS_CERT,
            "cert_pass": self.APNS_CERT_PASS,
            "ca_file": self.APNS_CA_FILE,
            "connect_timeout": self.APNS_CONNECT_TIMEOUT,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ConnectionConfig(**values)

    def delivery_options(self) -> Dict[str, Any]:
        return {
            "exception_limit": self.APNS_EXCEPTION_LIMIT,
            "exception_limit_per_message": self.APNS_EXCEPTION_LIMIT_PER_MESSAGE,
            "poll_timeout": self.APNS_POLL_TIMEOUT,
            "final_timeout": self.APNS_FINAL_TIMEOUT,
        }

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
