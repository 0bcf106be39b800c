from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "mTLS Authority"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Identities
    ROOT_COMMON_NAME: str = "my-ca"
    SERVER_COMMON_NAME: str = "my-server"
    CLIENT_COMMON_NAME: str = "my-client"
    SERVER_HOSTNAMES: str = "localhost"

    # Issuance
    CERT_VALIDITY_SECONDS: int = 3600
    SERIAL_STRATEGY: Literal["sequential", "random"] = "sequential"

    # Metrics
    METRICS_CONSOLE_EXPORT: bool = False
    METRICS_EXPORT_INTERVAL_MS: int = 60000

    # Demo listener
    DEMO_HOST: str = "localhost"
    DEMO_PORT: int = 8443

    @property
    def server_hostnames(self) -> tuple[str, ...]:
        """SERVER_HOSTNAMES split on commas, blanks dropped."""
        return tuple(h.strip() for h in self.SERVER_HOSTNAMES.split(",") if h.strip())


settings = Settings()
