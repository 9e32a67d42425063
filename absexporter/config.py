from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    abs_url: str = ""
    abs_api_key: str = ""
    scrape_interval_seconds: int = 30
    exporter_host: str = "0.0.0.0"
    exporter_port: int = 9860
    request_timeout_seconds: float = 10.0
    max_session_pages: int = 200
    log_level: str = "INFO"
    log_format: str = "json"
    environment: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("scrape_interval_seconds", "max_session_pages")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @property
    def abs_base_url(self) -> str:
        """Get the Audiobookshelf URL without trailing slashes."""
        return self.abs_url.rstrip("/")

    @property
    def log_format_resolved(self) -> str:
        """Console logs for LOG_FORMAT=console or ENVIRONMENT=development, else JSON."""
        if self.log_format.lower() == "console" or self.environment.lower() == "development":
            return "console"
        return "json"


settings = Settings()
