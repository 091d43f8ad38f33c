"""Application configuration."""

from datetime import time
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from booking_api.services.slot_calculator import BusinessHours


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Booking API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(default="sqlite:///./booking.db", alias="DATABASE_URL")

    # JWT
    jwt_secret_key: str = Field(
        default="change-me-in-production",
        alias="JWT_SECRET_KEY",
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Business calendar
    business_timezone: str = Field(default="Europe/Bucharest", alias="BUSINESS_TIMEZONE")
    business_hours_start: time = Field(default=time(9, 0), alias="BUSINESS_HOURS_START")
    business_hours_end: time = Field(default=time(18, 0), alias="BUSINESS_HOURS_END")
    slot_step_minutes: int = Field(default=30, gt=0, alias="SLOT_STEP_MINUTES")
    # Python weekday numbers, Monday is 0
    closed_weekdays_str: str = Field(default="5,6", alias="CLOSED_WEEKDAYS")

    # Scheduler
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    reminder_job_time: time = Field(default=time(10, 0), alias="REMINDER_JOB_TIME")
    follow_up_job_time: time = Field(default=time(11, 0), alias="FOLLOW_UP_JOB_TIME")
    daily_summary_job_time: time = Field(default=time(8, 0), alias="DAILY_SUMMARY_JOB_TIME")
    no_show_sweep_interval_minutes: int = Field(
        default=60, gt=0, alias="NO_SHOW_SWEEP_INTERVAL_MINUTES"
    )
    no_show_grace_minutes: int = Field(default=120, ge=0, alias="NO_SHOW_GRACE_MINUTES")

    # Email
    smtp_host: str = Field(
        default="",
        alias="SMTP_HOST",
        description="SMTP server; when empty, sends are logged and fail as undelivered",
    )
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str = Field(default="", alias="SMTP_USERNAME")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(default=True, alias="SMTP_USE_TLS")
    email_from: str = Field(default="programari@example.com", alias="EMAIL_FROM")
    admin_email: str = Field(default="", alias="ADMIN_EMAIL")

    # Business identity
    business_name: str = Field(default="Casa Ignat", alias="BUSINESS_NAME")
    business_address: str = Field(default="", alias="BUSINESS_ADDRESS")
    site_url: str = Field(default="https://example.com", alias="SITE_URL")
    contact_email: str = Field(default="contact@example.com", alias="CONTACT_EMAIL")

    @field_validator("business_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names at startup."""
        ZoneInfo(v)
        return v

    @property
    def tz(self) -> ZoneInfo:
        """Business timezone."""
        return ZoneInfo(self.business_timezone)

    @property
    def closed_weekdays(self) -> frozenset[int]:
        """Weekdays on which no slots are offered."""
        return frozenset(
            int(day.strip()) for day in self.closed_weekdays_str.split(",") if day.strip()
        )

    @property
    def business_hours(self) -> BusinessHours:
        """Daily booking window."""
        return BusinessHours(
            start=self.business_hours_start,
            end=self.business_hours_end,
            step_minutes=self.slot_step_minutes,
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
