from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings; every field can be overridden through the environment."""

    access_token_secret: str = Field("CHANGE_ME_ACCESS", alias="ACCESS_TOKEN_SECRET")
    refresh_token_secret: str = Field("CHANGE_ME_REFRESH", alias="REFRESH_TOKEN_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(30, alias="REFRESH_TOKEN_EXPIRE_DAYS")
    token_issuer: str = Field("movie-api", alias="TOKEN_ISSUER")
    token_audience: str = Field("movie-api-clients", alias="TOKEN_AUDIENCE")
    database_url: str = Field("sqlite:///./app.db", alias="DATABASE_URL")
    refresh_cleanup_interval_seconds: int = Field(3600, alias="REFRESH_CLEANUP_INTERVAL_SECONDS")
    login_max_attempts: int = Field(5, alias="LOGIN_MAX_ATTEMPTS")
    login_lockout_seconds: int = Field(15 * 60, alias="LOGIN_LOCKOUT_SECONDS")
    cors_origins: str = Field("http://localhost:5173", alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    host: str = Field("127.0.0.1", alias="HOST")
    port: int = Field(8000, alias="PORT")
    password_reset_expire_minutes: int = Field(10, alias="PASSWORD_RESET_EXPIRE_MINUTES")
    # Development only: echo the reset token in the forgot-password response.
    expose_reset_token: bool = Field(False, alias="EXPOSE_RESET_TOKEN")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
