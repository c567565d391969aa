"""
Unified Configuration System for SessionGuard

Single source of truth for configuration using pydantic-settings.

ARCHITECTURAL PRINCIPLES:
- Only this module accesses environment variables directly
- All other modules receive configuration via dependency injection
- Type-safe validation with automatic conversion
"""

from enum import Enum
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sessionguard.models.auth import VerificationFailurePolicy


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# NESTED CONFIGURATION SECTIONS
# =============================================================================

class StorageKeySettings(BaseModel):
    """Local storage key names shared by every session on the same storage"""
    token_key: str = "token"
    backup_token_keys: List[str] = Field(default_factory=lambda: ["token_backup"])
    token_length_key: str = "token_length"
    user_key: str = "userData"
    legacy_user_keys: List[str] = Field(default_factory=lambda: ["user"])
    check_key: str = "__sessionguard_check__"

    @field_validator("token_key", "token_length_key", "user_key", "check_key")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("storage key names must not be blank")
        return v


class SessionGuardSettings(BaseSettings):
    """
    Unified configuration for SessionGuard.

    All configuration access should go through this class via dependency
    injection; nothing else reads the environment.
    """

    # Authentication service
    api_base_url: str = "http://localhost:4000/api/v1"
    request_timeout: Optional[float] = None
    # Retries apply to idempotent GETs only (profile, token exchange)
    request_retries: int = Field(default=0, ge=0)
    retry_delay: float = Field(default=0.5, ge=0)

    # Session policy
    on_verification_failure: VerificationFailurePolicy = VerificationFailurePolicy.FORCE_LOGOUT
    require_jwt_format: bool = False

    # Local storage; in-memory when no path is configured
    storage_path: Optional[Path] = None
    keys: StorageKeySettings = Field(default_factory=StorageKeySettings)

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] = "json"

    model_config = SettingsConfigDict(
        env_prefix="SESSIONGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("request_timeout must be positive")
        return v

    @field_validator("on_verification_failure", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        # Accept the front-end spelling ("keepSession") as well
        if isinstance(v, str):
            return {"keepsession": "keep_session", "forcelogout": "force_logout"}.get(v.lower(), v.lower())
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


# =============================================================================
# SINGLETON MANAGEMENT
# =============================================================================

_settings_instance: Optional[SessionGuardSettings] = None


def get_settings() -> SessionGuardSettings:
    """
    Get global settings instance (singleton pattern).

    Raises:
        ConfigurationException: If settings validation fails
    """
    global _settings_instance
    if _settings_instance is None:
        try:
            from dotenv import load_dotenv

            load_dotenv(override=False)
            _settings_instance = SessionGuardSettings()
        except Exception as e:
            from sessionguard.exceptions import ConfigurationException
            raise ConfigurationException(
                f"Settings initialization failed: {e}",
                details={"original_error": str(e), "error_type": type(e).__name__},
            ) from e
    return _settings_instance


def reset_settings() -> None:
    """
    Reset settings instance (primarily for testing).

    Forces recreation of settings on next get_settings() call.
    """
    global _settings_instance
    _settings_instance = None
