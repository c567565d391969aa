"""
Credential store over durable local key/value storage.

Holds the bearer token, its diagnostic copies and the cached user profile.
Every storage failure is converted into "the operation had no effect".
The only exception raised here is StorageUnavailable, and only from
require_available().
"""

import json
from typing import Optional

from sessionguard.config.settings import StorageKeySettings
from sessionguard.exceptions import StorageUnavailable
from sessionguard.infrastructure.logging import get_logger
from sessionguard.models.auth import TokenDiagnostics, UserProfile, looks_like_jwt
from sessionguard.models.interfaces import IKeyValueStorage


STORAGE_UNAVAILABLE_MESSAGE = (
    "Local storage is unavailable, the session cannot be kept. "
    "Enable cookies and site storage, then reload."
)


class CredentialStore:
    """Token and cached-profile persistence with feature detection.

    Attributes:
        storage: Underlying key/value storage, None when the execution
            context has no local storage at all
        keys: Key names used for every persisted item
    """

    def __init__(self, storage: Optional[IKeyValueStorage], keys: Optional[StorageKeySettings] = None):
        self.storage = storage
        self.keys = keys or StorageKeySettings()
        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Feature detection
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        """Try a trivial write/delete; False instead of raising."""
        if self.storage is None:
            return False
        try:
            self.storage.set_item(self.keys.check_key, "1")
            self.storage.remove_item(self.keys.check_key)
            return True
        except Exception as e:
            self.logger.warning("Local storage unavailable", error=str(e), error_type=type(e).__name__)
            return False

    def require_available(self) -> None:
        """Raise StorageUnavailable when feature detection fails."""
        if not self.is_available():
            raise StorageUnavailable(
                STORAGE_UNAVAILABLE_MESSAGE,
                details={"storage": type(self.storage).__name__ if self.storage is not None else None},
            )

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    def _read(self, key: str) -> Optional[str]:
        if self.storage is None:
            return None
        try:
            return self.storage.get_item(key)
        except Exception as e:
            self.logger.warning("Storage read failed", key=key, error=str(e))
            return None

    def _write(self, key: str, value: str) -> bool:
        if self.storage is None:
            return False
        try:
            self.storage.set_item(key, value)
            return True
        except Exception as e:
            self.logger.error("Storage write failed", key=key, error=str(e), error_type=type(e).__name__)
            return False

    def _remove(self, key: str) -> bool:
        if self.storage is None:
            return False
        try:
            self.storage.remove_item(key)
            return True
        except Exception as e:
            self.logger.warning("Storage remove failed", key=key, error=str(e))
            return False

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    def get_token(self) -> Optional[str]:
        """Return the primary token. Backup copies are never consulted."""
        token = self._read(self.keys.token_key)
        return token or None

    def set_token(self, token: Optional[str]) -> None:
        """Write the token plus its diagnostic copies; empty clears."""
        if not token:
            self.clear_token()
            return

        if not self._write(self.keys.token_key, token):
            return
        for backup_key in self.keys.backup_token_keys:
            self._write(backup_key, token)
        self._write(self.keys.token_length_key, str(len(token)))

        self.logger.debug(
            "Token stored",
            token_length=len(token),
            looks_like_jwt=looks_like_jwt(token),
        )

    def clear_token(self) -> None:
        """Remove the token, backups and recorded length, best-effort."""
        failed = [
            key
            for key in (self.keys.token_key, *self.keys.backup_token_keys, self.keys.token_length_key)
            if not self._remove(key)
        ]
        if failed and self.storage is not None:
            self.logger.warning("Token not fully cleared", failed_keys=failed)

    # ------------------------------------------------------------------
    # Cached profile
    # ------------------------------------------------------------------

    def get_user(self) -> Optional[UserProfile]:
        """Return the cached profile; malformed data reads as absence."""
        raw = self._read(self.keys.user_key)
        if not raw:
            return None
        try:
            return UserProfile.model_validate(json.loads(raw))
        except (ValueError, TypeError) as e:
            # pydantic.ValidationError is a ValueError
            self.logger.warning("Discarding malformed cached user", error=str(e))
            return None

    def set_user(self, profile: Optional[UserProfile]) -> None:
        if profile is None:
            self._remove(self.keys.user_key)
            return
        self._write(self.keys.user_key, json.dumps(profile.to_storage()))

    def clear(self) -> None:
        """Wipe token, diagnostics, cached profile and legacy profile keys."""
        self.clear_token()
        self.set_user(None)
        for legacy_key in self.keys.legacy_user_keys:
            self._remove(legacy_key)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def diagnose(self) -> TokenDiagnostics:
        """Cross-check the primary token against backups and recorded length."""
        token = self.get_token()
        if token is None:
            return TokenDiagnostics(token_present=False)

        backups = [self._read(key) for key in self.keys.backup_token_keys]
        backups_match = all(copy == token for copy in backups)

        recorded_raw = self._read(self.keys.token_length_key)
        try:
            recorded_length = int(recorded_raw) if recorded_raw is not None else None
        except ValueError:
            recorded_length = None

        report = TokenDiagnostics(
            token_present=True,
            token_length=len(token),
            looks_like_jwt=looks_like_jwt(token),
            backups_match=backups_match,
            recorded_length=recorded_length,
            length_matches=recorded_length == len(token),
        )
        if not report.is_consistent:
            self.logger.warning(
                "Stored token disagrees with its diagnostic copies",
                token_length=report.token_length,
                recorded_length=report.recorded_length,
                backups_match=report.backups_match,
            )
        return report
