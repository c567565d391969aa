"""
Consistency guard for token/profile pairs.

The credential, not the cached profile, is the proof of identity. A token
without a profile is a normal transient state (the profile fetch is still
pending). A profile without a token can never be trusted for authorization
decisions, so it is treated as corrupt and the whole local session is
wiped. Navigation after a repair is left to the caller.
"""

from sessionguard.infrastructure.logging import get_logger
from sessionguard.infrastructure.persistence.credential_store import CredentialStore
from sessionguard.models.auth import ConsistencyState


class ConsistencyGuard:
    """Detects and repairs token/profile asymmetry in the credential store."""

    def __init__(self, credential_store: CredentialStore):
        self.credential_store = credential_store
        self.logger = get_logger(__name__)
        self.repair_count = 0

    @staticmethod
    def check(token_present: bool, user_present: bool) -> ConsistencyState:
        """Classify a (token, user) pair without side effects."""
        if user_present and not token_present:
            return ConsistencyState.CORRUPT
        if token_present and not user_present:
            return ConsistencyState.CREDENTIAL_ONLY
        return ConsistencyState.CONSISTENT

    def repair(self) -> None:
        """Wipe token, backups and cached profile."""
        self.repair_count += 1
        self.logger.error("Inconsistent session detected, wiping local session", repair_count=self.repair_count)
        self.credential_store.clear()

    def enforce(self, token_present: bool, user_present: bool) -> ConsistencyState:
        """Check the pair and repair when it is corrupt."""
        state = self.check(token_present, user_present)
        if state is ConsistencyState.CORRUPT:
            self.repair()
        return state

    def enforce_stored(self, held_user_present: bool = False) -> ConsistencyState:
        """Check what the store currently holds, plus an in-memory user if any."""
        token_present = self.credential_store.get_token() is not None
        user_present = held_user_present or self.credential_store.get_user() is not None
        return self.enforce(token_present, user_present)
