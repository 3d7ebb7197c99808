"""
Token Revocation Service.

Manages credential revocation with an in-memory cache backed by the database.
Uses the SHA-256 hash of credentials (never stores raw tokens).
"""

import hashlib
import time
from datetime import UTC, datetime
from typing import ClassVar

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import RevokedToken

logger = get_logger(__name__)


class TokenRevocationService:
    """
    Service for managing revoked credentials.

    - In-memory cache for fast lookups
    - Database for persistence across restarts
    - Periodic cleanup of entries past the credential's own expiry

    Usage:
        service = TokenRevocationService()

        if await service.is_revoked(token, store):
            raise UnauthenticatedError("Credential has been revoked")

        await service.revoke_token(token, user_id, "logout", token_exp, store)
    """

    # Key: token_hash, Value: (expires_at_timestamp, revoked_at_timestamp)
    _cache: ClassVar[dict[str, tuple[float, float]]] = {}
    _cache_loaded: ClassVar[bool] = False
    _last_cleanup: ClassVar[float] = 0
    _CLEANUP_INTERVAL: ClassVar[int] = 300  # 5 minutes

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash a credential using SHA-256."""
        return hashlib.sha256(token.encode()).hexdigest()

    @classmethod
    def reset_cache(cls) -> None:
        cls._cache = {}
        cls._cache_loaded = False
        cls._last_cleanup = 0

    async def load_cache(self, store: DocumentStore) -> None:
        """Load unexpired revocations from the database into the cache."""
        if TokenRevocationService._cache_loaded:
            return

        now = datetime.now(UTC)
        tokens = await store.query_by_field(RevokedToken, "expires_at", ">", now)
        for token in tokens:
            TokenRevocationService._cache[token.token_hash] = (
                token.expires_at.timestamp(),
                token.revoked_at.timestamp(),
            )

        TokenRevocationService._cache_loaded = True
        logger.info("token_revocation_cache_loaded", count=len(tokens))

    async def is_revoked(self, token: str, store: DocumentStore) -> bool:
        """Return True if the credential was revoked and has not yet expired."""
        if not TokenRevocationService._cache_loaded:
            await self.load_cache(store)

        await self._cleanup_if_needed(store)

        token_hash = self.hash_token(token)
        entry = TokenRevocationService._cache.get(token_hash)
        if entry is None:
            return False

        expires_at, _ = entry
        if time.time() < expires_at:
            logger.warning("revoked_token_rejected", token_hash=token_hash[:16])
            return True

        del TokenRevocationService._cache[token_hash]
        return False

    async def revoke_token(
        self,
        token: str,
        user_id: str,
        reason: str,
        token_exp: datetime,
        store: DocumentStore,
    ) -> None:
        """Revoke a credential; revoking twice is a no-op."""
        token_hash = self.hash_token(token)
        now = datetime.now(UTC)

        existing = await store.get_by_id(RevokedToken, token_hash)
        if existing is None:
            await store.insert(
                RevokedToken(
                    token_hash=token_hash,
                    user_id=user_id,
                    reason=reason,
                    expires_at=token_exp,
                    revoked_at=now,
                )
            )

        TokenRevocationService._cache[token_hash] = (token_exp.timestamp(), now.timestamp())

        logger.info(
            "token_revoked",
            token_hash=token_hash[:16],
            user_id=user_id,
            reason=reason,
            expires_at=token_exp.isoformat(),
        )

    async def _cleanup_if_needed(self, store: DocumentStore) -> None:
        now = time.time()
        if now - TokenRevocationService._last_cleanup < TokenRevocationService._CLEANUP_INTERVAL:
            return

        TokenRevocationService._last_cleanup = now

        expired_hashes = [h for h, (exp, _) in TokenRevocationService._cache.items() if now > exp]
        for h in expired_hashes:
            del TokenRevocationService._cache[h]

        expired = await store.query_by_field(RevokedToken, "expires_at", "<", datetime.now(UTC))
        for record in expired:
            await store.delete(record)

        if expired_hashes or expired:
            logger.info(
                "revoked_tokens_cleanup",
                cache_removed=len(expired_hashes),
                db_removed=len(expired),
            )


# Global singleton
token_revocation_service = TokenRevocationService()
