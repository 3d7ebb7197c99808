"""
Identity Provider and Identity Verifier.

Accounts live in the auth_users table. Two HS256 JWT credential types are
issued, each signed with its own secret:

- access token: short-lived, issued after an email/password check
- session credential: long-lived, issued in exchange for an access token

Both embed the account's role claim as it stood when they were signed.
"""

import secrets
from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import AuthUser, new_id
from backoffice.exceptions import IdentityProviderError, UnauthenticatedError
from backoffice.models.domain import Identity, IssuedCredential
from backoffice.observability.metrics import metrics

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
SESSION_TOKEN_TYPE = "session"


def generate_password(length: int = 12) -> str:
    """Generate a random password for accounts created on a user's behalf."""
    return secrets.token_urlsafe(length)[:length]


class IdentityProvider:
    """Self-hosted identity provider: accounts, credentials and role claims."""

    def __init__(
        self,
        session_secret: str,
        access_secret: str,
        issuer: str,
        access_token_ttl: timedelta = timedelta(hours=1),
        session_ttl: timedelta = timedelta(days=14),
    ) -> None:
        self.session_secret = session_secret
        self.access_secret = access_secret
        self.issuer = issuer
        self.access_token_ttl = access_token_ttl
        self.session_ttl = session_ttl
        self.password_hasher = PasswordHasher()

    # ========================================================================
    # Credentials
    # ========================================================================

    def _sign(
        self,
        uid: str,
        email: str | None,
        role: str | None,
        token_type: str,
        secret: str,
        ttl: timedelta,
    ) -> IssuedCredential:
        now = datetime.now(UTC)
        payload: dict[str, str | datetime] = {
            "sub": uid,
            "typ": token_type,
            "iss": self.issuer,
            "iat": now,
            "exp": now + ttl,
            "jti": new_id(),
        }
        if email:
            payload["email"] = email
        if role:
            payload["role"] = role

        token = jwt.encode(payload, secret, algorithm="HS256")
        return IssuedCredential(
            token=token, token_type=token_type, expires_in=int(ttl.total_seconds())
        )

    def _verify(self, token: str, secret: str, token_type: str) -> Identity:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=["HS256"],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "typ"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthenticatedError(f"{token_type} credential expired")
        except jwt.InvalidTokenError as e:
            raise UnauthenticatedError(f"Invalid {token_type} credential: {e}")

        if claims.get("typ") != token_type:
            raise UnauthenticatedError(f"Credential is not a {token_type} credential")

        return Identity(id=claims["sub"], email=claims.get("email"), role=claims.get("role"))

    def verify_session_credential(self, token: str) -> Identity:
        return self._verify(token, self.session_secret, SESSION_TOKEN_TYPE)

    def verify_access_token(self, token: str) -> Identity:
        return self._verify(token, self.access_secret, ACCESS_TOKEN_TYPE)

    async def issue_access_token(
        self, store: DocumentStore, email: str, password: str
    ) -> IssuedCredential:
        """
        Check email and password, then sign an access token.

        Raises:
            UnauthenticatedError: Unknown email, wrong password or disabled account
        """
        user = await self.get_user_by_email(store, email)
        if user is None:
            logger.warning("login_unknown_email")
            raise UnauthenticatedError("Invalid email or password")

        try:
            self.password_hasher.verify(user.password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            logger.warning("login_password_mismatch", uid=user.uid)
            raise UnauthenticatedError("Invalid email or password")

        if user.disabled:
            logger.warning("login_disabled_account", uid=user.uid)
            raise UnauthenticatedError("Account is disabled")

        if self.password_hasher.check_needs_rehash(user.password_hash):
            await store.update(user, {"password_hash": self.password_hasher.hash(password)})

        logger.info("access_token_issued", uid=user.uid)
        return self._sign(
            user.uid,
            user.email,
            user.role_claim,
            ACCESS_TOKEN_TYPE,
            self.access_secret,
            self.access_token_ttl,
        )

    async def create_session_credential(
        self, store: DocumentStore, access_token: str
    ) -> IssuedCredential:
        """
        Exchange a valid access token for a session credential.

        The role claim is re-read from the account so a fresh session picks
        up role changes made since the access token was signed.
        """
        identity = self.verify_access_token(access_token)
        user = await store.get_by_id(AuthUser, identity.id)
        if user is None or user.disabled:
            raise UnauthenticatedError("Account no longer exists or is disabled")

        logger.info("session_credential_issued", uid=user.uid)
        return self._sign(
            user.uid,
            user.email,
            user.role_claim,
            SESSION_TOKEN_TYPE,
            self.session_secret,
            self.session_ttl,
        )

    @staticmethod
    def credential_expiry(token: str) -> datetime:
        """Read the expiry of an already verified credential."""
        claims = jwt.decode(token, options={"verify_signature": False})
        return datetime.fromtimestamp(claims["exp"], UTC)

    # ========================================================================
    # Accounts
    # ========================================================================

    async def get_user(self, store: DocumentStore, uid: str) -> AuthUser | None:
        return await store.get_by_id(AuthUser, uid)

    async def get_user_by_email(self, store: DocumentStore, email: str) -> AuthUser | None:
        users = await store.query_by_field(AuthUser, "email", "==", email.strip().lower())
        return users[0] if users else None

    async def create_user(
        self,
        store: DocumentStore,
        email: str,
        password: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> AuthUser:
        """
        Create an account.

        Raises:
            IdentityProviderError: The email is already registered
        """
        email = email.strip().lower()
        if await self.get_user_by_email(store, email) is not None:
            raise IdentityProviderError("email-already-exists", f"Email already registered: {email}")

        now = datetime.now(UTC)
        user = AuthUser(
            uid=new_id(),
            email=email,
            password_hash=self.password_hasher.hash(password),
            display_name=display_name,
            photo_url=photo_url,
            role_claim=None,
            disabled=False,
            created_at=now,
            updated_at=now,
        )
        user = await store.insert(user)
        logger.info("identity_user_created", uid=user.uid)
        return user

    async def update_user(
        self,
        store: DocumentStore,
        uid: str,
        email: str | None = None,
        password: str | None = None,
        display_name: str | None = None,
        photo_url: str | None = None,
        disabled: bool | None = None,
    ) -> AuthUser:
        """
        Update account fields; None leaves a field unchanged.

        Raises:
            IdentityProviderError: Unknown uid, or the new email is taken
        """
        user = await store.get_by_id(AuthUser, uid)
        if user is None:
            raise IdentityProviderError("user-not-found", f"No account for uid: {uid}")

        changes: dict[str, object] = {"updated_at": datetime.now(UTC)}
        if email is not None:
            email = email.strip().lower()
            existing = await self.get_user_by_email(store, email)
            if existing is not None and existing.uid != uid:
                raise IdentityProviderError(
                    "email-already-exists", f"Email already registered: {email}"
                )
            changes["email"] = email
        if password is not None:
            changes["password_hash"] = self.password_hasher.hash(password)
        if display_name is not None:
            changes["display_name"] = display_name
        if photo_url is not None:
            changes["photo_url"] = photo_url
        if disabled is not None:
            changes["disabled"] = disabled

        user = await store.update(user, changes)
        logger.info("identity_user_updated", uid=uid, fields=sorted(changes))
        return user

    async def set_role_claim(self, store: DocumentStore, uid: str, role: str | None) -> None:
        """
        Set the role claim embedded in credentials issued from now on.

        Credentials already issued keep the claim they were signed with.
        """
        user = await store.get_by_id(AuthUser, uid)
        if user is None:
            raise IdentityProviderError("user-not-found", f"No account for uid: {uid}")

        await store.update(user, {"role_claim": role, "updated_at": datetime.now(UTC)})
        logger.info("role_claim_set", uid=uid, role=role)


class IdentityVerifier:
    """Turns a raw credential into an Identity; no side effects."""

    def __init__(self, provider: IdentityProvider) -> None:
        self.provider = provider

    def verify(self, credential: str | None) -> Identity:
        """
        Verify as a session credential first, then as an access token.

        Raises:
            UnauthenticatedError: No credential, or both verifications failed
        """
        if not credential:
            metrics.record_auth_decision("unauthenticated")
            raise UnauthenticatedError("No credential supplied")

        try:
            return self.provider.verify_session_credential(credential)
        except UnauthenticatedError as session_error:
            try:
                return self.provider.verify_access_token(credential)
            except UnauthenticatedError as access_error:
                logger.info(
                    "credential_rejected",
                    session_error=session_error.message,
                    access_error=access_error.message,
                )
                metrics.record_auth_decision("unauthenticated")
                raise UnauthenticatedError("Invalid or expired credential") from access_error
