"""
User Service - accounts, profiles, roles and per-user limits.

Profiles (``users`` table) mirror the identity provider's accounts. Fields
that exist in both places (email, display name, photo, role) are written to
the identity provider first, then to the profile.
"""

from datetime import UTC, datetime
from pathlib import PurePosixPath
from urllib.parse import quote

from structlog import get_logger

from backoffice.config import GIB
from backoffice.db.document_store import DocumentStore
from backoffice.db.models import UserProfile
from backoffice.exceptions import IdentityProviderError, NotFoundError, ValidationError
from backoffice.models.api import Role, UserRegisterRequest, UserUpdateRequest
from backoffice.models.domain import Identity
from backoffice.services.identity import IdentityProvider, generate_password
from backoffice.services.mail import Mailer
from backoffice.services.storage import ObjectStore

logger = get_logger(__name__)

AVATAR_MAX_BYTES = 2 * 1024 * 1024
AVATAR_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})


def default_avatar_url(display_name: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote(display_name)}&background=random&color=fff"


class UserService:
    """Admin user management and self-service profile updates."""

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        object_store: ObjectStore,
        mailer: Mailer,
        login_url: str,
    ) -> None:
        self.store = store
        self.identity = identity
        self.object_store = object_store
        self.mailer = mailer
        self.login_url = login_url

    async def list_all(self) -> list[UserProfile]:
        return await self.store.query(UserProfile, order_by="created_at", descending=True)

    async def list_clients(self) -> list[UserProfile]:
        return await self.store.query(
            UserProfile,
            where=[("role", "==", Role.CLIENT.value)],
            order_by="created_at",
            descending=True,
        )

    async def get(self, uid: str) -> UserProfile:
        profile = await self.store.get_by_id(UserProfile, uid)
        if profile is None:
            raise NotFoundError("User", uid)
        return profile

    async def get_client(self, uid: str) -> UserProfile:
        profile = await self.get(uid)
        if profile.role != Role.CLIENT.value:
            raise NotFoundError("Client", uid)
        return profile

    async def register(self, request: UserRegisterRequest) -> tuple[UserProfile, bool]:
        """
        Create account, role claim and profile, then email the credentials.

        Returns:
            (profile, welcome_email_sent)

        Raises:
            ValidationError: The email is already registered
        """
        password = request.password or generate_password()
        display_name = request.display_name or request.email.split("@")[0]
        photo_url = default_avatar_url(display_name)

        try:
            account = await self.identity.create_user(
                self.store,
                email=request.email,
                password=password,
                display_name=display_name,
                photo_url=photo_url,
            )
        except IdentityProviderError as e:
            if e.code == "email-already-exists":
                raise ValidationError("Email is already registered")
            raise

        await self._set_role(account.uid, request.role)

        now = datetime.now(UTC)
        profile = await self.store.insert(
            UserProfile(
                uid=account.uid,
                email=account.email,
                display_name=display_name,
                photo_url=photo_url,
                phone=request.phone,
                description=request.description,
                role=request.role.value,
                storage_limit_bytes=None,
                monthly_ticket_limit=None,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("user_registered", uid=account.uid, role=request.role.value)

        welcome_sent = await self.mailer.send_template(
            account.email,
            f"Your access credentials - {self.mailer.settings.company_name}",
            "user-welcome",
            {
                "display_name": display_name,
                "email": account.email,
                "password": password,
                "role": request.role.value,
                "login_url": self.login_url,
            },
        )
        return profile, welcome_sent

    async def _set_role(self, uid: str, role: Role) -> None:
        """
        Raises:
            NotFoundError: The profile has no identity-provider account
        """
        try:
            await self.identity.set_role_claim(self.store, uid, role.value)
        except IdentityProviderError as e:
            if e.code == "user-not-found":
                raise NotFoundError("User", uid) from e
            raise

    async def _save_avatar(
        self, uid: str, file_name: str | None, content_type: str | None, data: bytes
    ) -> str:
        if len(data) > AVATAR_MAX_BYTES:
            raise ValidationError("Profile image must not exceed 2 MB")
        if content_type not in AVATAR_TYPES:
            raise ValidationError("Invalid image format. Use JPG, PNG or WEBP")

        ext = PurePosixPath(file_name or "").suffix.lstrip(".").lower() or "jpg"
        timestamp = int(datetime.now(UTC).timestamp() * 1000)
        storage_path = f"users_avatars/{uid}_{timestamp}.{ext}"
        await self.object_store.save(storage_path, data, content_type)
        return self.object_store.public_url(storage_path)

    async def update_profile(
        self,
        caller: Identity,
        display_name: str | None = None,
        phone: str | None = None,
        description: str | None = None,
        avatar: tuple[str | None, str | None, bytes] | None = None,
    ) -> UserProfile:
        """
        Update the caller's own profile; ``avatar`` is (file_name, content_type, data).

        Raises:
            NotFoundError: The caller has no profile
            ValidationError: Avatar too large or of the wrong type
        """
        profile = await self.get(caller.id)

        photo_url = None
        if avatar is not None:
            photo_url = await self._save_avatar(caller.id, *avatar)

        if display_name or photo_url:
            try:
                await self.identity.update_user(
                    self.store, caller.id, display_name=display_name or None, photo_url=photo_url
                )
            except IdentityProviderError as e:
                if e.code == "user-not-found":
                    raise NotFoundError("User", caller.id) from e
                raise

        changes: dict[str, object] = {"updated_at": datetime.now(UTC)}
        if display_name is not None:
            changes["display_name"] = display_name
        if phone is not None:
            changes["phone"] = phone
        if description is not None:
            changes["description"] = description
        if photo_url is not None:
            changes["photo_url"] = photo_url

        profile = await self.store.update(profile, changes)
        logger.info("profile_updated", uid=caller.id, fields=sorted(changes))
        return profile

    async def update_user(self, uid: str, request: UserUpdateRequest) -> UserProfile:
        """
        Admin update of any user, including limits and role.

        Raises:
            NotFoundError: Unknown user
            ValidationError: The identity provider rejected the change
        """
        profile = await self.get(uid)

        if (
            request.display_name is not None
            or request.email is not None
            or request.password is not None
        ):
            try:
                await self.identity.update_user(
                    self.store,
                    uid,
                    email=request.email,
                    password=request.password,
                    display_name=request.display_name,
                )
            except IdentityProviderError as e:
                if e.code == "user-not-found":
                    raise NotFoundError("User", uid) from e
                raise ValidationError(f"Could not update account: {e.message}")

        changes: dict[str, object] = {"updated_at": datetime.now(UTC)}
        if request.display_name is not None:
            changes["display_name"] = request.display_name
        if request.email is not None:
            changes["email"] = request.email.lower()
        if request.phone is not None:
            changes["phone"] = request.phone
        if request.description is not None:
            changes["description"] = request.description
        if request.role is not None:
            await self._set_role(uid, request.role)
            changes["role"] = request.role.value
        if request.storage_limit_gb is not None:
            changes["storage_limit_bytes"] = int(request.storage_limit_gb * GIB)
        if request.monthly_ticket_limit is not None:
            changes["monthly_ticket_limit"] = request.monthly_ticket_limit

        profile = await self.store.update(profile, changes)
        logger.info("user_updated", uid=uid, fields=sorted(changes))
        return profile

    async def set_admin_role(self, uid: str) -> UserProfile:
        profile = await self.get(uid)
        await self._set_role(uid, Role.ADMIN)
        profile = await self.store.update(
            profile, {"role": Role.ADMIN.value, "updated_at": datetime.now(UTC)}
        )
        logger.info("admin_role_granted", uid=uid)
        return profile


async def bootstrap_admin(
    store: DocumentStore,
    identity: IdentityProvider,
    email: str,
    password: str | None = None,
) -> tuple[UserProfile, str | None]:
    """
    Create or promote an admin account outside the API.

    Returns:
        (profile, generated_password); the password is None unless one was
        generated for a newly created account.
    """
    generated = None
    account = await identity.get_user_by_email(store, email)
    if account is None:
        if password is None:
            password = generated = generate_password()
        account = await identity.create_user(
            store, email=email, password=password, display_name=email.split("@")[0]
        )
    elif password is not None:
        await identity.update_user(store, account.uid, password=password)

    await identity.set_role_claim(store, account.uid, Role.ADMIN.value)

    now = datetime.now(UTC)
    profile = await store.get_by_id(UserProfile, account.uid)
    if profile is None:
        profile = await store.insert(
            UserProfile(
                uid=account.uid,
                email=account.email,
                display_name=account.display_name,
                photo_url=account.photo_url,
                role=Role.ADMIN.value,
                created_at=now,
                updated_at=now,
            )
        )
    else:
        profile = await store.update(profile, {"role": Role.ADMIN.value, "updated_at": now})

    logger.info("admin_bootstrapped", uid=account.uid, created=generated is not None)
    return profile, generated
