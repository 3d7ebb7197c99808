"""
User routes - account management (admin) and self-service profiles.

Also serves the admin-only ``/clients`` listing.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from backoffice.api.dependencies import get_user_service, require_roles
from backoffice.models.api import (
    Role,
    SetAdminRoleRequest,
    UserRegisterRequest,
    UserRegisterResponse,
    UserResponse,
    UserUpdateRequest,
)
from backoffice.models.domain import Identity
from backoffice.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])
clients_router = APIRouter(prefix="/clients", tags=["clients"])

authenticated = require_roles()
admin_only = require_roles(Role.ADMIN)


@router.get("", response_model=list[UserResponse])
async def list_users(
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> list[UserResponse]:
    users = await service.list_all()
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "/register", response_model=UserRegisterResponse, status_code=status.HTTP_201_CREATED
)
async def register_user(
    request: UserRegisterRequest,
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> UserRegisterResponse:
    """
    Create an account and email its credentials.

    A password is generated when none is supplied. Returns 400 if the email
    is already registered.
    """
    profile, welcome_sent = await service.register(request)
    return UserRegisterResponse(
        uid=profile.uid,
        email=profile.email,
        role=request.role,
        welcome_email_sent=welcome_sent,
    )


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    caller: Identity = Depends(authenticated),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await service.get(caller.id)
    return UserResponse.model_validate(profile)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    display_name: str | None = Form(None, max_length=255),
    phone: str | None = Form(None, max_length=50),
    description: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    caller: Identity = Depends(authenticated),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Update the caller's profile; the avatar is optional (max 2 MB, jpg/png/webp)."""
    avatar_upload = None
    if avatar is not None and avatar.filename:
        avatar_upload = (avatar.filename, avatar.content_type, await avatar.read())

    profile = await service.update_profile(
        caller,
        display_name=display_name,
        phone=phone,
        description=description,
        avatar=avatar_upload,
    )
    return UserResponse.model_validate(profile)


@router.post("/set-admin-role", response_model=UserResponse)
async def set_admin_role(
    request: SetAdminRoleRequest,
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await service.set_admin_role(request.uid)
    return UserResponse.model_validate(profile)


@router.get("/{uid}", response_model=UserResponse)
async def get_user(
    uid: str,
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await service.get(uid)
    return UserResponse.model_validate(profile)


@router.patch("/{uid}", response_model=UserResponse)
async def update_user(
    uid: str,
    request: UserUpdateRequest,
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await service.update_user(uid, request)
    return UserResponse.model_validate(profile)


# ============================================================================
# Clients
# ============================================================================


@clients_router.get("", response_model=list[UserResponse])
async def list_clients(
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> list[UserResponse]:
    clients = await service.list_clients()
    return [UserResponse.model_validate(c) for c in clients]


@clients_router.get("/{uid}", response_model=UserResponse)
async def get_client(
    uid: str,
    _admin: Identity = Depends(admin_only),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await service.get_client(uid)
    return UserResponse.model_validate(profile)
