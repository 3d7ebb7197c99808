"""
Blog routes - public reads, admin writes.
"""

from fastapi import APIRouter, Depends, Query, status

from backoffice.api.dependencies import get_blog_service, require_roles
from backoffice.models.api import (
    BlogPostCreateRequest,
    BlogPostResponse,
    BlogPostUpdateRequest,
    DeletedResponse,
    Role,
)
from backoffice.models.domain import Identity
from backoffice.services.blog import BlogService

router = APIRouter(prefix="/blog", tags=["blog"])


@router.get("", response_model=list[BlogPostResponse])
async def list_posts(
    published: bool = Query(False, description="Only return published posts"),
    service: BlogService = Depends(get_blog_service),
) -> list[BlogPostResponse]:
    posts = await service.list_posts(published_only=published)
    return [BlogPostResponse.model_validate(p) for p in posts]


@router.get("/slug/{slug}", response_model=BlogPostResponse)
async def get_post_by_slug(
    slug: str,
    service: BlogService = Depends(get_blog_service),
) -> BlogPostResponse:
    post = await service.get_by_slug(slug)
    return BlogPostResponse.model_validate(post)


@router.get("/{post_id}", response_model=BlogPostResponse)
async def get_post(
    post_id: str,
    service: BlogService = Depends(get_blog_service),
) -> BlogPostResponse:
    post = await service.get(post_id)
    return BlogPostResponse.model_validate(post)


@router.post("", response_model=BlogPostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    request: BlogPostCreateRequest,
    admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: BlogService = Depends(get_blog_service),
) -> BlogPostResponse:
    """Create a post; 400 if the slug is taken."""
    post = await service.create(admin, request)
    return BlogPostResponse.model_validate(post)


@router.patch("/{post_id}", response_model=BlogPostResponse)
async def update_post(
    post_id: str,
    request: BlogPostUpdateRequest,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: BlogService = Depends(get_blog_service),
) -> BlogPostResponse:
    post = await service.update(post_id, request)
    return BlogPostResponse.model_validate(post)


@router.delete("/{post_id}", response_model=DeletedResponse)
async def delete_post(
    post_id: str,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: BlogService = Depends(get_blog_service),
) -> DeletedResponse:
    await service.delete(post_id)
    return DeletedResponse(id=post_id)
