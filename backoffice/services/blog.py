"""
Blog Service - posts with unique slugs.
"""

from datetime import UTC, datetime

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import BlogPost, new_id
from backoffice.exceptions import NotFoundError, ValidationError
from backoffice.models.api import BlogPostCreateRequest, BlogPostUpdateRequest
from backoffice.models.domain import Identity

logger = get_logger(__name__)


class BlogService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def _ensure_slug_free(self, slug: str, post_id: str | None = None) -> None:
        existing = await self.store.query_by_field(BlogPost, "slug", "==", slug)
        if any(post.id != post_id for post in existing):
            raise ValidationError(f"Slug already exists: {slug}")

    async def create(self, author: Identity, request: BlogPostCreateRequest) -> BlogPost:
        """
        Raises:
            ValidationError: The slug is taken
        """
        await self._ensure_slug_free(request.slug)

        now = datetime.now(UTC)
        published_at = request.published_at
        if request.published and published_at is None:
            published_at = now

        post = await self.store.insert(
            BlogPost(
                id=new_id(),
                title=request.title,
                slug=request.slug,
                content=request.content,
                excerpt=request.excerpt,
                cover_image=request.cover_image or None,
                author=request.author or None,
                author_id=author.id,
                category=request.category or None,
                tags=list(request.tags),
                published=request.published,
                published_at=published_at,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("post_created", post_id=post.id, slug=post.slug, published=post.published)
        return post

    async def list_posts(self, published_only: bool = False) -> list[BlogPost]:
        where = [("published", "==", True)] if published_only else []
        return await self.store.query(
            BlogPost, where=where, order_by="created_at", descending=True
        )

    async def get(self, post_id: str) -> BlogPost:
        post = await self.store.get_by_id(BlogPost, post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        return post

    async def get_by_slug(self, slug: str) -> BlogPost:
        posts = await self.store.query(BlogPost, where=[("slug", "==", slug)], limit=1)
        if not posts:
            raise NotFoundError("Post", slug)
        return posts[0]

    async def update(self, post_id: str, request: BlogPostUpdateRequest) -> BlogPost:
        post = await self.get(post_id)

        changes: dict[str, object] = request.model_dump(exclude_unset=True)
        for field in ("title", "slug", "content", "published", "tags"):
            if changes.get(field, "") is None:
                del changes[field]

        if "slug" in changes and changes["slug"] != post.slug:
            await self._ensure_slug_free(str(changes["slug"]), post_id)
        if changes.get("published") and not post.published_at and "published_at" not in changes:
            changes["published_at"] = datetime.now(UTC)
        changes["updated_at"] = datetime.now(UTC)

        post = await self.store.update(post, changes)
        logger.info("post_updated", post_id=post_id, fields=sorted(changes))
        return post

    async def delete(self, post_id: str) -> None:
        post = await self.get(post_id)
        await self.store.delete(post)
        logger.info("post_deleted", post_id=post_id)
