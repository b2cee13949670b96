"""Post creation.

The composer validates the form before touching the network, uploads at
most one photo or video, stamps blood posts with an expiry, and inserts the
post. Upload and insert are separate calls: if the insert fails after a
successful upload, the uploaded object stays in the bucket.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ValidationError

from communityconnect.api import BackendError, TransientBackendError
from communityconnect.context import AppContext
from communityconnect.logging import logger, set_log_context
from communityconnect.metrics import errors_total, posts_created_total
from communityconnect.models import (
    CATEGORIES_BY_POST_TYPE,
    Category,
    MediaType,
    NewPost,
    Post,
    PostDraft,
    PostType,
    Profile,
    ProfileRole,
)
from communityconnect.repository import Repository
from communityconnect.utils import epoch_millis, file_extension, utc_now

REQUIRED_FIELDS_MISSING = "Please fill in all required fields"
SIGN_IN_REQUIRED = "Please sign in to create posts"
VERIFICATION_REQUIRED = "You must be verified to create posts"
ORGANIZATION_ONLY = "Only organizations can create organization posts"
POST_CREATED = "Post created successfully!"
POST_FAILED = "Failed to create post"


class DraftValidationError(ValueError):
    """The draft cannot be submitted; the message is shown to the user."""

    pass


# =============================================================================
# Rules
# =============================================================================


def categories_for(post_type: PostType) -> tuple[Category, ...]:
    """Categories offered for a post type."""
    return CATEGORIES_BY_POST_TYPE[PostType(post_type)]


def allowed_post_types(profile: Profile | None) -> tuple[PostType, ...]:
    """Post types a profile may choose; organization posts need an organization role."""
    if profile is not None and profile.role == ProfileRole.ORGANIZATION:
        return (PostType.NEEDY, PostType.ORGANIZATION)
    return (PostType.NEEDY,)


def compute_expiry(
    category: Category,
    now: datetime,
    hours: int = 5,
) -> datetime | None:
    """Expiry for a new post: ``now + hours`` for blood, otherwise None.

    Example:
        >>> compute_expiry(Category.BLOOD, datetime(2024, 1, 15, 10, tzinfo=UTC))
        datetime.datetime(2024, 1, 15, 15, 0, tzinfo=datetime.timezone.utc)
        >>> compute_expiry(Category.FOOD, datetime(2024, 1, 15, 10, tzinfo=UTC)) is None
        True
    """
    if category == Category.BLOOD:
        return now + timedelta(hours=hours)
    return None


def media_kind(content_type: str) -> MediaType:
    """``image/*`` is an image; anything else is treated as video."""
    return MediaType.IMAGE if content_type.startswith("image/") else MediaType.VIDEO


def storage_path(user_id: str, filename: str, now: datetime) -> str:
    """Bucket key ``{user}/{epoch millis}.{extension}``.

    Example:
        >>> storage_path("u1", "photo.JPG", datetime(2024, 1, 1, tzinfo=UTC))
        'u1/1704067200000.JPG'
    """
    return f"{user_id}/{epoch_millis(now)}.{file_extension(filename)}"


def validate_draft(draft: PostDraft, author: Profile | None) -> None:
    """Check a draft before any network call.

    Raises:
        DraftValidationError: With the message to show the user
    """
    if author is None:
        raise DraftValidationError(SIGN_IN_REQUIRED)
    if draft.category is None or not draft.title.strip():
        raise DraftValidationError(REQUIRED_FIELDS_MISSING)
    if not author.verified:
        raise DraftValidationError(VERIFICATION_REQUIRED)
    if draft.post_type not in allowed_post_types(author):
        raise DraftValidationError(ORGANIZATION_ONLY)
    if draft.category not in categories_for(draft.post_type):
        raise DraftValidationError(
            f"{draft.category.label.upper()} is not available for {draft.post_type} posts"
        )


# =============================================================================
# Composer
# =============================================================================


class SubmitStatus(StrEnum):
    CREATED = "created"
    INVALID = "invalid"
    FAILED = "failed"


class SubmitResult(BaseModel):
    """Outcome of one submit."""

    status: SubmitStatus
    message: str
    post: Optional[Post] = None

    @property
    def ok(self) -> bool:
        return self.status == SubmitStatus.CREATED


class PostComposer:
    """Creates posts for the signed-in, verified user.

    Args:
        ctx: Application context
        clock: Source of "now" (UTC); one reading stamps created_at,
            expires_at and the media key

    Example:
        >>> composer = PostComposer(ctx)
        >>> if await composer.open():
        ...     draft = PostDraft(title="Need O- urgently", category="blood")
        ...     result = await composer.submit(draft)
    """

    def __init__(self, ctx: AppContext, clock: Callable[[], datetime] = utc_now):
        self.ctx        = ctx
        self.author: Profile | None = None
        self.submitting = False
        self._clock     = clock
        self._posts     = Repository[Post](ctx.backend, "posts", Post)
        self._profiles  = Repository[Profile](ctx.backend, "profiles", Profile)

    @property
    def post_types(self) -> tuple[PostType, ...]:
        return allowed_post_types(self.author)

    async def open(self) -> bool:
        """Load the author profile; False when the author may not post.

        A failed profile fetch is logged and treated like an unverified author.

        Raises:
            AuthRequiredError: When there is no session
        """
        user_id = self.ctx.require_user()
        self.author = None
        try:
            self.author = await self._profiles.get(user_id)
        except (BackendError, TransientBackendError, ValidationError) as e:
            logger.error(f"❌ Failed to load author profile {user_id}: {e}")
            errors_total.labels(error_type=type(e).__name__, component="composer").inc()

        if self.author is None or not self.author.verified:
            self.ctx.notices.error(VERIFICATION_REQUIRED)
            return False
        return True

    async def submit(self, draft: PostDraft) -> SubmitResult:
        """Validate, upload media if any, and insert the post.

        Returns:
            SubmitResult; the draft is cleared only when the post was created
        """
        set_log_context(operation="submit_post")
        try:
            validate_draft(draft, self.author)
        except DraftValidationError as e:
            self.ctx.notices.error(str(e))
            return SubmitResult(status=SubmitStatus.INVALID, message=str(e))

        self.submitting = True
        now = self._clock()

        try:
            media_url: str | None = None
            media_type = MediaType.TEXT

            if draft.media is not None:
                bucket = self.ctx.settings.media_bucket
                path = storage_path(self.author.id, draft.media.filename, now)
                await self.ctx.backend.upload(
                    bucket,
                    path,
                    draft.media.content,
                    draft.media.content_type,
                )
                media_url = self.ctx.backend.public_url(bucket, path)
                media_type = media_kind(draft.media.content_type)
                logger.debug(f"Uploaded media to {bucket}/{path}")

            new_post = NewPost(
                user_id=self.author.id,
                title=draft.title.strip(),
                description=draft.description.strip() or None,
                category=draft.category,
                post_type=draft.post_type,
                media_url=media_url,
                media_type=media_type,
                created_at=now,
                expires_at=compute_expiry(
                    draft.category, now, self.ctx.settings.blood_expiry_hours
                ),
            )
            post = await self._posts.create(new_post.to_row())

        except (BackendError, TransientBackendError, ValidationError) as e:
            message = (e.message if isinstance(e, BackendError) else str(e)) or POST_FAILED
            self.ctx.notices.error(message)
            logger.error(f"❌ Failed to create post: {e}")
            errors_total.labels(error_type=type(e).__name__, component="composer").inc()
            return SubmitResult(status=SubmitStatus.FAILED, message=message)

        finally:
            self.submitting = False

        posts_created_total.labels(category=post.category.value).inc()
        logger.bind(post_id=post.id).info(f"✅ Created {post.category} post")
        self.ctx.notices.success(POST_CREATED)
        draft.clear()
        return SubmitResult(status=SubmitStatus.CREATED, message=POST_CREATED, post=post)


__all__ = [
    "PostComposer",
    "SubmitResult",
    "SubmitStatus",
    "DraftValidationError",
    "allowed_post_types",
    "categories_for",
    "compute_expiry",
    "media_kind",
    "storage_path",
    "validate_draft",
]
