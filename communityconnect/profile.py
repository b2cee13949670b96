"""Profile page data: a user's profile, their own posts and earned badges."""

from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from communityconnect.api import BackendError, TransientBackendError
from communityconnect.context import AppContext
from communityconnect.feed import FEED_LOAD_FAILED, POST_WITH_AUTHOR, PROFILE_WITH_BADGES
from communityconnect.logging import logger, set_log_context
from communityconnect.metrics import errors_total
from communityconnect.models import Badge, Post, Profile
from communityconnect.repository import Repository


class ProfilePage(BaseModel):
    profile: Optional[Profile] = None
    posts: list[Post] = Field(default_factory=list)
    badges: list[Badge] = Field(default_factory=list)


class ProfileService:
    """Reads profiles, authored posts and badges.

    Args:
        ctx: Application context

    Example:
        >>> page = await ProfileService(ctx).load_page()
        >>> [b.name for b in page.badges]
        ['First Responder']
    """

    def __init__(self, ctx: AppContext):
        self.ctx       = ctx
        self._posts    = Repository[Post](ctx.backend, "posts", Post)
        self._profiles = Repository[Profile](ctx.backend, "profiles", Profile)

    async def get_profile(self, user_id: str, with_badges: bool = False) -> Profile | None:
        """Profile of ``user_id``; None when missing or when the fetch fails."""
        columns = PROFILE_WITH_BADGES if with_badges else "*"
        try:
            return await self._profiles.get(user_id, columns=columns)
        except (BackendError, TransientBackendError, ValidationError) as e:
            logger.error(f"Error fetching profile {user_id}: {e}")
            errors_total.labels(error_type=type(e).__name__, component="profile").inc()
            return None

    async def list_user_posts(self, user_id: str) -> list[Post]:
        """Posts authored by ``user_id`` in any status, newest first.

        Unlike the feed, blood posts are not moved to the top. On failure
        posts an error notice and returns an empty list.
        """
        try:
            posts = await self._posts.find_by(
                columns=POST_WITH_AUTHOR,
                order_by="created_at",
                descending=True,
                user_id=user_id,
            )
        except (BackendError, TransientBackendError, ValidationError) as e:
            self.ctx.notices.error(FEED_LOAD_FAILED)
            logger.error(f"❌ Failed to load posts for {user_id}: {e}")
            errors_total.labels(error_type=type(e).__name__, component="profile").inc()
            return []

        logger.debug(f"Loaded {len(posts)} posts for {user_id}")
        return posts

    async def list_user_badges(self, user_id: str) -> list[Badge]:
        """Badges earned by ``user_id``; empty on failure."""
        try:
            rows = await self.ctx.backend.select(
                "user_badges",
                columns="badges(*)",
                filters={"user_id": user_id},
            )
            return [Badge.model_validate(row["badges"]) for row in rows if row.get("badges")]
        except (BackendError, TransientBackendError, ValidationError) as e:
            logger.error(f"Error fetching badges: {e}")
            errors_total.labels(error_type=type(e).__name__, component="profile").inc()
            return []

    async def load_page(self) -> ProfilePage:
        """Load the signed-in user's profile page.

        A failed profile fetch is logged and leaves ``profile`` empty.

        Raises:
            AuthRequiredError: When there is no session
        """
        set_log_context(operation="load_profile")
        user_id = self.ctx.require_user()

        profile = await self.get_profile(user_id)

        posts = await self.list_user_posts(user_id)
        badges = await self.list_user_badges(user_id)
        return ProfilePage(profile=profile, posts=posts, badges=badges)


__all__ = ["ProfilePage", "ProfileService"]
