"""Activity feed loading and prioritization.

The feed shows every active post, newest first, with blood requests moved
to the top. The move is a stable partition: posts keep their newest-first
order within the blood group and within the rest.
"""

from collections.abc import Iterable
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from communityconnect.api import BackendError, TransientBackendError
from communityconnect.context import AppContext
from communityconnect.logging import logger, set_log_context
from communityconnect.metrics import errors_total, feed_loads_total
from communityconnect.models import Post, PostStatus, Profile
from communityconnect.repository import Repository

# Post row with its author's public fields embedded under "profiles"
POST_WITH_AUTHOR = """
    *,
    profiles!posts_user_id_fkey(
        id,
        display_name,
        avatar_url,
        verified
    )
"""

PROFILE_WITH_BADGES = "*, user_badges(badges(*))"

FEED_LOAD_FAILED = "Failed to load posts"
VERIFICATION_REMINDER = "Please complete your verification to create posts"


def prioritize_blood(posts: Iterable[Post]) -> list[Post]:
    """Move blood posts ahead of all others, preserving order within each group.

    Example:
        >>> [p.category for p in prioritize_blood(posts)]
        ['blood', 'blood', 'food', 'clothes']
    """
    blood: list[Post] = []
    rest: list[Post] = []
    for post in posts:
        (blood if post.is_blood else rest).append(post)
    return blood + rest


class HomeFeed(BaseModel):
    """What the home screen needs: the viewer and the ordered feed."""

    profile: Optional[Profile] = None
    posts: list[Post] = Field(default_factory=list)


class FeedLoader:
    """Loads the active-post feed for the home screen.

    Args:
        ctx: Application context

    Example:
        >>> loader = FeedLoader(ctx)
        >>> posts = await loader.load()
        >>> posts[0].is_blood
        True
    """

    def __init__(self, ctx: AppContext):
        self.ctx     = ctx
        self.loading = False
        self.posts: list[Post] = []
        self._posts    = Repository[Post](ctx.backend, "posts", Post)
        self._profiles = Repository[Profile](ctx.backend, "profiles", Profile)

    async def load(self) -> list[Post]:
        """Fetch active posts and apply the blood-first ordering.

        On failure posts an error notice and returns an empty list. There is
        no retry; callers reload by calling again.
        """
        set_log_context(operation="load_feed")
        self.loading = True
        try:
            posts = await self._posts.find_by(
                columns=POST_WITH_AUTHOR,
                order_by="created_at",
                descending=True,
                status=PostStatus.ACTIVE,
            )
        except (BackendError, TransientBackendError, ValidationError) as e:
            self.ctx.notices.error(FEED_LOAD_FAILED)
            logger.error(f"❌ Failed to load feed: {e}")
            feed_loads_total.labels(status="error").inc()
            errors_total.labels(error_type=type(e).__name__, component="feed").inc()
            self.posts = []
            return self.posts
        finally:
            self.loading = False

        self.posts = prioritize_blood(posts)
        feed_loads_total.labels(status="success").inc()
        blood_count = sum(1 for p in self.posts if p.is_blood)
        logger.info(f"✅ Loaded {len(self.posts)} active posts ({blood_count} blood)")
        return self.posts

    async def load_home(self) -> HomeFeed:
        """Load the viewer's profile and the feed.

        An unverified viewer gets a reminder notice. A failed profile fetch
        is logged and does not stop the feed from loading.

        Raises:
            AuthRequiredError: When there is no session
        """
        user_id = self.ctx.require_user()

        profile: Profile | None = None
        try:
            profile = await self._profiles.get(user_id, columns=PROFILE_WITH_BADGES)
        except (BackendError, TransientBackendError, ValidationError) as e:
            logger.error(f"Error fetching profile: {e}")

        if profile is not None and not profile.verified:
            self.ctx.notices.info(VERIFICATION_REMINDER)

        posts = await self.load()
        return HomeFeed(profile=profile, posts=posts)


__all__ = [
    "FeedLoader",
    "HomeFeed",
    "prioritize_blood",
    "POST_WITH_AUTHOR",
    "PROFILE_WITH_BADGES",
]
