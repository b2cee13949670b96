"""Community Connect - client for a community mutual-aid board.

This package loads the activity feed (blood requests first), creates posts
with optional media, and records requests to help on other people's posts,
all against a hosted PostgREST/storage/auth backend.

Example:
    >>> from communityconnect import AppContext, AsyncBackendClient, FeedLoader
    >>> import asyncio
    >>>
    >>> async def main():
    ...     async with AsyncBackendClient() as backend:
    ...         ctx = AppContext.from_backend(backend)
    ...         for post in await FeedLoader(ctx).load():
    ...             print(post.category, post.title)
    >>>
    >>> asyncio.run(main())
"""

from communityconnect.api import (
    AsyncBackendClient,
    AuthRequiredError,
    BackendError,
    TransientBackendError,
)
from communityconnect.composer import PostComposer, SubmitResult, SubmitStatus
from communityconnect.config import settings
from communityconnect.context import AppContext
from communityconnect.feed import FeedLoader, HomeFeed, prioritize_blood
from communityconnect.help_requests import RequestDispatcher, RequestOutcome, RequestResult
from communityconnect.models import (
    Badge,
    Category,
    HelpRequest,
    MediaType,
    MediaUpload,
    Post,
    PostDraft,
    PostStatus,
    PostType,
    Profile,
    ProfileRole,
)
from communityconnect.notices import Notice, NoticeBoard, NoticeLevel
from communityconnect.profile import ProfilePage, ProfileService

__version__ = "0.1.0"

__all__ = [
    # Services
    "FeedLoader",
    "HomeFeed",
    "PostComposer",
    "SubmitResult",
    "SubmitStatus",
    "RequestDispatcher",
    "RequestOutcome",
    "RequestResult",
    "ProfileService",
    "ProfilePage",
    "prioritize_blood",
    # Backend
    "AsyncBackendClient",
    "AppContext",
    "BackendError",
    "TransientBackendError",
    "AuthRequiredError",
    # Configuration
    "settings",
    # Notices
    "Notice",
    "NoticeBoard",
    "NoticeLevel",
    # Pydantic models
    "Badge",
    "Category",
    "HelpRequest",
    "MediaType",
    "MediaUpload",
    "Post",
    "PostDraft",
    "PostStatus",
    "PostType",
    "Profile",
    "ProfileRole",
]
