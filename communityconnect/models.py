"""Data models for Community Connect.

Pydantic models for every record that crosses the backend boundary.
Rows returned by the backend are validated here instead of being passed
around as loose dictionaries.

Models are organized into three sections:
1. Enumerations shared by posts and profiles
2. Records read from the backend
3. Payloads and inputs built on the client
"""

import mimetypes
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from communityconnect.types import NewPostRow
from communityconnect.utils import ensure_list, format_iso, parse_datetime, safe_get

# =============================================================================
# Section 1: Enumerations
# =============================================================================


class Category(StrEnum):
    """What a post is about."""

    BLOOD = "blood"
    FOOD = "food"
    CLOTHES = "clothes"
    BOOKS = "books"
    BLANKETS = "blankets"
    GENERAL = "general"
    COMMUNITY_SERVICE = "community_service"
    ACHIEVEMENT = "achievement"

    @property
    def label(self) -> str:
        """Human label, e.g. ``community service``."""
        return self.value.replace("_", " ", 1)


class PostType(StrEnum):
    """Who a post is from: someone in need, or an organization update."""

    NEEDY = "needy"
    ORGANIZATION = "organization"


class MediaType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class PostStatus(StrEnum):
    """Post lifecycle. Transitions away from ACTIVE happen server-side."""

    ACTIVE = "active"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"


class ProfileRole(StrEnum):
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


CATEGORIES_BY_POST_TYPE: dict[PostType, tuple[Category, ...]] = {
    PostType.NEEDY: (
        Category.BLOOD,
        Category.FOOD,
        Category.CLOTHES,
        Category.BOOKS,
        Category.BLANKETS,
        Category.GENERAL,
    ),
    PostType.ORGANIZATION: (
        Category.COMMUNITY_SERVICE,
        Category.ACHIEVEMENT,
        Category.BLOOD,
    ),
}


# =============================================================================
# Section 2: Records read from the backend
# =============================================================================


class Badge(BaseModel):
    """Achievement marker awardable to a profile.

    Attributes:
        id: Badge ID
        name: Badge name
        icon: Emoji or icon reference
        description: What the badge is awarded for
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    icon: str
    description: Optional[str] = None


class PostAuthor(BaseModel):
    """Author fields embedded in a feed row.

    Attributes:
        id: Profile ID (same as the user ID)
        display_name: Public name
        avatar_url: Avatar image URL
        verified: Whether the author completed verification
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    display_name: str
    avatar_url: Optional[str] = None
    verified: bool = False


class Profile(BaseModel):
    """A user's public identity and verification/role state.

    Attributes:
        id: Profile ID (same as the auth user ID)
        display_name: Public name
        avatar_url: Avatar image URL
        role: individual or organization
        verified: Gates post creation on the client
        badges: Earned badges, when the row embeds ``user_badges(badges(*))``
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    display_name: str
    avatar_url: Optional[str] = None
    role: ProfileRole = ProfileRole.INDIVIDUAL
    verified: bool = False
    badges: list[Badge] = Field(default_factory=list, alias="user_badges")

    @field_validator("badges", mode="before")
    @classmethod
    def _flatten_user_badges(cls, v: Any) -> list[Any]:
        # [{"badges": {...}}, ...] from the join table, or plain badge dicts
        flattened = []
        for item in ensure_list(v):
            if isinstance(item, dict) and "badges" in item:
                item = item["badges"]
            if item is not None:
                flattened.append(item)
        return flattened


class Post(BaseModel):
    """A need or update shown in the feed.

    Attributes:
        id: Post ID
        user_id: Owning user
        title: Headline
        description: Optional details
        category: What the post is about
        post_type: needy or organization
        media_url: Public URL of the attached photo/video
        media_type: text, image or video
        status: active, fulfilled or expired
        latitude: Optional location
        longitude: Optional location
        expires_at: Set only for blood posts
        created_at: Creation timestamp (UTC)
        author: Embedded author profile subset (``profiles`` key in rows)
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category: Category
    post_type: PostType = PostType.NEEDY
    media_url: Optional[str] = None
    media_type: MediaType = MediaType.TEXT
    status: PostStatus = PostStatus.ACTIVE
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    author: Optional[PostAuthor] = Field(None, alias="profiles")

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)

    @field_validator("expires_at", mode="before")
    @classmethod
    def _coerce_expires_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)

    @field_validator("media_type", mode="before")
    @classmethod
    def _default_media_type(cls, v: Optional[str]) -> str:
        return v or MediaType.TEXT

    @property
    def is_blood(self) -> bool:
        return self.category == Category.BLOOD

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def author_name(self) -> str:
        return self.author.display_name if self.author else ""


class HelpRequest(BaseModel):
    """One user's offer to help on another user's post."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    post_id: str
    requester_id: str
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class AuthSession(BaseModel):
    """Authenticated session returned by the auth API.

    Attributes:
        access_token: JWT sent as bearer token
        refresh_token: Token for refreshing the session
        user_id: Authenticated user ID
        email: Account email
        expires_at: When the access token expires
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at", mode="before")
    @classmethod
    def _coerce_expires_at(cls, v: Any) -> Optional[datetime]:
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v, UTC)
        return parse_datetime(v)

    @classmethod
    def from_token_response(cls, body: dict[str, Any]) -> "AuthSession":
        """Build a session from a ``/auth/v1/token`` response body."""
        return cls(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            user_id=safe_get(body, "user", "id"),
            email=safe_get(body, "user", "email"),
            expires_at=body.get("expires_at"),
        )


# =============================================================================
# Section 3: Client-side payloads and inputs
# =============================================================================


class MediaUpload(BaseModel):
    """A single photo or video attached to a new post."""

    filename: str
    content_type: str
    content: bytes = Field(repr=False)

    @classmethod
    def from_path(cls, path: Path, content_type: str | None = None) -> "MediaUpload":
        """Read a local file, guessing its MIME type from the name."""
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or guessed or "application/octet-stream",
            content=path.read_bytes(),
        )


class NewPost(BaseModel):
    """Insert payload for the ``posts`` table."""

    user_id: str
    title: str
    description: Optional[str] = None
    category: Category
    post_type: PostType
    media_url: Optional[str] = None
    media_type: MediaType = MediaType.TEXT
    status: PostStatus = PostStatus.ACTIVE
    created_at: datetime
    expires_at: Optional[datetime] = None

    @field_serializer("created_at", "expires_at")
    def _serialize_timestamp(self, dt: Optional[datetime]) -> Optional[str]:
        return format_iso(dt)

    def to_row(self) -> NewPostRow:
        return NewPostRow(**self.model_dump(mode="json"))


class PostDraft(BaseModel):
    """Mutable form state for the post composer.

    Attributes:
        title: Required, non-blank
        description: Optional details
        category: Must be selected before submitting
        post_type: Defaults to needy
        media: Optional single photo or video
    """

    model_config = ConfigDict(validate_assignment=True)

    title: str = ""
    description: str = ""
    category: Optional[Category] = None
    post_type: PostType = PostType.NEEDY
    media: Optional[MediaUpload] = None

    def clear(self) -> None:
        """Reset every field to its default."""
        self.title = ""
        self.description = ""
        self.category = None
        self.post_type = PostType.NEEDY
        self.media = None


__all__ = [
    "Category",
    "PostType",
    "MediaType",
    "PostStatus",
    "ProfileRole",
    "CATEGORIES_BY_POST_TYPE",
    "Badge",
    "PostAuthor",
    "Profile",
    "Post",
    "HelpRequest",
    "AuthSession",
    "MediaUpload",
    "NewPost",
    "PostDraft",
]
