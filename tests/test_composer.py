"""Tests for post validation and creation."""

from datetime import UTC, datetime, timedelta

import pytest

from communityconnect.api import AuthRequiredError, BackendError, TransientBackendError
from communityconnect.composer import (
    ORGANIZATION_ONLY,
    POST_CREATED,
    POST_FAILED,
    REQUIRED_FIELDS_MISSING,
    SIGN_IN_REQUIRED,
    VERIFICATION_REQUIRED,
    DraftValidationError,
    PostComposer,
    SubmitStatus,
    allowed_post_types,
    categories_for,
    compute_expiry,
    media_kind,
    storage_path,
    validate_draft,
)
from communityconnect.metrics import sample_value
from communityconnect.models import (
    Category,
    MediaType,
    MediaUpload,
    PostDraft,
    PostStatus,
    PostType,
    Profile,
    ProfileRole,
)
from communityconnect.notices import NoticeLevel
from communityconnect.utils import parse_datetime

from fakes import ALICE, CAROL, HELPING_HANDS


def _profile(verified=True, role=ProfileRole.INDIVIDUAL):
    return Profile(id=ALICE, display_name="Alice", verified=verified, role=role)


async def _open_composer(make_ctx, fixed_now, user_id=ALICE):
    ctx = make_ctx(user_id)
    composer = PostComposer(ctx, clock=lambda: fixed_now)
    await composer.open()
    ctx.backend.calls.clear()
    return ctx, composer


# =============================================================================
# Rules
# =============================================================================


class TestRules:
    """Tests for the pure composer rules."""

    def test_categories_for_needy(self):
        assert categories_for(PostType.NEEDY) == (
            Category.BLOOD,
            Category.FOOD,
            Category.CLOTHES,
            Category.BOOKS,
            Category.BLANKETS,
            Category.GENERAL,
        )

    def test_categories_for_organization(self):
        assert categories_for(PostType.ORGANIZATION) == (
            Category.COMMUNITY_SERVICE,
            Category.ACHIEVEMENT,
            Category.BLOOD,
        )

    def test_allowed_post_types(self):
        assert allowed_post_types(None) == (PostType.NEEDY,)
        assert allowed_post_types(_profile()) == (PostType.NEEDY,)
        assert allowed_post_types(_profile(role=ProfileRole.ORGANIZATION)) == (
            PostType.NEEDY,
            PostType.ORGANIZATION,
        )

    def test_compute_expiry_blood_is_exactly_five_hours(self, fixed_now):
        expiry = compute_expiry(Category.BLOOD, fixed_now)

        assert (expiry - fixed_now).total_seconds() == 18000

    @pytest.mark.parametrize(
        "category",
        [c for c in Category if c != Category.BLOOD],
    )
    def test_compute_expiry_other_categories(self, category, fixed_now):
        assert compute_expiry(category, fixed_now) is None

    def test_compute_expiry_custom_window(self, fixed_now):
        assert compute_expiry(Category.BLOOD, fixed_now, hours=2) == fixed_now + timedelta(hours=2)

    @pytest.mark.parametrize(
        "content_type,expected",
        [
            ("image/jpeg", MediaType.IMAGE),
            ("image/png", MediaType.IMAGE),
            ("video/mp4", MediaType.VIDEO),
            ("application/octet-stream", MediaType.VIDEO),
        ],
    )
    def test_media_kind(self, content_type, expected):
        assert media_kind(content_type) == expected

    def test_storage_path(self):
        now = datetime(2024, 1, 1, tzinfo=UTC)

        assert storage_path("u1", "photo.JPG", now) == "u1/1704067200000.JPG"
        assert storage_path("u1", "clip.final.mp4", now) == "u1/1704067200000.mp4"


class TestValidateDraft:
    """Tests for draft validation."""

    def test_valid_draft(self):
        validate_draft(PostDraft(title="Need O-", category=Category.BLOOD), _profile())

    @pytest.mark.parametrize(
        "draft",
        [
            PostDraft(title="Need O-"),
            PostDraft(title="", category=Category.FOOD),
            PostDraft(title="   ", category=Category.FOOD),
        ],
    )
    def test_required_fields(self, draft):
        with pytest.raises(DraftValidationError, match=REQUIRED_FIELDS_MISSING):
            validate_draft(draft, _profile())

    def test_no_author(self):
        with pytest.raises(DraftValidationError, match=SIGN_IN_REQUIRED):
            validate_draft(PostDraft(title="x", category=Category.FOOD), None)

    def test_unverified_author(self):
        with pytest.raises(DraftValidationError, match=VERIFICATION_REQUIRED):
            validate_draft(PostDraft(title="x", category=Category.FOOD), _profile(verified=False))

    def test_organization_post_needs_organization_role(self):
        draft = PostDraft(
            title="Park cleanup",
            category=Category.COMMUNITY_SERVICE,
            post_type=PostType.ORGANIZATION,
        )

        with pytest.raises(DraftValidationError, match=ORGANIZATION_ONLY):
            validate_draft(draft, _profile())

        validate_draft(draft, _profile(role=ProfileRole.ORGANIZATION))

    def test_category_not_allowed_for_post_type(self):
        draft = PostDraft(title="Winter coats", category=Category.ACHIEVEMENT)

        with pytest.raises(DraftValidationError) as exc_info:
            validate_draft(draft, _profile())

        assert str(exc_info.value) == "ACHIEVEMENT is not available for needy posts"

    def test_category_label_uses_space(self):
        draft = PostDraft(title="Park cleanup", category=Category.COMMUNITY_SERVICE)

        with pytest.raises(DraftValidationError, match="COMMUNITY SERVICE is not available"):
            validate_draft(draft, _profile())


# =============================================================================
# Composer
# =============================================================================


class TestPostComposer:
    """Tests for PostComposer.open and submit."""

    @pytest.mark.asyncio
    async def test_open_verified_author(self, make_ctx):
        composer = PostComposer(make_ctx(ALICE))

        assert await composer.open() is True
        assert composer.author.display_name == "Alice"
        assert composer.post_types == (PostType.NEEDY,)

    @pytest.mark.asyncio
    async def test_open_organization_author(self, make_ctx):
        composer = PostComposer(make_ctx(HELPING_HANDS))

        assert await composer.open() is True
        assert composer.post_types == (PostType.NEEDY, PostType.ORGANIZATION)

    @pytest.mark.asyncio
    async def test_open_unverified_author(self, make_ctx):
        ctx = make_ctx(CAROL)
        composer = PostComposer(ctx)

        assert await composer.open() is False
        assert ctx.notices.latest.level == NoticeLevel.ERROR
        assert ctx.notices.latest.message == VERIFICATION_REQUIRED

    @pytest.mark.asyncio
    async def test_open_profile_fetch_failure(self, backend, make_ctx):
        """A failed author lookup blocks posting instead of raising."""
        ctx = make_ctx(ALICE)
        composer = PostComposer(ctx)
        backend.fail_on("select", TransientBackendError("HTTP 503"))
        labels = {"error_type": "TransientBackendError", "component": "composer"}
        before = sample_value("errors_total", labels)

        assert await composer.open() is False
        assert composer.author is None
        assert ctx.notices.latest.level == NoticeLevel.ERROR
        assert ctx.notices.latest.message == VERIFICATION_REQUIRED
        assert sample_value("errors_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_open_requires_session(self, make_ctx):
        with pytest.raises(AuthRequiredError):
            await PostComposer(make_ctx(None)).open()

    @pytest.mark.asyncio
    async def test_blood_post_without_media(self, backend, make_ctx, fixed_now):
        """A verified user's blood post is active, text-only and expires 5h after creation."""
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        draft = PostDraft(title="Need O- urgently", category=Category.BLOOD)
        before = sample_value("posts_created_total", {"category": "blood"})

        result = await composer.submit(draft)

        assert result.status == SubmitStatus.CREATED
        assert result.ok
        assert result.post.status == PostStatus.ACTIVE
        assert result.post.media_type == MediaType.TEXT
        assert result.post.media_url is None
        assert result.post.user_id == ALICE
        assert result.post.created_at == fixed_now
        assert (result.post.expires_at - result.post.created_at).total_seconds() == 18000

        stored = backend.tables["posts"][0]
        assert stored["title"] == "Need O- urgently"
        assert stored["status"] == "active"
        assert parse_datetime(stored["expires_at"]) - parse_datetime(
            stored["created_at"]
        ) == timedelta(hours=5)

        assert backend.calls == [("insert", "posts")]
        assert ctx.notices.latest.level == NoticeLevel.SUCCESS
        assert ctx.notices.latest.message == POST_CREATED
        assert draft.title == ""
        assert draft.category is None
        assert draft.media is None
        assert composer.submitting is False
        assert sample_value("posts_created_total", {"category": "blood"}) == before + 1

    @pytest.mark.asyncio
    async def test_non_blood_post_has_no_expiry(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)

        result = await composer.submit(
            PostDraft(title="  Rice for 4  ", description="  ", category=Category.FOOD)
        )

        assert result.post.expires_at is None
        assert backend.tables["posts"][0]["expires_at"] is None
        assert backend.tables["posts"][0]["title"] == "Rice for 4"
        assert backend.tables["posts"][0]["description"] is None

    @pytest.mark.asyncio
    async def test_missing_category_makes_no_network_call(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        draft = PostDraft(title="Need O- urgently")

        result = await composer.submit(draft)

        assert result.status == SubmitStatus.INVALID
        assert backend.calls == []
        assert ctx.notices.latest.level == NoticeLevel.ERROR
        assert ctx.notices.latest.message == REQUIRED_FIELDS_MISSING
        assert draft.title == "Need O- urgently"

    @pytest.mark.asyncio
    async def test_submit_without_open_needs_sign_in(self, backend, make_ctx):
        ctx = make_ctx(ALICE)

        result = await PostComposer(ctx).submit(PostDraft(title="x", category=Category.FOOD))

        assert result.status == SubmitStatus.INVALID
        assert result.message == SIGN_IN_REQUIRED
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_media_is_uploaded_then_linked(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        media = MediaUpload(filename="coats.jpg", content_type="image/jpeg", content=b"\xff\xd8")

        result = await composer.submit(
            PostDraft(title="Winter coats", category=Category.CLOTHES, media=media)
        )

        key = f"post-media/{ALICE}/1705312800000.jpg"
        assert backend.uploads[key] == (b"\xff\xd8", "image/jpeg")
        assert result.post.media_type == MediaType.IMAGE
        assert result.post.media_url.endswith(f"/object/public/{key}")
        assert backend.calls == [("upload", key), ("insert", "posts")]

    @pytest.mark.asyncio
    async def test_video_media_type(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        media = MediaUpload(filename="drive.mp4", content_type="video/mp4", content=b"\x00")

        result = await composer.submit(
            PostDraft(title="Book drive", category=Category.BOOKS, media=media)
        )

        assert result.post.media_type == MediaType.VIDEO

    @pytest.mark.asyncio
    async def test_insert_failure_reports_backend_message(self, backend, make_ctx, fixed_now):
        """The backend message is shown verbatim and the draft is kept."""
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        backend.fail_on(
            "insert",
            BackendError('new row violates row-level security policy for table "posts"'),
        )
        draft = PostDraft(title="Need O- urgently", category=Category.BLOOD)

        result = await composer.submit(draft)

        assert result.status == SubmitStatus.FAILED
        assert ctx.notices.latest.message == (
            'new row violates row-level security policy for table "posts"'
        )
        assert draft.title == "Need O- urgently"
        assert composer.submitting is False
        assert backend.tables["posts"] == []

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_fallback(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        backend.fail_on("insert", BackendError(""))

        result = await composer.submit(PostDraft(title="x", category=Category.FOOD))

        assert result.message == POST_FAILED
        assert ctx.notices.latest.message == POST_FAILED

    @pytest.mark.asyncio
    async def test_upload_failure_skips_insert(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        backend.fail_on("upload", TransientBackendError("HTTP 503"))
        media = MediaUpload(filename="a.png", content_type="image/png", content=b"png")

        result = await composer.submit(
            PostDraft(title="Blankets", category=Category.BLANKETS, media=media)
        )

        assert result.status == SubmitStatus.FAILED
        assert result.message == "HTTP 503"
        assert [op for op, _ in backend.calls] == ["upload"]

    @pytest.mark.asyncio
    async def test_insert_failure_leaves_uploaded_media(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        backend.fail_on("insert", BackendError("insert failed"))
        media = MediaUpload(filename="a.png", content_type="image/png", content=b"png")

        await composer.submit(PostDraft(title="Blankets", category=Category.BLANKETS, media=media))

        assert len(backend.uploads) == 1
        assert backend.tables["posts"] == []

    @pytest.mark.asyncio
    async def test_expiry_window_from_settings(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now)
        ctx.settings.blood_expiry_hours = 3

        result = await composer.submit(PostDraft(title="Need B+", category=Category.BLOOD))

        assert result.post.expires_at == fixed_now + timedelta(hours=3)

    @pytest.mark.asyncio
    async def test_organization_post(self, backend, make_ctx, fixed_now):
        ctx, composer = await _open_composer(make_ctx, fixed_now, HELPING_HANDS)

        result = await composer.submit(
            PostDraft(
                title="Blood camp Saturday",
                category=Category.BLOOD,
                post_type=PostType.ORGANIZATION,
            )
        )

        assert result.ok
        assert result.post.post_type == PostType.ORGANIZATION
        assert result.post.expires_at == fixed_now + timedelta(hours=5)
