"""Requests to help on someone else's post.

A request is one ``post_requests`` row per (post, requester) pair; the
backend rejects a second one with a unique violation, which is reported to
the user as a soft "already requested" notice. After the row is stored the
post owner is notified through the ``create_notification`` RPC. The two
calls are independent: if the RPC fails, the request stays recorded and the
owner is not notified.

The own-post and inactive-post checks here only mirror what the UI hides;
they are not enforced by the backend.
"""

from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ValidationError

from communityconnect.api import BackendError, TransientBackendError
from communityconnect.context import AppContext
from communityconnect.logging import log_context, logger
from communityconnect.metrics import errors_total, help_requests_total
from communityconnect.models import HelpRequest, Post, PostStatus, Profile
from communityconnect.repository import Repository
from communityconnect.types import HelpRequestRow, NotificationParams

SIGN_IN_REQUIRED = "Please log in to send requests"
NOT_ALLOWED = "You can't request to help on this post"
ALREADY_REQUESTED = "You've already sent a request for this post"
REQUEST_SENT = "Request sent successfully!"
REQUEST_FAILED = "Failed to send request"

NOTIFICATION_TYPE = "request"


class RequestOutcome(StrEnum):
    SENT = "sent"
    DUPLICATE = "duplicate"
    UNAUTHENTICATED = "unauthenticated"
    NOT_ALLOWED = "not_allowed"
    FAILED = "failed"


class RequestResult(BaseModel):
    """Outcome of one request-to-help attempt."""

    outcome: RequestOutcome
    message: str
    request: Optional[HelpRequest] = None

    @property
    def ok(self) -> bool:
        return self.outcome == RequestOutcome.SENT


def can_request(post: Post, user_id: str | None) -> bool:
    """Whether the help action is offered: someone else's post, still active."""
    if post.status != PostStatus.ACTIVE:
        return False
    return user_id is None or post.user_id != user_id


def action_label(post: Post) -> str:
    """Label for the help action on a post card."""
    return "Fulfilled" if post.status == PostStatus.FULFILLED else "Request to Help"


def notification_message(requester_name: str) -> str:
    return f"{requester_name} wants to help with your post"


class RequestDispatcher:
    """Records help requests and notifies post owners.

    Args:
        ctx: Application context
        on_request_sent: Awaited after a successful request (e.g. a feed reload)

    Example:
        >>> dispatcher = RequestDispatcher(ctx, on_request_sent=loader.load)
        >>> result = await dispatcher.request_help(post)
        >>> result.outcome
        <RequestOutcome.SENT: 'sent'>
    """

    def __init__(
        self,
        ctx: AppContext,
        on_request_sent: Callable[[], Awaitable[object]] | None = None,
    ):
        self.ctx             = ctx
        self.on_request_sent = on_request_sent
        self.requesting      = False
        self._requester: Profile | None = None
        self._requests = Repository[HelpRequest](ctx.backend, "post_requests", HelpRequest)
        self._profiles = Repository[Profile](ctx.backend, "profiles", Profile)

    async def _requester_name(self, user_id: str) -> str:
        if self._requester is None or self._requester.id != user_id:
            self._requester = await self._profiles.get(user_id)
        return self._requester.display_name if self._requester else "Someone"

    def _finish(self, outcome: RequestOutcome, message: str, **kwargs) -> RequestResult:
        help_requests_total.labels(outcome=outcome.value).inc()
        return RequestResult(outcome=outcome, message=message, **kwargs)

    async def request_help(self, post: Post) -> RequestResult:
        """Record a request to help on ``post`` and notify its owner."""
        with log_context(operation="request_help", post_id=post.id):
            return await self._request_help(post)

    async def _request_help(self, post: Post) -> RequestResult:
        user_id = self.ctx.user_id

        if user_id is None:
            self.ctx.notices.error(SIGN_IN_REQUIRED)
            return self._finish(RequestOutcome.UNAUTHENTICATED, SIGN_IN_REQUIRED)

        if not can_request(post, user_id):
            logger.debug("Help action not offered")
            return self._finish(RequestOutcome.NOT_ALLOWED, NOT_ALLOWED)

        self.requesting = True
        try:
            requester_name = await self._requester_name(user_id)
            row: HelpRequestRow = {"post_id": post.id, "requester_id": user_id}
            try:
                request = await self._requests.create(row)
            except BackendError as e:
                if not e.is_unique_violation:
                    raise
                self.ctx.notices.error(ALREADY_REQUESTED)
                logger.info("Duplicate help request")
                return self._finish(RequestOutcome.DUPLICATE, ALREADY_REQUESTED)

            params: NotificationParams = {
                "p_user_id": post.user_id,
                "p_message": notification_message(requester_name),
                "p_type": NOTIFICATION_TYPE,
                "p_related_post_id": post.id,
            }
            await self.ctx.backend.rpc("create_notification", dict(params))

        except (BackendError, TransientBackendError, ValidationError) as e:
            message = (e.message if isinstance(e, BackendError) else str(e)) or REQUEST_FAILED
            self.ctx.notices.error(message)
            logger.error(f"❌ Failed to send help request: {e}")
            errors_total.labels(error_type=type(e).__name__, component="help_requests").inc()
            return self._finish(RequestOutcome.FAILED, message)

        finally:
            self.requesting = False

        logger.info("✅ Help request sent")
        self.ctx.notices.success(REQUEST_SENT)
        if self.on_request_sent is not None:
            await self.on_request_sent()
        return self._finish(RequestOutcome.SENT, REQUEST_SENT, request=request)


__all__ = [
    "RequestDispatcher",
    "RequestOutcome",
    "RequestResult",
    "action_label",
    "can_request",
    "notification_message",
]
