"""Type definitions for raw backend rows.

TypedDict shapes for the JSON that crosses the wire before (or instead of)
pydantic validation: insert payloads and RPC parameters.

Reference:
    - PEP 589 TypedDict: https://peps.python.org/pep-0589/

Example:
    >>> from communityconnect.types import HelpRequestRow
    >>> row: HelpRequestRow = {"post_id": "p1", "requester_id": "u2"}
"""

from typing import Any, NotRequired, Required, TypedDict

# =============================================================================
# Insert Payloads
# =============================================================================


class NewPostRow(TypedDict, total=False):
    """Row inserted into ``posts`` by the composer.

    Timestamps are ISO8601 strings with a ``Z`` suffix.
    """

    user_id: Required[str]
    title: Required[str]
    description: NotRequired[str | None]
    category: Required[str]
    post_type: Required[str]
    media_url: NotRequired[str | None]
    media_type: Required[str]
    status: Required[str]
    created_at: Required[str]
    expires_at: NotRequired[str | None]


class HelpRequestRow(TypedDict):
    """Row inserted into ``post_requests``."""

    post_id: str
    requester_id: str


# =============================================================================
# RPC Parameters
# =============================================================================


class NotificationParams(TypedDict):
    """Parameters of the ``create_notification`` RPC."""

    p_user_id: str
    p_message: str
    p_type: str
    p_related_post_id: str


# =============================================================================
# Backend Error Body
# =============================================================================


class ErrorBody(TypedDict, total=False):
    """Error JSON returned by PostgREST, storage or auth.

    PostgREST uses ``code``/``message``/``details``/``hint``; storage and
    auth use ``error``/``error_description``/``msg``/``statusCode``.
    """

    code: str
    message: str
    details: Any
    hint: str | None
    error: str
    error_description: str
    msg: str
    statusCode: str


__all__ = [
    "NewPostRow",
    "HelpRequestRow",
    "NotificationParams",
    "ErrorBody",
]
