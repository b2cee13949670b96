"""User-visible notices.

Every user-facing outcome (validation failures, duplicate requests,
verbatim backend errors, success confirmations) is posted to a
``NoticeBoard`` instead of being raised. A front end renders the board; the
CLI prints it with rich.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from communityconnect.logging import logger
from communityconnect.utils import utc_now


class NoticeLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    """A transient message for the user."""

    level: NoticeLevel
    message: str
    created_at: datetime = Field(default_factory=utc_now)


class NoticeBoard:
    """Ordered collection of notices posted during a session.

    Example:
        >>> board = NoticeBoard()
        >>> board.error("Failed to load posts")
        >>> board.latest.message
        'Failed to load posts'
    """

    def __init__(self) -> None:
        self._notices: list[Notice] = []

    def post(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self._notices.append(notice)
        logger.bind(notice=level.value).log(
            "WARNING" if level == NoticeLevel.ERROR else "INFO", message
        )
        return notice

    def info(self, message: str) -> Notice:
        return self.post(NoticeLevel.INFO, message)

    def success(self, message: str) -> Notice:
        return self.post(NoticeLevel.SUCCESS, message)

    def error(self, message: str) -> Notice:
        return self.post(NoticeLevel.ERROR, message)

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    @property
    def latest(self) -> Notice | None:
        return self._notices[-1] if self._notices else None

    @property
    def errors(self) -> list[Notice]:
        return [n for n in self._notices if n.level == NoticeLevel.ERROR]

    def drain(self) -> list[Notice]:
        """Return all notices and clear the board."""
        drained, self._notices = self._notices, []
        return drained

    def clear(self) -> None:
        self._notices.clear()

    def __len__(self) -> int:
        return len(self._notices)


__all__ = ["NoticeLevel", "Notice", "NoticeBoard"]
