"""Explicit application context.

Each service receives an ``AppContext`` carrying the backend handle, the
current session and the notice board, instead of reaching for process-wide
singletons.
"""

from communityconnect.api import AuthRequiredError
from communityconnect.config import Settings, settings as default_settings
from communityconnect.interfaces import IBackend
from communityconnect.logging import set_log_context
from communityconnect.models import AuthSession
from communityconnect.notices import NoticeBoard


class AppContext:
    """Session + data-access handle threaded into every service.

    Args:
        backend: Data store, blob store, RPC and session provider
        session: Signed-in session, or None
        notices: Where user-visible messages go (new board if None)
        settings: Settings for bucket names and post lifetimes

    Example:
        >>> async with AsyncBackendClient() as backend:
        ...     await backend.sign_in_with_password(email, password)
        ...     ctx = AppContext.from_backend(backend)
        ...     posts = await FeedLoader(ctx).load()
    """

    def __init__(
        self,
        backend: IBackend,
        session: AuthSession | None = None,
        notices: NoticeBoard | None = None,
        settings: Settings | None = None,
    ):
        self.backend  = backend
        self.session  = session
        self.notices  = notices if notices is not None else NoticeBoard()
        self.settings = settings or default_settings

    @classmethod
    def from_backend(
        cls,
        backend: IBackend,
        notices: NoticeBoard | None = None,
        settings: Settings | None = None,
    ) -> "AppContext":
        """Build a context from the backend's current session."""
        session = backend.get_session()
        if session is not None:
            set_log_context(user_id=session.user_id)
        return cls(backend, session, notices, settings)

    @property
    def user_id(self) -> str | None:
        return self.session.user_id if self.session else None

    def require_user(self) -> str:
        """Return the signed-in user ID.

        Raises:
            AuthRequiredError: When there is no session
        """
        if self.session is None:
            raise AuthRequiredError("Sign in required")
        return self.session.user_id


__all__ = ["AppContext"]
