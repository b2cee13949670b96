"""Protocol interfaces for dependency injection.

The feed, composer, dispatcher and profile services depend on these
protocols rather than on ``AsyncBackendClient`` directly, so tests can pass
an in-memory double and alternative backends can be swapped in.

Example:
    >>> from communityconnect.interfaces import IBackend
    >>> isinstance(backend, IBackend)  # structural typing, no inheritance
    True
"""

from typing import Any, Protocol, runtime_checkable

from communityconnect.models import AuthSession


@runtime_checkable
class ISessionProvider(Protocol):
    """Authenticated session provider."""

    def get_session(self) -> AuthSession | None:
        """Current session, or None for "no session"."""
        ...


@runtime_checkable
class IDataStore(Protocol):
    """Tabular data store with filtered/sorted select and insert.

    Implementations raise ``BackendError`` for permanent failures; a unique
    constraint violation carries code ``23505``.
    """

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    async def insert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        ...


@runtime_checkable
class IBlobStore(Protocol):
    """Blob store: (path, file) in, public URL out."""

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str,
    ) -> str:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...


@runtime_checkable
class IRemoteProcedures(Protocol):
    """Remote procedure call mechanism."""

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        ...


@runtime_checkable
class IBackend(ISessionProvider, IDataStore, IBlobStore, IRemoteProcedures, Protocol):
    """Everything the services need from the hosted backend."""

    ...


__all__ = [
    "ISessionProvider",
    "IDataStore",
    "IBlobStore",
    "IRemoteProcedures",
    "IBackend",
]
