"""Error types raised while reconciling container labels with a tunnel.

Every error carries a machine-readable ``code`` (an ErrorKind value) and a
human-readable ``message``. Errors are always local to the handling of a
single container event; the watcher loop reports them and moves on.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Categories of reconciliation failures."""

    DISABLED = "disabled"
    NETWORK_UNRESOLVED = "network_unresolved"
    INVALID_RULE = "invalid_rule"
    REMOTE_FETCH_FAILED = "remote_fetch_failed"
    REMOTE_PUBLISH_FAILED = "remote_publish_failed"
    CONFIG_CONFLICT = "config_conflict"
    CONTAINER_NOT_FOUND = "container_not_found"
    DNS_RECORD_FAILED = "dns_record_failed"
    EVENT_STREAM = "event_stream"


class WatcherError(Exception):
    """Base class for all cf-watcher errors."""

    kind: ErrorKind = ErrorKind.INVALID_RULE

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def code(self) -> str:
        return self.kind.value


class LabelParseError(WatcherError):
    """Container labels do not describe a usable routing intent."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.INVALID_RULE,
        properties: list[str] | None = None,
    ) -> None:
        super().__init__(message, kind)
        self.properties = properties or []


class ContainerNotFoundError(WatcherError):
    """The container vanished before it could be inspected."""

    kind = ErrorKind.CONTAINER_NOT_FOUND

    def __init__(self, container_id: str) -> None:
        super().__init__(f"Container not found: {container_id}")
        self.container_id = container_id


class RemoteAPIError(WatcherError):
    """A Cloudflare API call failed.

    ``status`` is None when the request never produced a response
    (connection errors, timeouts, undecodable bodies).
    """

    operation = "request"

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    @classmethod
    def from_response(cls, status: int, body: str) -> RemoteAPIError:
        return cls(
            f"{cls.operation} failed: unexpected response code {status}, body: {body}",
            status=status,
            body=body,
        )


class RemoteFetchFailed(RemoteAPIError):
    kind = ErrorKind.REMOTE_FETCH_FAILED
    operation = "fetch tunnel config"


class RemotePublishFailed(RemoteAPIError):
    kind = ErrorKind.REMOTE_PUBLISH_FAILED
    operation = "publish tunnel config"


class DnsRecordError(RemoteAPIError):
    kind = ErrorKind.DNS_RECORD_FAILED
    operation = "create DNS record"


class ConfigConflictError(WatcherError):
    """The tunnel configuration changed between fetch and publish."""

    kind = ErrorKind.CONFIG_CONFLICT

    def __init__(self, expected: int | None, actual: int | None) -> None:
        super().__init__(
            f"Tunnel configuration changed remotely (expected version {expected}, found {actual})"
        )
        self.expected = expected
        self.actual = actual


class EventStreamError(WatcherError):
    """The Docker event stream failed; the watcher cannot continue."""

    kind = ErrorKind.EVENT_STREAM


def format_error_for_user(error: BaseException) -> str:
    """Render an exception as a single line suitable for the console."""
    if isinstance(error, WatcherError):
        return f"[{error.code}] {error.message}"
    text = str(error)
    if not text:
        return type(error).__name__
    return f"{type(error).__name__}: {text}"
