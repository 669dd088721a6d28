"""Error taxonomy shared by the fetch layer and the playback session."""

from __future__ import annotations

from enum import Enum


class TvShowsError(Exception):
    """Base class for every error surfaced at a screen boundary."""


class FetchErrorKind(str, Enum):
    HOSTS_EXHAUSTED = "hosts_exhausted"
    HTTP_STATUS = "http_status"
    CANCELLED = "cancelled"
    INVALID_RESPONSE = "invalid_response"


class FetchError(TvShowsError):
    """A GET against the media server did not produce a JSON value."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str = "",
        *,
        status: int | None = None,
        body: str | None = None,
        url: str | None = None,
    ):
        self.kind = kind
        self.status = status
        self.body = body
        self.url = url
        if not message:
            message = kind.value
        super().__init__(message)

    @property
    def cancelled(self) -> bool:
        return self.kind is FetchErrorKind.CANCELLED

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": str(self),
            "status": self.status,
            "body": self.body,
        }


class EmptyResultError(TvShowsError):
    """The server returned zero parts for an episode."""


class PlaybackError(TvShowsError):
    """The player reported a decode or stream failure."""
