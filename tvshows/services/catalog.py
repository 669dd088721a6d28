"""Media server catalog: home listing, paginated episodes and episode parts."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import quote

from ..errors import EmptyResultError, FetchError, FetchErrorKind
from .fetch import FetchClient

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


@dataclass(frozen=True)
class Show:
    title: str
    icon: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Part:
    """One contiguous video segment of an episode."""

    title: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EpisodeList:
    """Episodes of one show, newest first.

    ``pages`` is the continuation cursor: how many pages have been
    appended so far. A new page only ever extends ``episodes``.
    """

    channel: str
    show: str
    episodes: tuple[str, ...] = ()
    has_more: bool = False
    pages: int = 0

    def __len__(self) -> int:
        return len(self.episodes)

    def extend(self, page: list[str], has_more: bool) -> EpisodeList:
        return EpisodeList(
            channel=self.channel,
            show=self.show,
            episodes=self.episodes + tuple(page),
            has_more=has_more,
            pages=self.pages + 1,
        )

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "show": self.show,
            "episodes": list(self.episodes),
            "has_more": self.has_more,
            "pages": self.pages,
        }


def _new_entries(existing: tuple[str, ...], page: list[str]) -> list[str]:
    """Entries of ``page`` that are not already in ``existing``.

    The server answers "load more" with everything it has loaded so far,
    so a page that starts with the existing list contributes only its tail.
    """
    if existing and tuple(page[: len(existing)]) == existing:
        return page[len(existing):]
    return page


def _parse_episodes(data: Any, url: str) -> tuple[list[str], bool]:
    if not isinstance(data, dict) or not isinstance(data.get("episodes"), list):
        raise FetchError(FetchErrorKind.INVALID_RESPONSE, f"{url}: missing episodes", url=url)
    return [str(e) for e in data["episodes"]], bool(data.get("has_more", False))


class EpisodeCatalog:
    """Catalog queries for one screen, sharing that screen's FetchClient."""

    def __init__(self, client: FetchClient):
        self.client = client
        self._loading_more: set[tuple[str, str]] = set()

    async def home(self) -> dict[str, list[Show]]:
        """Channels and their shows, in server order."""
        data = await self.client.get("/home")
        if not isinstance(data, dict):
            raise FetchError(FetchErrorKind.INVALID_RESPONSE, "/home: expected a mapping")
        channels: dict[str, list[Show]] = {}
        for channel, shows in data.items():
            channels[channel] = [
                Show(title=s.get("title", ""), icon=s.get("icon")) for s in shows or []
            ]
        return channels

    async def load(
        self, channel: str, show: str, cursor: EpisodeList | None = None
    ) -> EpisodeList:
        """Load the first page, or append the next page to ``cursor``."""
        load_more = cursor is not None and cursor.pages > 0
        path = f"/episodes/{_segment(channel)}/{_segment(show)}"
        data = await self.client.get(path, {"load_more": "true" if load_more else "false"})
        page, has_more = _parse_episodes(data, path)

        base = cursor if load_more else EpisodeList(channel=channel, show=show)
        fresh = _new_entries(base.episodes, page)
        result = base.extend(fresh, has_more)
        logger.info(
            f"Loaded {len(fresh)} episodes for {channel} > {show} "
            f"(total {len(result)}, has_more={has_more})"
        )
        return result

    async def load_more(self, episodes: EpisodeList) -> EpisodeList | None:
        """Append the next page; ``None`` if one is already pending for this show."""
        key = (episodes.channel, episodes.show)
        if key in self._loading_more:
            logger.debug(f"Ignoring duplicate load more for {key}")
            return None
        self._loading_more.add(key)
        try:
            return await self.load(episodes.channel, episodes.show, cursor=episodes)
        finally:
            self._loading_more.discard(key)

    async def all_episodes(self, channel: str, show: str) -> list[str]:
        """Fresh newest-first listing of a show."""
        return list((await self.load(channel, show)).episodes)

    async def parts(self, channel: str, show: str, episode: str) -> list[Part]:
        """Playable parts of an episode, in order."""
        path = f"/episode/{_segment(channel)}/{_segment(show)}/{_segment(episode)}"
        data = await self.client.get(path)
        if not isinstance(data, list):
            raise FetchError(FetchErrorKind.INVALID_RESPONSE, f"{path}: expected a list", url=path)
        parts = [self._part(item, path) for item in data]
        if not parts:
            raise EmptyResultError(f"No parts found for {channel} > {show} > {episode}")
        return parts

    def _part(self, item: Any, path: str) -> Part:
        if isinstance(item, dict) and item.get("url"):
            title, url = item.get("title", ""), item["url"]
        elif isinstance(item, (list, tuple)) and len(item) >= 2:
            title, url = item[0], item[1]
        else:
            raise FetchError(
                FetchErrorKind.INVALID_RESPONSE, f"{path}: malformed part {item!r}", url=path
            )
        return Part(title=str(title), url=self.resolve_url(str(url)))

    def resolve_url(self, url: str) -> str:
        """Server-relative part urls are served by the current host."""
        if url.startswith("/"):
            return f"{self.client.registry.current().base_url}{url}"
        return url
