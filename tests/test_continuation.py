"""Tests for tvshows.services.continuation."""

import httpx

from tvshows.services.catalog import EpisodeCatalog
from tvshows.services.continuation import ContinuationResolver
from tvshows.services.fetch import FetchClient
from tvshows.services.hosts import HostRegistry


def _resolver(handler):
    registry = HostRegistry(["tv.local:3000"])
    client = FetchClient(registry, transport=httpx.MockTransport(handler))
    return ContinuationResolver(EpisodeCatalog(client))


def _listing(*episodes):
    return lambda request: httpx.Response(200, json={"episodes": list(episodes), "has_more": True})


async def test_next_is_the_older_episode():
    resolver = _resolver(_listing("E5", "E4", "E3"))
    assert await resolver.resolve("Star Plus", "Anupamaa", "E4") == "E3"
    assert await resolver.resolve("Star Plus", "Anupamaa", "E5") == "E4"


async def test_oldest_episode_has_no_next():
    resolver = _resolver(_listing("E5", "E4", "E3"))
    assert await resolver.resolve("Star Plus", "Anupamaa", "E3") is None


async def test_missing_episode_stops_silently():
    """The list may have moved on since the episode was opened."""
    resolver = _resolver(_listing("E7", "E6", "E5"))
    assert await resolver.resolve("Star Plus", "Anupamaa", "E1") is None


async def test_fetch_failure_returns_none():
    resolver = _resolver(lambda request: httpx.Response(500, text="Couldn't find Soap"))
    assert await resolver.resolve("Star Plus", "Anupamaa", "E4") is None


async def test_unreachable_hosts_return_none():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    assert await _resolver(handler).resolve("Star Plus", "Anupamaa", "E4") is None


async def test_refreshes_first_page():
    seen = []

    def handler(request):
        seen.append(request.url.params["load_more"])
        return httpx.Response(200, json={"episodes": ["E2", "E1"], "has_more": False})

    await _resolver(handler).resolve("Star Plus", "Anupamaa", "E2")
    assert seen == ["false"]
