"""Find the episode to auto-play once the current one has finished."""

from __future__ import annotations

import logging

from ..errors import FetchError
from .catalog import EpisodeCatalog

logger = logging.getLogger(__name__)


class ContinuationResolver:
    """Resolves the chronologically next (older) episode of a show.

    Episode lists are newest first, so the episode to continue with sits
    one position after the current one.
    """

    def __init__(self, catalog: EpisodeCatalog):
        self.catalog = catalog

    async def resolve(self, channel: str, show: str, episode: str) -> str | None:
        logger.info(f"Done playing all parts of {episode}, trying to play next..")
        try:
            episodes = await self.catalog.all_episodes(channel, show)
        except FetchError as e:
            if e.cancelled:
                logger.debug(f"Episode refresh for {show} was cancelled")
                return None
            logger.error(f"Something went wrong while loading episodes for {channel} > {show}: {e}")
            return None

        try:
            index = episodes.index(episode)
        except ValueError:
            logger.info(f"{episode} is no longer listed for {channel} > {show}")
            return None

        if index == len(episodes) - 1:
            logger.info("This is the oldest episode, can't play next")
            return None

        next_episode = episodes[index + 1]
        logger.info(f"Playing next episode: {next_episode}")
        return next_episode
