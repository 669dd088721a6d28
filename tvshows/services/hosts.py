"""Candidate media-server hosts with a persisted "last known good" index."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import StateStore

logger = logging.getLogger(__name__)

HOST_INDEX_KEY = "host_index"


@dataclass(frozen=True)
class Host:
    address: str  # host:port, e.g. "192.168.1.2:3000"

    @property
    def base_url(self) -> str:
        if self.address.startswith(("http://", "https://")):
            return self.address.rstrip("/")
        return f"http://{self.address.rstrip('/')}"


class HostRegistry:
    """Ordered, fixed list of hosts and the index of the one to use.

    The index is read from the state store on first use and written on
    every change. A failed write is logged and otherwise ignored.
    """

    def __init__(self, addresses: list[str], store: StateStore | None = None):
        if not addresses:
            raise ValueError("HostRegistry needs at least one host")
        self.hosts: tuple[Host, ...] = tuple(Host(a) for a in addresses)
        self.store = store
        self._index: int | None = None

    def __len__(self) -> int:
        return len(self.hosts)

    @property
    def index(self) -> int:
        if self._index is None:
            self._index = self._load_index()
        return self._index

    def _load_index(self) -> int:
        if self.store is None:
            return 0
        raw = self.store.get(HOST_INDEX_KEY, 0)
        try:
            index = int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid persisted host index: {raw!r}")
            return 0
        return index % len(self.hosts)

    def current(self) -> Host:
        return self.hosts[self.index]

    def advance(self) -> Host:
        """Rotate to the next host and persist the new index."""
        previous = self.current()
        self._index = (self.index + 1) % len(self.hosts)
        self._persist()
        host = self.current()
        logger.info(f"Switched host {previous.address} -> {host.address}")
        return host

    def reset(self, index: int = 0) -> Host:
        if not 0 <= index < len(self.hosts):
            raise IndexError(f"Host index {index} out of range (0..{len(self.hosts) - 1})")
        self._index = index
        self._persist()
        return self.current()

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            if not self.store.set(HOST_INDEX_KEY, self._index):
                logger.warning(f"Host index {self._index} not persisted")
        except Exception as e:
            logger.warning(f"Failed to persist host index {self._index}: {e}")
