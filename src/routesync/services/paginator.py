"""Incremental reveal of stored history, one page at a time.

The presentation layer calls ``request_more`` when its "load more"
marker becomes visible; the paginator only tracks how much of the
history is revealed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from routesync.models.history import HistoryStore
    from routesync.models.session import CompletedSession

logger = logging.getLogger("routesync.paginator")

DEFAULT_PAGE_SIZE = 5
DEFAULT_LOAD_LATENCY = 0.3


class HistoryPaginator:
    """Reveal history in fixed-size pages."""

    def __init__(
        self,
        store: HistoryStore | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        latency_s: float = DEFAULT_LOAD_LATENCY,
    ) -> None:
        """Initialize the paginator.

        When bound to a store, the paginator starts over from the first
        page after every change to the stored history.

        Args:
            store: History to paginate.
            page_size: Sessions revealed per page.
            latency_s: Simulated delay before a page is revealed.
        """
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.store = store
        self.page_size = page_size
        self.latency_s = latency_s
        self.total = 0
        self.revealed_count = 0
        self.has_more = False
        self.loading = False
        self._generation = 0
        if store is not None:
            store.add_listener(lambda _store: self.initialize())
            self.initialize()

    def initialize(self, total: int | None = None) -> None:
        """Reveal the first page.

        A page request still waiting when this runs is discarded.

        Args:
            total: Number of sessions available; defaults to the size of
                the bound store.
        """
        if total is None:
            total = len(self.store) if self.store is not None else 0
        self.total = total
        self.revealed_count = min(self.page_size, total)
        self.has_more = self.revealed_count < total
        self.loading = False
        self._generation += 1

    async def request_more(self) -> None:
        """Reveal the next page.

        Does nothing while a page is loading or when everything is
        already revealed.
        """
        if self.loading or not self.has_more:
            return
        self.loading = True
        generation = self._generation
        try:
            if self.latency_s > 0:
                await asyncio.sleep(self.latency_s)
            if generation != self._generation:
                return
            self.revealed_count = min(self.revealed_count + self.page_size, self.total)
            self.has_more = self.revealed_count < self.total
            logger.debug("Revealed %d of %d sessions", self.revealed_count, self.total)
        finally:
            if generation == self._generation:
                self.loading = False

    def visible(self) -> list[CompletedSession]:
        """Sessions revealed so far, most recent first."""
        if self.store is None:
            return []
        return list(self.store.sessions[: self.revealed_count])
