"""Per-run cache of Densify insight records, keyed by cluster name."""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from helmopt.models import Insight

logger = logging.getLogger("helmopt.cache")


class AnalysisCache:
    """Cluster → insight list, filled on first access and never refreshed.

    The run is single-threaded, so no locking.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Insight, ...]] = {}

    def get_or_load(self, cluster: str, loader: Callable[[str], list[Insight]]) -> tuple[Insight, ...]:
        """Return the cached insights for *cluster*, calling *loader* only the first time.

        A loader that raises leaves the cache untouched so the next lookup
        tries again.
        """
        if cluster not in self._entries:
            insights = tuple(loader(cluster))
            self._entries[cluster] = insights
            logger.info("Cached %d insight(s) for cluster %s", len(insights), cluster)
        return self._entries[cluster]

    def __contains__(self, cluster: str) -> bool:
        return cluster in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
