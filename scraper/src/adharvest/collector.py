"""Incremental creative collection over a lazily loaded results page.

The transparency center renders creatives in batches as the page is scrolled
or its "Load more" button is pressed. A single extraction therefore only sees
part of the result set, and consecutive extractions overlap. The collector
keeps one accumulating map per run, keyed by image URL, and merges every pass
into it:

- a new image URL inserts a :class:`CollectedCreative`;
- a known image URL keeps its first non-empty alt text and unions its snippets.

Every session call is bounded: readiness by ``ready_timeout_ms``, each
extraction and each request for more content by ``pass_timeout_ms``. An overrun
raises :class:`CollectionTimeout`.

Collection stops after ``stagnant_threshold`` consecutive passes that add no
new image URL, or after ``max_passes`` passes, whichever comes first.

Merging a pass never awaits, so cancelling :meth:`CreativeCollector.run` at any
suspension point leaves :meth:`CreativeCollector.results` consistent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from .errors import CollectionTimeout
from .logging import jlog
from .snippets import MAX_SNIPPETS, merge_snippets, unique_snippets

DEFAULT_MAX_PASSES = 16
DEFAULT_STAGNANT_THRESHOLD = 3
DEFAULT_SETTLE_DELAY_MS = 1200
DEFAULT_READY_TIMEOUT_MS = 20000
DEFAULT_PASS_TIMEOUT_MS = 15000

T = TypeVar("T")


@dataclass(frozen=True)
class CreativeObservation:
    """One creative as seen by a single extraction pass."""

    image_url: str
    alt_text: str | None = None
    text_snippets: tuple[str, ...] = ()


@dataclass
class CollectedCreative:
    """A unique creative accumulated over the whole run."""

    image_url: str
    alt_text: str | None = None
    text_snippets: list[str] = field(default_factory=list)


class PageSession(Protocol):
    """Page automation surface the collector drives."""

    async def wait_until_ready(self, timeout_ms: int) -> None:
        """Return once creatives are rendered; raise :class:`CollectionTimeout` otherwise."""

    async def extract(self) -> list[CreativeObservation]:
        """Return the creatives currently rendered on the page."""

    async def request_more(self) -> None:
        """Trigger loading of further creatives (pagination or scroll)."""


@dataclass(frozen=True)
class CollectorConfig:
    max_passes: int = DEFAULT_MAX_PASSES
    stagnant_threshold: int = DEFAULT_STAGNANT_THRESHOLD
    settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS
    ready_timeout_ms: int = DEFAULT_READY_TIMEOUT_MS
    pass_timeout_ms: int = DEFAULT_PASS_TIMEOUT_MS
    snippet_cap: int = MAX_SNIPPETS


class CreativeCollector:
    """Owns the dedup map for one collection run."""

    def __init__(self, config: CollectorConfig | None = None) -> None:
        self.config = config or CollectorConfig()
        self._creatives: dict[str, CollectedCreative] = {}
        self.passes = 0
        self.stagnant_rounds = 0

    def __len__(self) -> int:
        return len(self._creatives)

    def absorb(self, observations: Iterable[CreativeObservation]) -> int:
        """Merge one pass into the map and return how many new image URLs it added."""

        cap = self.config.snippet_cap
        added = 0
        for obs in observations:
            existing = self._creatives.get(obs.image_url)
            if existing is None:
                self._creatives[obs.image_url] = CollectedCreative(
                    image_url=obs.image_url,
                    alt_text=obs.alt_text or None,
                    text_snippets=unique_snippets(obs.text_snippets, cap),
                )
                added += 1
                continue
            if not existing.alt_text and obs.alt_text:
                existing.alt_text = obs.alt_text
            existing.text_snippets = merge_snippets(existing.text_snippets, obs.text_snippets, cap)
        return added

    def results(self) -> list[CollectedCreative]:
        """Collected creatives in first-seen order."""

        return list(self._creatives.values())

    def converged(self) -> bool:
        return self.stagnant_rounds >= self.config.stagnant_threshold

    async def _bounded(self, step: str, awaitable: Awaitable[T], timeout_ms: int) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
        except TimeoutError as exc:
            jlog(
                "error",
                event="collection_step_timeout",
                step=step,
                pass_index=self.passes,
                timeout_ms=timeout_ms,
                collected=len(self),
            )
            raise CollectionTimeout(f"{step} (pass {self.passes}) exceeded {timeout_ms}ms") from exc

    async def run(self, session: PageSession) -> list[CollectedCreative]:
        cfg = self.config
        await self._bounded("wait_until_ready", session.wait_until_ready(cfg.ready_timeout_ms), cfg.ready_timeout_ms)

        while self.passes < cfg.max_passes:
            observations = await self._bounded("extract", session.extract(), cfg.pass_timeout_ms)
            self.passes += 1

            added = self.absorb(observations)
            self.stagnant_rounds = 0 if added else self.stagnant_rounds + 1
            jlog(
                "info",
                event="collection_pass",
                pass_index=self.passes,
                observed=len(observations),
                added=added,
                collected=len(self),
                stagnant_rounds=self.stagnant_rounds,
            )

            if self.converged():
                jlog("info", event="collection_converged", passes=self.passes, collected=len(self))
                break
            if self.passes >= cfg.max_passes:
                jlog("info", event="collection_pass_budget_exhausted", passes=self.passes, collected=len(self))
                break

            await self._bounded("request_more", session.request_more(), cfg.pass_timeout_ms)
            await asyncio.sleep(cfg.settle_delay_ms / 1000)

        return self.results()


async def collect_creatives(session: PageSession, config: CollectorConfig | None = None) -> list[CollectedCreative]:
    """Run a fresh :class:`CreativeCollector` against ``session``."""

    return await CreativeCollector(config).run(session)


__all__ = [
    "CollectedCreative",
    "CollectorConfig",
    "CreativeCollector",
    "CreativeObservation",
    "PageSession",
    "collect_creatives",
]
