"""
Narration Queue — background vibe narratives.

After a word is scored, a one- or two-sentence "vibe interpretation"
is generated by the LLM and attached to the cached result. This
runs off the request path: submit() enqueues and returns, a worker
task drains the queue. A narration failure is logged and counted,
never raised into the request that triggered it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from vibescope.cache import ResultCache
from vibescope.llm import LLMProvider
from vibescope.logging import get_logger
from vibescope.neighbors import Neighbor
from vibescope.store import PersistentStore

logger = get_logger("narration")

STRONG_AXIS_THRESHOLD = 0.3

NARRATION_PROMPT = """Write a 1-2 sentence vibe interpretation for the word "{term}".

Data:
- Strongest positive trait: {positive}
- Strongest negative trait: {negative}
- Semantic neighbors: {neighbors}

Style: Poetic but precise. Reference the data naturally. Max 40 words."""


COMPARE_PROMPT = """Compare the vibes of: {terms}.

Vibe distance: {distance:.2f} (0=identical, 2=opposite)

Write 1-2 sentences about their relationship. Max 40 words."""

COMPARE_EMPTY_FALLBACK = "These terms dance in different dimensions of meaning."
COMPARE_ERROR_FALLBACK = "An interesting contrast in semantic space."


def fallback_narrative(term: str) -> str:
    return f'"{term}" has a unique vibe that defies simple description.'


def build_prompt(term: str, axes: dict[str, float], neighbors: list[Neighbor]) -> str:
    ranked = sorted(axes.items(), key=lambda kv: abs(kv[1]), reverse=True)
    strongest_pos = next(((k, v) for k, v in ranked if v > STRONG_AXIS_THRESHOLD), None)
    strongest_neg = next(((k, v) for k, v in ranked if v < -STRONG_AXIS_THRESHOLD), None)

    def _fmt(item):
        return f"{item[0]} ({item[1]:.2f})" if item else "none"

    closest = ", ".join(n.term for n in neighbors[:3]) or "none"
    return NARRATION_PROMPT.format(
        term=term,
        positive=_fmt(strongest_pos),
        negative=_fmt(strongest_neg),
        neighbors=closest,
    )


@dataclass(frozen=True)
class NarrationJob:
    term: str
    axes: dict[str, float]
    neighbors: list[Neighbor]


class NarrationQueue:
    """Bounded background queue that writes narratives to the caches."""

    def __init__(
        self,
        llm: LLMProvider,
        cache: ResultCache,
        store: Optional[PersistentStore] = None,
        max_pending: int = 100,
    ):
        self._llm = llm
        self._cache = cache
        self._store = store
        self._queue: asyncio.Queue[NarrationJob] = asyncio.Queue(maxsize=max_pending)
        self._worker: Optional[asyncio.Task] = None
        self.completed = 0
        self.failed = 0
        self.dropped = 0

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, term: str, axes: dict[str, float], neighbors: list[Neighbor]) -> bool:
        """Enqueue a narration job. Never blocks; drops the job when full."""
        try:
            self._queue.put_nowait(NarrationJob(term=term, axes=dict(axes), neighbors=list(neighbors)))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Narration queue full — job dropped",
                extra={"term": term, "queue_size": self._queue.qsize()},
            )
            return False
        return True

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            finally:
                self._queue.task_done()

    async def process(self, job: NarrationJob) -> Optional[str]:
        """Generate and store one narrative. Returns it, or None on failure."""
        try:
            narrative = await self._llm.generate(
                build_prompt(job.term, job.axes, job.neighbors),
                temperature=0.8,
                max_output_tokens=80,
            )
            narrative = narrative.strip() or fallback_narrative(job.term)
            await self._cache.set_narrative(job.term, narrative)
            if self._store is not None:
                self._store.set_narrative(job.term, narrative)
        except Exception as e:
            self.failed += 1
            logger.warning(
                "Narration failed",
                extra={"term": job.term, "error": str(e), "error_type": type(e).__name__},
            )
            return None
        self.completed += 1
        return narrative

    async def narrate_comparison(self, terms: list[str], distance: float) -> str:
        """Narrate a comparison inline. Never raises; failures yield a fallback."""
        prompt = COMPARE_PROMPT.format(terms=" vs ".join(terms), distance=distance)
        try:
            narrative = await self._llm.generate(prompt, temperature=0.8, max_output_tokens=60)
        except Exception as e:
            self.failed += 1
            logger.warning(
                "Comparison narration failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return COMPARE_ERROR_FALLBACK
        self.completed += 1
        return narrative.strip() or COMPARE_EMPTY_FALLBACK

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def shutdown(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    @property
    def stats(self) -> dict:
        return {
            "pending": self._queue.qsize(),
            "completed": self.completed,
            "failed": self.failed,
            "dropped": self.dropped,
        }
