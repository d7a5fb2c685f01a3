"""Wait for an asynchronous diagnostic collaborator to settle on a document.

Diagnostics can arrive in several batches while a collaborator indexes the
project, so returning on the first push may read an incomplete set. The
stabilizer waits for the first push, then until pushes stop for a short
window, within a hard cap.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from utgen.diagnostics.source import DiagnosticSeverity

if TYPE_CHECKING:
    from utgen.diagnostics.source import Diagnostic, DiagnosticSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StabilizerTimings:
    """All durations in seconds."""

    first_push_timeout: float = 10.0
    """How long to wait for the first diagnostic push."""

    poll_interval: float = 0.1
    """Tick of the stability polling loop."""

    stability_window: float = 0.5
    """Quiet period after the last push that counts as settled."""

    max_wait: float = 5.0
    """Cap on the polling loop after the first push."""

    grace_period: float = 1.0
    """Extra wait granted once when ``max_wait`` is reached."""


@dataclass
class DiagnosticReport:
    """Settled diagnostics for one document."""

    uri: str
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)
    received: bool = False
    """False when the collaborator never pushed anything."""

    stabilized: bool = False
    """False when the cap (plus grace period) ended the wait."""

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class DiagnosticStabilizer:
    """Opens a document on a source and returns its settled diagnostics."""

    def __init__(self, timings: StabilizerTimings | None = None) -> None:
        self.timings = timings or StabilizerTimings()

    async def wait_for_diagnostics(
        self, source: DiagnosticSource, uri: str, content: str
    ) -> DiagnosticReport:
        timings = self.timings
        first_arrival = source.cache.expect(uri)
        source.open_document(uri, content)

        received = await asyncio.to_thread(first_arrival.wait, timings.first_push_timeout)
        if not received:
            logger.warning(
                "No diagnostics from %s for %s within %.1fs",
                source.name,
                uri,
                timings.first_push_timeout,
            )
            return DiagnosticReport(uri=uri)

        stabilized = False
        started = time.monotonic()
        while True:
            await asyncio.sleep(timings.poll_interval)
            now = time.monotonic()
            if now - source.cache.last_update(uri) >= timings.stability_window:
                stabilized = True
                break
            if now - started >= timings.max_wait:
                logger.info(
                    "Diagnostics for %s still changing after %.1fs, granting %.1fs grace",
                    uri,
                    timings.max_wait,
                    timings.grace_period,
                )
                await asyncio.sleep(timings.grace_period)
                break

        diagnostics = source.cache.get(uri)
        report = DiagnosticReport(
            uri=uri,
            errors=[d for d in diagnostics if d.severity is DiagnosticSeverity.ERROR],
            warnings=[d for d in diagnostics if d.severity is DiagnosticSeverity.WARNING],
            received=True,
            stabilized=stabilized,
        )
        logger.debug(
            "Diagnostics settled for %s after %d batch(es): %d error(s), %d warning(s)",
            uri,
            source.cache.batches(uri),
            len(report.errors),
            len(report.warnings),
        )
        return report
