"""Fire-and-forget image enrichment.

When an image is stored with its analysis marked as pending, the API hands
the record to :meth:`EnrichmentRunner.schedule`.  The call returns at once
with a detached :class:`asyncio.Task`; the task later asks the analyzer for a
description and settles the record's ``analysis`` field with either the text
or an ``"Error analyzing image: ..."`` message.

Only one task is ever scheduled per record, at creation, so settlement has a
single writer.  Failures are never retried and never reach the client that
uploaded the image.

Tasks are not cancelled or awaited on shutdown.  Any enrichment still running
when the process exits is lost and its record stays pending for the
remainder of its (equally short) life.
"""

from __future__ import annotations

import asyncio
import logging

from imagedrop.core.analysis import ImageAnalyzer
from imagedrop.core.errors import AnalysisError
from imagedrop.core.store import IMAGE_NAMESPACE, ObjectStore

logger = logging.getLogger(__name__)

ANALYSIS_ERROR_PREFIX = "Error analyzing image: "


def format_analysis_error(error: Exception) -> str:
    """Render an analysis failure as the settled ``analysis`` value."""
    message = error.message if isinstance(error, AnalysisError) else str(error)
    return f"{ANALYSIS_ERROR_PREFIX}{message}"


class EnrichmentRunner:
    """Run image analysis in the background and settle the result.

    Args:
        store: Store holding the image records.
        analyzer: Capability that turns a data URL into a description.
    """

    def __init__(self, store: ObjectStore, analyzer: ImageAnalyzer):
        self.store = store
        self.analyzer = analyzer
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of enrichment tasks that have not finished yet."""
        return len(self._tasks)

    def schedule(self, record_id: str, data_url: str) -> asyncio.Task:
        """Start enrichment of an image record and return immediately.

        Must be called from a running event loop.  The runner keeps a
        reference to the task until it finishes so it is not garbage
        collected mid-flight.
        """
        task = asyncio.create_task(self.run(record_id, data_url), name=f"enrich-{record_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled enrichment for image {record_id}")
        return task

    async def analyze_now(self, record_id: str, data_url: str) -> str:
        """Schedule enrichment and wait for its settled value.

        The wait is shielded: if the caller is cancelled (a client hanging
        up mid-request), the task still runs to completion and settles the
        record.
        """
        return await asyncio.shield(self.schedule(record_id, data_url))

    async def run(self, record_id: str, data_url: str) -> str:
        """Analyze the image and settle the record's ``analysis`` field.

        Returns:
            The settled value, which is the description on success or the
            formatted error message on failure.
        """
        try:
            analysis = await self.analyzer.analyze(data_url)
        except AnalysisError as e:
            logger.warning(f"Analysis failed for image {record_id}: {e.message}")
            analysis = format_analysis_error(e)
        except Exception as e:
            logger.error(f"Unexpected analysis failure for image {record_id}: {e}", exc_info=True)
            analysis = format_analysis_error(e)
        else:
            logger.info(f"Analysis completed for image {record_id}")

        if not self.store.patch(IMAGE_NAMESPACE, record_id, "analysis", analysis):
            logger.debug(f"Image {record_id} was gone or already settled; result dropped")
        return analysis

    def abandon(self) -> None:
        """Log and forget every unfinished task.

        Called on shutdown.  Tasks are left to the event loop's teardown.
        """
        if self._tasks:
            logger.warning(f"Shutting down with {len(self._tasks)} enrichment task(s) unfinished")
        self._tasks.clear()
