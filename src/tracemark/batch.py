# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Concurrent processing of many in-memory documents."""

import concurrent.futures
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from tracemark import engine
from tracemark.config import Configuration
from tracemark.model import Action
from tracemark.reporter import CheckReport, Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """Rust source text paired with its project-relative path."""

    path: str
    text: str


@dataclass(frozen=True)
class DocumentResult:
    """Outcome of one document of a batch."""

    document: Document
    outcome: Outcome


class BatchRunner:
    """Run the pipeline over documents with a fixed-size thread pool."""

    def __init__(self, max_workers: int = 4, progress_batch_size: int = 50) -> None:
        """Initialize the runner.

        Args:
            max_workers: Maximum number of worker threads.
            progress_batch_size: Emit a progress log line every N documents.

        Raises:
            ValueError: If ``max_workers`` or ``progress_batch_size`` is not
                greater than zero.
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        if progress_batch_size <= 0:
            raise ValueError("progress_batch_size must be > 0")
        self._max_workers = max_workers
        self._progress_batch_size = progress_batch_size

    def run(
        self,
        documents: Sequence[Document],
        action: Action,
        config: Configuration | None = None,
    ) -> list[DocumentResult]:
        """Process documents concurrently.

        Args:
            documents: Documents to process.
            action: Action applied to every document.
            config: Shared run configuration.

        Returns:
            One result per document, in input order.
        """
        config = config or Configuration()
        total = len(documents)
        outcomes: list[Outcome | None] = [None] * total
        started_at = time.monotonic()
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_workers
        ) as executor:
            future_to_index = {
                executor.submit(
                    engine.run, document.text, action, config, document.path
                ): index
                for index, document in enumerate(documents)
            }
            completed = 0
            for future in concurrent.futures.as_completed(future_to_index):
                outcomes[future_to_index[future]] = future.result()
                completed += 1
                if completed % self._progress_batch_size == 0 and completed != total:
                    logger.info(
                        "batch_progress completed=%s total=%s", completed, total
                    )

        results = [
            DocumentResult(document=document, outcome=outcome)
            for document, outcome in zip(documents, outcomes)
            if outcome is not None
        ]
        self._log_summary(results, action, time.monotonic() - started_at)
        return results

    def _log_summary(
        self, results: list[DocumentResult], action: Action, elapsed: float
    ) -> None:
        mismatches = sum(
            len(result.outcome.mismatches)
            for result in results
            if isinstance(result.outcome, CheckReport)
        )
        changed = sum(
            1
            for result in results
            if not isinstance(result.outcome, CheckReport) and result.outcome.changed
        )
        warnings = sum(len(result.outcome.warnings) for result in results)
        logger.info(
            "batch_complete action=%s documents=%s mismatches=%s changed=%s "
            "warnings=%s elapsed_seconds=%.2f",
            action,
            len(results),
            mismatches,
            changed,
            warnings,
            elapsed,
        )
