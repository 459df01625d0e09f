"""
Detector registry.

Holds the detectors the monitor runs on every tick and aggregates their
results by kind. The registered detectors are stored as an immutable tuple
that is replaced (never modified) on every change, so a tick that has
already read the tuple is unaffected by concurrent registration: changes
take effect on the next tick.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..models.detection import (
    AsyncDetectionResult,
    DeadlockCycle,
    DetectionKind,
    DetectionReport,
    ThreadBatch,
)
from ..models.thread_state import ThreadStateRecord
from ..validation import ErrorSeverity, handle_error
from .base import ThreadDetector

logger = logging.getLogger(__name__)


class DetectorRegistry:
    """Thread-safe, ordered collection of detectors."""

    def __init__(self, detectors: Tuple[ThreadDetector, ...] = ()):
        self._lock = threading.RLock()
        self._detectors: Tuple[ThreadDetector, ...] = ()
        for detector in detectors:
            self.register(detector)

    def register(self, detector: ThreadDetector) -> None:
        """
        Adds a detector, replacing any registered detector with the same name.

        A replaced detector keeps its position in the run order.
        """
        with self._lock:
            current = list(self._detectors)
            for index, existing in enumerate(current):
                if existing.name == detector.name:
                    current[index] = detector
                    logger.info(f"Replaced detector '{detector.name}'")
                    break
            else:
                current.append(detector)
                logger.info(f"Registered detector '{detector.name}' v{detector.version}")
            self._detectors = tuple(current)

    def unregister(self, name: str) -> Optional[ThreadDetector]:
        """Removes a detector by name; returns it, or None if absent."""
        with self._lock:
            removed = None
            remaining = []
            for detector in self._detectors:
                if detector.name == name and removed is None:
                    removed = detector
                else:
                    remaining.append(detector)
            if removed is not None:
                self._detectors = tuple(remaining)
                logger.info(f"Unregistered detector '{name}'")
            return removed

    def get(self, name: str) -> Optional[ThreadDetector]:
        for detector in self._detectors:
            if detector.name == name:
                return detector
        return None

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self._detectors)

    @property
    def detectors(self) -> Tuple[ThreadDetector, ...]:
        return self._detectors

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(detector.name for detector in self._detectors)

    def run(self, batch: ThreadBatch) -> DetectionReport:
        """
        Runs every enabled detector over one batch.

        A detector that raises is logged and recorded in the report's
        ``failures``; the results of the other detectors are still used.
        Records are annotated with the async classification when one is
        available.

        Args:
            batch: Immutable input shared by all detectors

        Returns:
            Aggregated results and the (possibly annotated) records
        """
        detectors = self._detectors
        report = DetectionReport(records=batch.records)

        for detector in detectors:
            if not detector.enabled:
                continue
            try:
                deadlocks, async_results = self._collect(detector, batch)
            except Exception as e:
                handle_error(
                    error=e,
                    context=f"detector '{detector.name}'",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger
                )
                report.failures[detector.name] = f"{type(e).__name__}: {e}"
                continue

            report.deadlocks.extend(deadlocks)
            report.async_results.update(async_results)

        report.deadlocks.sort(key=lambda cycle: cycle.cycle_id)
        if report.async_results:
            report.records = tuple(
                self._annotate(record, report) for record in batch.records
            )
        return report

    @staticmethod
    def _collect(
        detector: ThreadDetector, batch: ThreadBatch
    ) -> Tuple[List[DeadlockCycle], Dict[int, AsyncDetectionResult]]:
        """
        Fully consumes one detector's output and sorts it by kind.

        Nothing is merged into the report until this returns, so a detector
        that fails part-way contributes no results at all.

        Raises:
            TypeError: If the detector returns a result of unknown kind
        """
        deadlocks: List[DeadlockCycle] = []
        async_results: Dict[int, AsyncDetectionResult] = {}
        for result in list(detector.detect(batch)):
            kind = getattr(result, "kind", None)
            if kind is DetectionKind.DEADLOCK:
                deadlocks.append(result)
            elif kind is DetectionKind.ASYNC_THREAD:
                async_results[result.thread_id] = result
            else:
                raise TypeError(f"unsupported detection result: {result!r}")
        return deadlocks, async_results

    @staticmethod
    def _annotate(record: ThreadStateRecord, report: DetectionReport) -> ThreadStateRecord:
        result = report.async_results.get(record.thread_id)
        if result is None:
            return record
        return record.with_async_info(result.is_async, result.type)
