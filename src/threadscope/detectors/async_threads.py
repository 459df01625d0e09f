"""
Async thread classification.

Scores each thread on three additive signals (name vocabulary, known
framework thread names, async classes on the stack) and, for threads that
pass the threshold, assigns a workload category using a fixed, ordered list
of rules. Categories overlap by signal, so the first matching rule wins.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..models.detection import AsyncDetectionResult, ThreadBatch
from ..models.thread_state import AsyncThreadType, ThreadStateRecord
from .base import ThreadDetector

logger = logging.getLogger(__name__)

DEFAULT_ASYNC_THRESHOLD = 0.5

NAME_PATTERN_WEIGHT = 0.4
KNOWN_NAME_WEIGHT = 0.3
STACK_FRAME_WEIGHT = 0.1
STACK_WEIGHT_CAP = 0.3

ASYNC_NAME_PATTERN = re.compile(
    r"(async|completable|future|reactive|reactor|rx|stream|pool|executor|scheduled|timer|worker)",
    re.IGNORECASE,
)

# Matched case-sensitively anywhere in the thread name.
KNOWN_ASYNC_THREAD_NAMES: Tuple[str, ...] = (
    "pool-",
    "ThreadPoolExecutor",
    "asyncio_",
    "ForkJoinPool",
    "CompletableFuture",
    "Reactor",
    "RxJava",
    "RxPY",
    "Reactive",
    "WebFlux",
    "Netty",
    "Tomcat",
    "Jetty",
    "Undertow",
    "uvicorn",
    "gunicorn",
    "waitress",
    "cheroot",
    "Tornado",
    "Twisted",
    "APScheduler",
    "AsyncHttpClient",
)

# Matched case-sensitively against each frame's class name.
ASYNC_CLASS_FRAGMENTS: Tuple[str, ...] = (
    "CompletableFuture",
    "Future",
    "Executor",
    "ThreadPool",
    "Scheduled",
    "Reactor",
    "Flux",
    "Mono",
    "Observable",
    "Single",
    "Maybe",
    "WebFlux",
    "Reactive",
    "Async",
    "NonBlocking",
    "asyncio",
    "concurrent.futures",
    "Timer",
    "sched",
)


@dataclass(frozen=True)
class CategoryRule:
    """
    One categorization rule.

    A rule matches when the thread name contains any of ``name_contains``
    (case-sensitive) or ``name_contains_ci`` (case-insensitive), or when any
    stack frame class name contains any of ``stack_contains``.
    """

    category: AsyncThreadType
    name_contains: Tuple[str, ...] = ()
    name_contains_ci: Tuple[str, ...] = ()
    stack_contains: Tuple[str, ...] = ()
    comment: str = ""

    def matches(self, name: str, class_names: Sequence[str]) -> bool:
        if any(fragment in name for fragment in self.name_contains):
            return True
        lowered = name.lower()
        if any(fragment in lowered for fragment in self.name_contains_ci):
            return True
        return any(
            fragment in class_name
            for class_name in class_names
            for fragment in self.stack_contains
        )


# Evaluated in order; the first match wins.
CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(
        category=AsyncThreadType.COMPLETABLE_FUTURE,
        name_contains=("CompletableFuture",),
        name_contains_ci=("future",),
        stack_contains=("CompletableFuture",),
        comment="Continuation-style async work",
    ),
    CategoryRule(
        category=AsyncThreadType.REACTIVE_STREAMS,
        name_contains=("Reactor", "RxJava", "RxPY"),
        stack_contains=("Flux", "Mono", "Observable", "reactivex"),
        comment="Reactive stream schedulers",
    ),
    CategoryRule(
        category=AsyncThreadType.THREAD_POOL,
        name_contains_ci=("pool", "worker"),
        comment="Generic pool and worker naming",
    ),
    CategoryRule(
        category=AsyncThreadType.WEB_SERVER,
        name_contains=(
            "Tomcat", "Jetty", "Netty", "Undertow",
            "uvicorn", "gunicorn", "waitress", "cheroot", "Tornado", "Twisted",
        ),
        comment="Web server request threads",
    ),
    CategoryRule(
        category=AsyncThreadType.SCHEDULED_TASK,
        name_contains=("Scheduled", "Timer", "scheduler"),
        stack_contains=("ScheduledExecutorService", "sched.scheduler", "apscheduler", "threading.Timer"),
        comment="Timers and scheduled executors",
    ),
)


def score_thread(record: ThreadStateRecord) -> float:
    """
    Computes the async confidence of one thread, in [0.0, 1.0].

    Args:
        record: Thread to score

    Returns:
        The sum of the three signals, capped at 1.0 and rounded to 4 places.
    """
    confidence = 0.0

    if ASYNC_NAME_PATTERN.search(record.name):
        confidence += NAME_PATTERN_WEIGHT

    if any(known in record.name for known in KNOWN_ASYNC_THREAD_NAMES):
        confidence += KNOWN_NAME_WEIGHT

    matching_frames = sum(
        1
        for class_name in record.stack_class_names()
        if any(fragment in class_name for fragment in ASYNC_CLASS_FRAGMENTS)
    )
    if matching_frames:
        confidence += min(STACK_WEIGHT_CAP, matching_frames * STACK_FRAME_WEIGHT)

    return round(min(1.0, confidence), 4)


def categorize_thread(record: ThreadStateRecord) -> AsyncThreadType:
    """Returns the category of the first matching rule, or OTHER_ASYNC."""
    class_names = list(record.stack_class_names())
    for rule in CATEGORY_RULES:
        if rule.matches(record.name, class_names):
            return rule.category
    return AsyncThreadType.OTHER_ASYNC


class AsyncThreadClassifier(ThreadDetector):
    """Detects and categorizes async threads with confidence scoring."""

    name = "async-thread-classifier"
    version = "1.0.0"
    description = "Detects and categorizes async threads with confidence scoring"

    def __init__(self, enabled: bool = True, confidence_threshold: float = DEFAULT_ASYNC_THRESHOLD):
        super().__init__(enabled=enabled, confidence_threshold=confidence_threshold)

    def classify(self, record: ThreadStateRecord) -> AsyncDetectionResult:
        """
        Classifies one thread.

        A disabled classifier reports every thread as not async with zero
        confidence, without evaluating any signal.
        """
        if not self.enabled:
            return AsyncDetectionResult(
                thread_id=record.thread_id,
                is_async=False,
                type=AsyncThreadType.UNKNOWN,
                confidence=0.0,
                metadata=self.create_metadata(self.description),
            )

        confidence = score_thread(record)
        is_async = self.is_valid_confidence(confidence)
        async_type = categorize_thread(record) if is_async else AsyncThreadType.UNKNOWN

        return AsyncDetectionResult(
            thread_id=record.thread_id,
            is_async=is_async,
            type=async_type,
            confidence=confidence,
            metadata=self.create_metadata(self.description),
        )

    def detect(self, batch: ThreadBatch) -> List[AsyncDetectionResult]:
        return [self.classify(record) for record in batch.records]
