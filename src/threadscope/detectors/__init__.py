"""
Thread detectors and the registry that runs them.
"""

from .async_threads import (
    CATEGORY_RULES,
    AsyncThreadClassifier,
    CategoryRule,
    categorize_thread,
    score_thread,
)
from .base import ThreadDetector
from .deadlock import DeadlockAnalyzer, build_wait_for_graph, confidence_for_cycle_size
from .registry import DetectorRegistry

__all__ = [
    "AsyncThreadClassifier",
    "CATEGORY_RULES",
    "CategoryRule",
    "DeadlockAnalyzer",
    "DetectorRegistry",
    "ThreadDetector",
    "build_wait_for_graph",
    "categorize_thread",
    "confidence_for_cycle_size",
    "score_thread",
]
