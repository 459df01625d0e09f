"""
Defines the detector capability interface.

A detector is a pure function of a ``ThreadBatch``: it keeps no state between
calls and may run concurrently from several monitor workers.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from ..models.detection import DetectionMetadata, DetectionResult, ThreadBatch
from ..validation import validate_confidence

logger = logging.getLogger(__name__)


class ThreadDetector(ABC):
    """
    Abstract base class for thread detectors.

    Subclasses set ``name``, ``version`` and ``description`` and implement
    ``detect``. The registry identifies detectors by ``name``.
    """

    name: str = "detector"
    version: str = "1.0.0"
    description: str = ""

    def __init__(self, enabled: bool = True, confidence_threshold: float = 0.5):
        """
        Args:
            enabled: Disabled detectors return no results.
            confidence_threshold: Minimum confidence for a positive result.

        Raises:
            ValidationError: If the threshold is outside [0.0, 1.0].
        """
        self.enabled = enabled
        self.confidence_threshold = validate_confidence(
            confidence_threshold, field_name=f"{self.name}.confidence_threshold"
        )

    @abstractmethod
    def detect(self, batch: ThreadBatch) -> List[DetectionResult]:
        """
        Runs the detector over one batch of thread records.

        Returns:
            Detection results, each tagged with its ``kind``.
        """
        pass

    def create_metadata(self, description: str) -> DetectionMetadata:
        return DetectionMetadata(
            detector_name=self.name,
            version=self.version,
            description=description,
        )

    def is_valid_confidence(self, confidence: float) -> bool:
        """Whether a confidence value passes this detector's threshold."""
        return confidence >= self.confidence_threshold

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name!r}, enabled={self.enabled}, "
            f"confidence_threshold={self.confidence_threshold})"
        )
