"""Abstract base class for all document extractors."""

import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from models.extraction import DocumentFormat, FileBlob


class BaseExtractor(ABC):
    """Base class that all extractors must inherit from."""

    @abstractmethod
    async def extract(self, file: FileBlob, options: Optional[Any] = None) -> Any:
        """Extract text from an uploaded file."""
        pass

    @abstractmethod
    def supported_formats(self) -> list[DocumentFormat]:
        """Return list of formats this extractor supports."""
        pass

    @staticmethod
    def elapsed_ms(start_time: float) -> float:
        """Milliseconds since a time.perf_counter() reading."""
        return round((time.perf_counter() - start_time) * 1000, 3)
