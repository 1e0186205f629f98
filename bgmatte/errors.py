from __future__ import annotations

from typing import Optional


class BackgroundRemovalError(Exception):
    """Base class for everything this package raises on purpose."""


class DecodeError(BackgroundRemovalError, ValueError):
    """Input bytes or raw buffer could not be turned into an RGBA image."""


class SegmentationUnavailable(BackgroundRemovalError, RuntimeError):
    """The segmentation model failed to load or to run."""


class InvalidColorSpec(BackgroundRemovalError, ValueError):
    """A background colour value could not be parsed."""


class RemoteRemovalError(BackgroundRemovalError, RuntimeError):
    """The remote background-removal service failed or returned garbage."""


class BackgroundRemovalFailed(BackgroundRemovalError, RuntimeError):
    """Every source in the fallback chain failed."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error
