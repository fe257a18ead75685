"""
Error taxonomy for the branding pipeline.

Fallback-protected failures (corner selection, background removal) are
absorbed inside their component. Everything defined here that escapes a
component is fatal to the batch.
"""

from typing import Any, Dict, Optional


class BrandingError(Exception):
    """Base exception for the branding pipeline."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(BrandingError, ValueError):
    """Raised when a configuration value is out of range or unparseable."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, stage="config", **kwargs)


class BatchValidationError(BrandingError):
    """Raised before a batch starts when its inputs are unusable."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, stage="preflight", **kwargs)


class BatchStateError(BrandingError):
    """Raised when a batch is started while another one is running."""


class DecodeError(BrandingError):
    """Raised when image bytes cannot be decoded into a raster."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, stage="decode", **kwargs)


class RenderError(BrandingError):
    """Raised when the compositor cannot acquire or draw on a surface."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, stage="render", **kwargs)


class EncodeError(BrandingError):
    """Raised when serializing the composited raster yields no bytes."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, stage="encode", **kwargs)


class VisionServiceError(BrandingError):
    """Raised by a Vision Service when a request fails or is malformed."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, stage="vision", **kwargs)


class MissingCredentialError(VisionServiceError):
    """Raised on the first Vision Service call when no credential is configured."""
