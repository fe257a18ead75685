from dataclasses import dataclass
from typing import Callable, Optional

from .logging import get_logger
from .vision import guess_mime_type

logger = get_logger(__name__)


ProgressCallback = Callable[[str, int, int], None]
Remover = Callable[[bytes], bytes]


@dataclass(frozen=True)
class CleanedLogo:
    """
    Logo bytes ready for compositing.

    `removed` is False when background removal failed and `data` is the
    original upload, still in its original `mime_type`.
    """

    data: bytes
    mime_type: str
    removed: bool


class BackgroundCleaner:
    """
    Strips the background from the brand logo once per batch.

    Removal failures never escape: the original bytes are returned and the
    batch continues with an un-cleaned logo.
    """

    def __init__(
        self,
        remover: Optional[Remover] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.remover = remover or _rembg_remove
        self.on_progress = on_progress or _log_progress

    def clean(self, logo_bytes: bytes) -> CleanedLogo:
        self.on_progress("remove", 0, 1)
        try:
            output = self.remover(logo_bytes)
            if not output:
                raise ValueError("background removal returned no data")
        except Exception as e:
            logger.warning(
                "background_removal_failed",
                error=str(e),
                error_type=type(e).__name__,
                fallback="original_logo",
            )
            return CleanedLogo(
                data=logo_bytes,
                mime_type=guess_mime_type(logo_bytes),
                removed=False,
            )

        self.on_progress("remove", 1, 1)
        logger.info(
            "background_removal_completed",
            input_size=len(logo_bytes),
            output_size=len(output),
        )
        return CleanedLogo(data=output, mime_type="image/png", removed=True)


def _rembg_remove(logo_bytes: bytes) -> bytes:
    # Lazy import: rembg pulls in onnxruntime and downloads its model on first use.
    from rembg import remove

    return remove(logo_bytes)


def _log_progress(key: str, current: int, total: int) -> None:
    logger.debug(
        "background_removal_progress",
        phase=key,
        percent=round(current / total * 100) if total else 0,
    )
