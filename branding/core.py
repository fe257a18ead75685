import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image

from .archive import ArchiveWriter, ZipArchiveWriter
from .assets import ProductItem
from .background import BackgroundCleaner
from .config import BrandingConfig
from .corners import CornerOracle
from .errors import BatchStateError, BatchValidationError
from .logging import batch_context, get_logger
from .render import Corner, composite, decode_image

logger = get_logger(__name__)


Compositor = Callable[[Image.Image, Image.Image, Corner, BrandingConfig], bytes]
Decoder = Callable[[bytes], Image.Image]


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchProgress:
    """
    Read-only snapshot of a batch, published to observers after every change.
    """

    is_running: bool = False
    total_count: int = 0
    completed_count: int = 0
    status_message: str = ""


@dataclass(frozen=True)
class BatchResult:
    archive: Optional[bytes] = None
    error: Optional[str] = None
    entries: Tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.archive is not None


ProgressObserver = Callable[[BatchProgress], None]


class BrandingPipeline:
    """
    Orchestrates a branding batch:
    - clean the logo background once
    - for each product, strictly one at a time:
        * decode the product image
        * ask the corner oracle where the corner mark goes
        * composite watermark + corner mark and encode as JPEG
        * append the result to the archive, then release the decoded image
    - finalize the archive, or discard everything on the first fatal error

    At most one decoded product image and the decoded logo are held at once.
    """

    def __init__(
        self,
        cleaner: BackgroundCleaner,
        oracle: CornerOracle,
        compositor: Compositor = composite,
        decoder: Decoder = decode_image,
        archive_factory: Callable[[], ArchiveWriter] = ZipArchiveWriter,
        observers: Optional[Sequence[ProgressObserver]] = None,
    ) -> None:
        self.cleaner = cleaner
        self.oracle = oracle
        self.compositor = compositor
        self.decoder = decoder
        self.archive_factory = archive_factory
        self._observers: List[ProgressObserver] = list(observers or [])

        self._state = BatchState.IDLE
        self._progress = BatchProgress()
        self._result: Optional[BatchResult] = None

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def progress(self) -> BatchProgress:
        return self._progress

    @property
    def result(self) -> Optional[BatchResult]:
        return self._result

    def subscribe(self, observer: ProgressObserver) -> None:
        self._observers.append(observer)

    def reset(self) -> None:
        """
        Return to Idle and drop the previous result.
        """
        if self._state is BatchState.RUNNING:
            raise BatchStateError("Cannot reset while a batch is running.")
        self._state = BatchState.IDLE
        self._result = None
        self._publish(BatchProgress())

    def run(
        self,
        logo: Optional[bytes],
        products: Sequence[ProductItem],
        config: BrandingConfig,
    ) -> BatchResult:
        if not logo or not products:
            raise BatchValidationError(
                "Please upload both a Brand Logo and at least one Product Image."
            )
        if self._state is BatchState.RUNNING:
            raise BatchStateError("A batch is already running.")

        if self._state is not BatchState.IDLE:
            self.reset()

        with batch_context(uuid.uuid4().hex[:12]):
            return self._run(logo, list(products), config)

    def _run(
        self,
        logo: bytes,
        products: List[ProductItem],
        config: BrandingConfig,
    ) -> BatchResult:
        total = len(products)
        self._state = BatchState.RUNNING
        self._publish(
            BatchProgress(
                is_running=True,
                total_count=total,
                completed_count=0,
                status_message="Initializing batch...",
            )
        )
        logger.info("batch_started", total=total)

        archive: Optional[ArchiveWriter] = None
        logo_img: Optional[Image.Image] = None
        current: Optional[ProductItem] = None
        entries: List[str] = []

        try:
            archive = self.archive_factory()
            self._publish(replace(self._progress, status_message="Removing logo background..."))
            cleaned = self.cleaner.clean(logo)
            logo_img = self.decoder(cleaned.data)

            for index, item in enumerate(products, start=1):
                current = item
                self._publish(
                    replace(
                        self._progress,
                        status_message=f"Processing image {index} of {total}...",
                    )
                )
                logger.info("batch_item_started", index=index, source=item.source_name)

                encoded = self._process_item(item, logo_img, config)
                archive.write(item.output_name, encoded)
                entries.append(item.output_name)

                if index < total:
                    self._publish(replace(self._progress, completed_count=index))
            current = None

            self._publish(replace(self._progress, status_message="Finalizing ZIP archive..."))
            payload = archive.finalize()
            # The last item only counts once the archive is sealed, so a full
            # count always means Completed.
            self._publish(replace(self._progress, completed_count=total))
        except Exception as e:
            if archive is not None:
                archive.discard()
            if current is not None:
                reason = f"Failed to process '{current.source_name}': {e}"
            else:
                reason = str(e) or type(e).__name__
            return self._fail(reason, e)
        finally:
            if logo_img is not None:
                logo_img.close()

        return self._complete(payload, entries)

    def _process_item(
        self,
        item: ProductItem,
        logo_img: Image.Image,
        config: BrandingConfig,
    ) -> bytes:
        product_img = self.decoder(item.data)
        try:
            # The oracle sees the original encoded upload, not the raster.
            corner = self.oracle.select_corner(item.data)
            return self.compositor(product_img, logo_img, corner, config)
        finally:
            product_img.close()
            del product_img

    def _complete(self, payload: bytes, entries: List[str]) -> BatchResult:
        self._result = BatchResult(archive=payload, entries=tuple(entries))
        self._state = BatchState.COMPLETED
        self._publish(
            replace(self._progress, is_running=False, status_message="Completed Successfully")
        )
        logger.info("batch_completed", entries=len(entries), archive_size=len(payload))
        return self._result

    def _fail(self, reason: str, error: Exception) -> BatchResult:
        self._result = BatchResult(error=reason)
        self._state = BatchState.FAILED
        self._publish(
            replace(self._progress, is_running=False, status_message=f"Failed: {reason}")
        )
        logger.error(
            "batch_failed",
            reason=reason,
            error_type=type(error).__name__,
            completed=self._progress.completed_count,
        )
        return self._result

    def _publish(self, progress: BatchProgress) -> None:
        self._progress = progress
        for observer in self._observers:
            observer(progress)
