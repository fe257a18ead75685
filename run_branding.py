import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from branding.archive import archive_filename
from branding.assets import load_product_items
from branding.background import BackgroundCleaner
from branding.config import load_settings
from branding.core import BatchProgress, BrandingPipeline
from branding.corners import CornerOracle
from branding.errors import BrandingError
from branding.logging import get_logger, setup_logging
from branding.vision import LangChainVisionService

logger = get_logger("run_branding")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Apply a brand logo to a folder of product photos and bundle them as a zip."
    )
    parser.add_argument(
        "--logo",
        type=Path,
        required=True,
        help="Path to the brand logo image.",
    )
    parser.add_argument(
        "--products",
        type=Path,
        required=True,
        help="Folder containing the product images (PNG, JPEG or WebP).",
    )
    parser.add_argument(
        "--output-root",
        type=Path,
        default=Path("outputs"),
        help="Folder where the branded zip archive will be written.",
    )
    parser.add_argument("--watermark-opacity", type=float, default=None)
    parser.add_argument("--watermark-scale", type=float, default=None)
    parser.add_argument("--logo-scale", type=float, default=None)
    parser.add_argument("--logo-padding", type=float, default=None)
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL.")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines instead of console output.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from a local .env file if present
    # (e.g. OPENAI_API_KEY=sk-...).
    load_dotenv()

    args = parse_args(argv)

    try:
        settings = load_settings()
        overrides = {
            "watermark_opacity": args.watermark_opacity,
            "watermark_scale": args.watermark_scale,
            "logo_scale": args.logo_scale,
            "logo_padding": args.logo_padding,
        }
        config = replace(
            settings.branding,
            **{k: v for k, v in overrides.items() if v is not None},
        )
    except BrandingError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(args.log_level or settings.log_level, args.json_logs or settings.log_json)

    vision = LangChainVisionService(
        api_key=settings.openai_api_key,
        model=settings.vision_model,
        timeout=settings.vision_timeout,
    )
    pipeline = BrandingPipeline(
        cleaner=BackgroundCleaner(),
        oracle=CornerOracle(vision),
        observers=[_log_progress],
    )

    logo = args.logo.read_bytes() if args.logo.is_file() else None
    products = load_product_items(args.products)

    try:
        result = pipeline.run(logo, products, config)
    except BrandingError as e:
        logger.error("batch_rejected", reason=str(e))
        return 2

    if not result.succeeded:
        return 1

    args.output_root.mkdir(parents=True, exist_ok=True)
    output_path = args.output_root / archive_filename()
    output_path.write_bytes(result.archive)
    logger.info("archive_written", path=str(output_path), entries=len(result.entries))
    return 0


def _log_progress(progress: BatchProgress) -> None:
    logger.info(
        "batch_progress",
        status=progress.status_message,
        completed=progress.completed_count,
        total=progress.total_count,
    )


if __name__ == "__main__":
    sys.exit(main())
