from typing import Any, Optional

from .errors import MissingCredentialError
from .logging import get_logger
from .render import Corner
from .vision import VisionService

logger = get_logger(__name__)


TOP_CORNERS = (Corner.TOP_LEFT, Corner.TOP_RIGHT)

FALLBACK_CORNER = Corner.TOP_RIGHT

CORNER_INSTRUCTION = (
    "Analyze this product image and identify which TOP corner (top-left or "
    "top-right) is better for placing a brand logo. The better corner is the "
    "one with more negative space, less visual clutter, and which does not "
    "obstruct the product. Respond ONLY with the corner name in JSON format."
)

CORNER_SCHEMA = {
    "title": "corner_choice",
    "type": "object",
    "properties": {
        "corner": {
            "type": "string",
            "description": "The identified best top corner",
            "enum": [c.value for c in TOP_CORNERS],
        }
    },
    "required": ["corner"],
    "additionalProperties": False,
}


class CornerOracle:
    """
    Picks the top corner with the most open space for the corner mark.

    Each call is independent. Any failure to get a valid answer resolves to
    top-right, except a missing credential, which is a configuration error.
    """

    def __init__(self, vision: VisionService) -> None:
        self.vision = vision

    def select_corner(self, image_bytes: bytes) -> Corner:
        try:
            payload = self.vision.analyze(image_bytes, CORNER_INSTRUCTION, CORNER_SCHEMA)
        except MissingCredentialError:
            raise
        except Exception as e:
            logger.warning(
                "corner_selection_failed",
                error=str(e),
                error_type=type(e).__name__,
                fallback=FALLBACK_CORNER.value,
            )
            return FALLBACK_CORNER

        corner = _parse_corner(payload)
        if corner is None:
            logger.warning(
                "corner_selection_invalid",
                payload=repr(payload),
                fallback=FALLBACK_CORNER.value,
            )
            return FALLBACK_CORNER

        logger.info("corner_selected", corner=corner.value)
        return corner


def _parse_corner(payload: Any) -> Optional[Corner]:
    value = payload.get("corner") if isinstance(payload, dict) else None
    for corner in TOP_CORNERS:
        if value == corner.value:
            return corner
    return None
