import base64
import json
from typing import Any, Dict, Optional, Protocol

from .errors import MissingCredentialError, VisionServiceError
from .logging import get_logger

logger = get_logger(__name__)


class VisionService(Protocol):
    """
    Remote vision model: one image, one instruction, one response shape.

    Implementations return a value conforming to `response_schema` or raise.
    """

    def analyze(
        self,
        image_bytes: bytes,
        instruction: str,
        response_schema: Dict[str, Any],
    ) -> Any:
        ...


class LangChainVisionService:
    """
    Vision Service backed by an OpenAI chat model through LangChain.

    The chat model is created lazily so a missing credential only surfaces
    on the first request, never at construction time.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        llm: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._llm = llm

    def analyze(
        self,
        image_bytes: bytes,
        instruction: str,
        response_schema: Dict[str, Any],
    ) -> Any:
        from langchain_core.messages import HumanMessage

        schema = {k: v for k, v in response_schema.items() if k != "title"}
        llm = self._get_llm().bind(
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": response_schema.get("title", "response"),
                    "schema": schema,
                    "strict": True,
                },
            }
        )

        data_url = (
            f"data:{guess_mime_type(image_bytes)};base64,"
            f"{base64.b64encode(image_bytes).decode('ascii')}"
        )
        message = HumanMessage(
            content=[
                {"type": "text", "text": instruction},
                {"type": "image_url", "image_url": {"url": data_url}},
            ]
        )

        logger.debug("vision_request", model=self.model, image_size=len(image_bytes))
        raw = llm.invoke([message])
        text = getattr(raw, "content", None) or str(raw)

        try:
            return json.loads(text)
        except (TypeError, ValueError) as e:
            raise VisionServiceError(
                f"Vision model returned a non-JSON payload: {text!r}",
                details={"model": self.model},
            ) from e

    def _get_llm(self) -> Any:
        if self._llm is not None:
            return self._llm

        if not self.api_key:
            raise MissingCredentialError(
                "OPENAI_API_KEY is not set. A credential is required for corner selection."
            )

        from langchain_openai import ChatOpenAI

        self._llm = ChatOpenAI(
            model=self.model,
            temperature=0,
            timeout=self.timeout,
            max_retries=0,
            api_key=self.api_key,
        )
        return self._llm


def guess_mime_type(data: bytes) -> str:
    """
    Sniff the image container from its magic bytes. Defaults to JPEG.
    """
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
