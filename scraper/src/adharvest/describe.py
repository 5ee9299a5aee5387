"""Vision descriptions of creatives backed by the OpenAI Responses API."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

from .errors import EnrichmentFailure
from .logging import jlog
from .payload import JSONValue

UTC = getattr(datetime, "UTC", timezone.utc)

DEFAULT_VISION_MODEL = "gpt-4.1-mini"
DEFAULT_VISION_TIMEOUT_S = 60.0
MAX_OUTPUT_TOKENS = 400
TEMPERATURE = 0.2

REVIEW_PROMPT = (
    "You are reviewing an advertisement from the Google Ads Transparency Center. "
    "Provide a concise summary of the visual content and any prominent text. "
    "List call-to-action messaging, promotion details, political or geographic references, and visible disclaimers."
)


@dataclass(frozen=True)
class Description:
    text: str
    raw_response: JSONValue
    created_at: datetime


class Describer(Protocol):
    """Turns a creative image URL into a natural-language description."""

    model_label: str

    async def describe(self, image_url: str) -> Description:
        """Return a description or raise :class:`EnrichmentFailure`."""


def extract_response_text(response: Any) -> str | None:
    """Return the first non-blank text segment of a Responses API result."""

    if response is None:
        return None
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text
    for segment in getattr(response, "output", None) or []:
        for piece in getattr(segment, "content", None) or []:
            text = getattr(piece, "text", None)
            if isinstance(text, str) and text.strip():
                return text
    return None


def _raw_payload(response: Any) -> JSONValue:
    dump = getattr(response, "model_dump", None)
    if callable(dump):
        return dump(mode="json")
    return None


class OpenAIDescriber:
    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_VISION_MODEL) -> None:
        self.client = client
        self.model = model
        self.model_label = f"openai:{model}"

    async def describe(self, image_url: str) -> Description:
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "input_text", "text": REVIEW_PROMPT},
                            {"type": "input_image", "image_url": image_url},
                        ],
                    }
                ],
                max_output_tokens=MAX_OUTPUT_TOKENS,
                temperature=TEMPERATURE,
            )
        except OpenAIError as exc:
            raise EnrichmentFailure(f"{self.model_label} request failed: {exc}") from exc

        text = extract_response_text(response)
        if not text:
            raise EnrichmentFailure(f"{self.model_label} returned no text")
        return Description(text=text.strip(), raw_response=_raw_payload(response), created_at=datetime.now(UTC))


def create_describer(
    *,
    skip: bool,
    model: str = DEFAULT_VISION_MODEL,
    api_key: str | None = None,
    timeout_s: float = DEFAULT_VISION_TIMEOUT_S,
) -> OpenAIDescriber | None:
    """Return a describer, or ``None`` when vision is skipped or no key is configured."""

    if skip:
        jlog("info", event="vision_disabled", reason="skip_flag")
        return None
    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        jlog("info", event="vision_disabled", reason="missing_openai_api_key")
        return None
    client = AsyncOpenAI(api_key=key, timeout=timeout_s, max_retries=1)
    return OpenAIDescriber(client, model)


__all__ = [
    "DEFAULT_VISION_MODEL",
    "DEFAULT_VISION_TIMEOUT_S",
    "Describer",
    "Description",
    "OpenAIDescriber",
    "create_describer",
    "extract_response_text",
]
