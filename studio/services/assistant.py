from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from flask import current_app

from ..ai import get_generative_client
from ..ai.client import ASPECT_RATIO_SIZES, Source
from ..ai.errors import AIBackendError, AIConfigurationError, AIRequestError
from ..ai.live import LiveCallbacks, LiveSession
from ..ai.prompts import PromptConfigError, load_prompt_entry
from ..documents.entities import Asset, AssetType, new_asset
from ..documents.store import DocumentStore

DEFAULT_IMAGE_ANALYSIS_PROMPT = "Describe this image for an asset library."
GENERATED_IMAGE_MIME_TYPE = "image/png"
GENERATED_IMAGE_NAME = "Generated Image"


class AssistantError(RuntimeError):
    """Raised when an AI tool cannot produce a result.

    ``status_code`` is 400 for problems the author can fix (missing key, bad
    input) and 502 when the backend itself failed.
    """

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class AssistantMode(str, Enum):
    FAST = "fast"
    COMPLEX = "complex"
    RESEARCH = "research"

    @classmethod
    def parse(cls, value: object) -> "AssistantMode":
        try:
            return cls(str(value or "fast").strip().lower())
        except ValueError as exc:
            raise AssistantError(f"Unknown assistant mode: {value!r}.", status_code=400) from exc


@dataclass
class AssistantReply:
    mode: AssistantMode
    text: str
    sources: List[Source] = field(default_factory=list)


@dataclass
class GeneratedImage:
    prompt: str
    aspect_ratio: str
    image_bytes: bytes
    mime_type: str = GENERATED_IMAGE_MIME_TYPE

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass
class SpeechClip:
    audio: bytes
    mime_type: str = "audio/wav"


def _get_client():
    return get_generative_client()


def _translate(exc: AIBackendError) -> AssistantError:
    if isinstance(exc, (AIConfigurationError, AIRequestError)):
        return AssistantError(str(exc), status_code=400)
    current_app.logger.warning("AI tool failed: %s", exc)
    return AssistantError(str(exc), status_code=502)


def ask_assistant(prompt: str, mode: AssistantMode | str = AssistantMode.FAST) -> AssistantReply:
    """Answer a free-form writing prompt.

    ``fast`` uses the fast text tier, ``complex`` the reasoning model and
    ``research`` web-grounded generation, which also returns its sources.
    """

    mode = AssistantMode.parse(mode)
    client = _get_client()
    try:
        if mode is AssistantMode.RESEARCH:
            result = client.generate_with_retrieval(prompt)
            return AssistantReply(mode=mode, text=result.text, sources=list(result.sources))
        if mode is AssistantMode.COMPLEX:
            return AssistantReply(mode=mode, text=client.generate_with_reasoning(prompt))
        return AssistantReply(mode=mode, text=client.generate_text(prompt))
    except AIBackendError as exc:
        raise _translate(exc) from exc


def _image_analysis_prompt() -> str:
    try:
        entry = load_prompt_entry("image_analysis", required=False)
    except PromptConfigError as exc:
        current_app.logger.warning("Using the default image analysis prompt: %s", exc)
        return DEFAULT_IMAGE_ANALYSIS_PROMPT
    template = entry.get("prompt_template")
    return template if isinstance(template, str) and template.strip() else DEFAULT_IMAGE_ANALYSIS_PROMPT


def analyze_image(image_bytes: bytes, mime_type: str, prompt: Optional[str] = None) -> str:
    question = (prompt or "").strip() or _image_analysis_prompt()
    try:
        return _get_client().analyze_image(question, image_bytes, mime_type)
    except AIBackendError as exc:
        raise _translate(exc) from exc


def generate_image(prompt: str, aspect_ratio: str = "1:1") -> GeneratedImage:
    if aspect_ratio not in ASPECT_RATIO_SIZES:
        raise AssistantError(
            f"Aspect ratio must be one of {', '.join(ASPECT_RATIO_SIZES)}.", status_code=400
        )
    try:
        image_bytes = _get_client().generate_image(prompt, aspect_ratio)
    except AIBackendError as exc:
        raise _translate(exc) from exc
    return GeneratedImage(prompt=prompt.strip(), aspect_ratio=aspect_ratio, image_bytes=image_bytes)


def save_generated_image(store: DocumentStore, prompt: str, image_url: str) -> Asset:
    """Add a generated image to the asset library as an ``image`` asset.

    The asset is named after the first 30 characters of its prompt and keeps
    the image inline as a ``data:`` URI.
    """

    if not isinstance(image_url, str) or not image_url.startswith("data:image/"):
        raise AssistantError("Only generated images can be saved to the library.", status_code=400)
    _, _, encoded = image_url.partition(";base64,")
    try:
        base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AssistantError("The image data is not valid base64.", status_code=400) from exc

    prompt = (prompt or "").strip()
    asset = new_asset(
        prompt[:30].strip() or GENERATED_IMAGE_NAME,
        AssetType.IMAGE,
        description=prompt,
        data={"imageUrl": image_url},
    )
    return store.add_asset(asset)


def synthesize_speech(text: str) -> SpeechClip:
    try:
        return SpeechClip(audio=_get_client().synthesize_speech(text))
    except AIBackendError as exc:
        raise _translate(exc) from exc


def open_live_conversation(callbacks: LiveCallbacks) -> LiveSession:
    """Start a voice conversation with the co-author persona."""

    try:
        instructions = load_prompt_entry("live_conversation", required=False).get("instructions")
    except PromptConfigError as exc:
        current_app.logger.warning("Opening live conversation without instructions: %s", exc)
        instructions = None
    try:
        return _get_client().open_live_session(callbacks, instructions=instructions)
    except AIBackendError as exc:
        raise _translate(exc) from exc


__all__ = [
    "AssistantError",
    "AssistantMode",
    "AssistantReply",
    "GeneratedImage",
    "SpeechClip",
    "analyze_image",
    "ask_assistant",
    "generate_image",
    "open_live_conversation",
    "save_generated_image",
    "synthesize_speech",
]
