"""OpenAI-backed generative client used by every AI feature of the studio.

:class:`GenerativeClient` wraps the OpenAI Python SDK and exposes the
operations the editor needs: tiered text generation, reasoning and
web-grounded generation, in-line rewriting, image analysis and generation,
speech synthesis, and live voice sessions.

All operations share one failure contract:

* missing credentials are detected before any request is built and reported
  as :class:`~studio.ai.errors.AIConfigurationError`;
* empty or malformed input raises :class:`~studio.ai.errors.AIRequestError`;
* anything the SDK raises, and any response without usable content, is
  re-raised as :class:`~studio.ai.errors.AIBackendError`.

Callers catch :class:`AIBackendError` at their own boundary and never see raw
SDK exceptions. Text models are routed the same way the rest of the codebase
does it: reasoning families (``gpt-5``, ``o3``, ``o4``, ``gpt-4.1``) go
through the Responses API and chat models through Chat Completions.
"""
from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import openai

from .errors import AIBackendError, AIConfigurationError, AIRequestError
from .prompts import DEFAULT_INLINE_EDIT_TEMPLATES

LOGGER = logging.getLogger(__name__)

ASPECT_RATIO_SIZES: Dict[str, str] = {
    "1:1": "1024x1024",
    "4:3": "1536x1024",
    "16:9": "1536x1024",
    "3:4": "1024x1536",
    "9:16": "1024x1536",
}

SUPPORTED_IMAGE_MIME_TYPES = ("image/png", "image/jpeg", "image/webp", "image/gif")


class QualityTier(str, Enum):
    FAST = "fast"
    QUALITY = "quality"


@dataclass(frozen=True)
class Source:
    uri: str
    title: str


@dataclass
class RetrievalResult:
    text: str
    sources: List[Source] = field(default_factory=list)


class GenerativeClient:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        text_model: str = "gpt-4o-mini",
        quality_model: str = "gpt-4o",
        reasoning_model: str = "o4-mini",
        image_model: str = "gpt-image-1",
        speech_model: str = "gpt-4o-mini-tts",
        speech_voice: str = "alloy",
        live_model: str = "gpt-4o-realtime-preview",
        default_max_tokens: int = 1024,
        edit_templates: Optional[Mapping[str, str]] = None,
        client: Any = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.text_model = text_model
        self.quality_model = quality_model
        self.reasoning_model = reasoning_model
        self.image_model = image_model
        self.speech_model = speech_model
        self.speech_voice = speech_voice
        self.live_model = live_model
        self.default_max_tokens = int(default_max_tokens or 1024)
        self.edit_templates: Dict[str, str] = dict(DEFAULT_INLINE_EDIT_TEMPLATES)
        if edit_templates:
            self.edit_templates.update(edit_templates)
        self._client = client

    # ---------------- credentials ----------------
    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _require_client(self) -> Any:
        if not self.configured:
            raise AIConfigurationError("API key not configured.")
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def signature(self) -> str:
        # Never return raw secrets
        if not self.api_key:
            return ""
        return self.api_key[:4] + "…" + self.api_key[-4:]

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except AIBackendError:
            raise
        except openai.OpenAIError as exc:
            LOGGER.warning("%s failed: %s", operation, exc)
            raise AIBackendError(f"{operation} failed: {exc}") from exc
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            LOGGER.warning("%s returned an unexpected response: %s", operation, exc)
            raise AIBackendError(f"{operation} returned an unexpected response.") from exc

    # ---------------- heuristics ----------------
    @staticmethod
    def _uses_responses_api(model_name: str) -> bool:
        name = (model_name or "").lower()
        return name.startswith(("gpt-5", "o3", "o4", "gpt-4.1"))

    # ---------------- text ----------------
    def generate_text(
        self,
        prompt: str,
        quality: QualityTier | str = QualityTier.FAST,
        *,
        max_new_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
    ) -> str:
        try:
            tier = QualityTier(quality)
        except ValueError as exc:
            raise AIRequestError(f"Unknown quality tier: {quality!r}.") from exc
        model = self.quality_model if tier is QualityTier.QUALITY else self.text_model
        return self._complete(
            model,
            _require_text(prompt, "prompt"),
            operation="Text generation",
            max_new_tokens=max_new_tokens,
            temperature=temperature,
            top_p=top_p,
        )

    def generate_with_reasoning(self, prompt: str, *, max_new_tokens: Optional[int] = None) -> str:
        prompt = _require_text(prompt, "prompt")
        client = self._require_client()
        max_tokens, _, _ = self._sampling(max_new_tokens or self.default_max_tokens * 8, None, None)
        with self._translate_errors("Reasoning generation"):
            resp = client.responses.create(
                model=self.reasoning_model,
                input=prompt,
                max_output_tokens=max_tokens,
                reasoning={"effort": "high"},
            )
            return self._require_output(_responses_text(resp), "Reasoning generation")

    def generate_with_retrieval(self, prompt: str) -> RetrievalResult:
        prompt = _require_text(prompt, "prompt")
        client = self._require_client()
        with self._translate_errors("Search-grounded generation"):
            resp = client.responses.create(
                model=self.quality_model,
                input=prompt,
                tools=[{"type": "web_search"}],
            )
            text = self._require_output(_responses_text(resp), "Search-grounded generation")
            return RetrievalResult(text=text, sources=_collect_citations(resp))

    def edit_text(self, text: str, action: str, **generation_kwargs: Any) -> str:
        """Rewrite ``text`` according to ``action`` (improve, expand or summarize)."""

        text = _require_text(text, "text")
        action_key = str(getattr(action, "value", action) or "").lower()
        template = self.edit_templates.get(action_key)
        if template is None:
            raise AIRequestError(f"Unsupported edit action: {action!r}.")
        try:
            prompt = template.format(text=text)
        except (KeyError, IndexError, ValueError) as exc:
            raise AIRequestError(f"The {action_key} prompt template is invalid: {exc!r}.") from exc
        return self._complete(self.text_model, prompt, operation=f"In-line edit ({action_key})", **generation_kwargs).strip()

    def _complete(
        self,
        model: str,
        prompt: str,
        *,
        operation: str,
        max_new_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
    ) -> str:
        client = self._require_client()
        max_tokens, temperature, top_p = self._sampling(max_new_tokens, temperature, top_p)

        with self._translate_errors(operation):
            if self._uses_responses_api(model):
                payload = _without_none({
                    "model": model,
                    "input": prompt,
                    "max_output_tokens": max_tokens,
                    "temperature": temperature,
                    "top_p": top_p,
                })
                resp = client.responses.create(**payload)
                return self._require_output(_responses_text(resp), operation)

            kwargs = _without_none({
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": max_tokens,
                "n": 1,
                "temperature": temperature,
                "top_p": top_p,
            })
            resp = client.chat.completions.create(**kwargs)
            return self._require_output(_chat_text(resp), operation)

    def _sampling(
        self, max_new_tokens: Any, temperature: Any, top_p: Any
    ) -> Tuple[int, Optional[float], Optional[float]]:
        # Values come from prompt_config.json unchecked.
        raw_tokens = max_new_tokens if max_new_tokens is not None else self.default_max_tokens
        if isinstance(raw_tokens, bool) or not isinstance(raw_tokens, int) or raw_tokens <= 0:
            raise AIRequestError(f"max_new_tokens must be a positive integer, got {raw_tokens!r}.")
        try:
            temperature = float(temperature) if temperature is not None else None
            top_p = float(top_p) if top_p is not None else None
        except (TypeError, ValueError) as exc:
            raise AIRequestError(f"Sampling parameters must be numbers: {exc}") from exc
        return raw_tokens, temperature, top_p

    @staticmethod
    def _require_output(text: Optional[str], operation: str) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise AIBackendError(f"{operation} returned no text.")
        return cleaned

    # ---------------- images ----------------
    def analyze_image(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        prompt = _require_text(prompt, "prompt")
        if not image_bytes:
            raise AIRequestError("An image is required for analysis.")
        if mime_type not in SUPPORTED_IMAGE_MIME_TYPES:
            raise AIRequestError(f"Unsupported image type: {mime_type}.")
        client = self._require_client()

        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        with self._translate_errors("Image analysis"):
            resp = client.chat.completions.create(
                model=self.quality_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
                max_tokens=self.default_max_tokens,
            )
            return self._require_output(_chat_text(resp), "Image analysis")

    def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> bytes:
        prompt = _require_text(prompt, "prompt")
        size = ASPECT_RATIO_SIZES.get(aspect_ratio)
        if size is None:
            raise AIRequestError(
                f"Unsupported aspect ratio {aspect_ratio!r}; use one of {', '.join(ASPECT_RATIO_SIZES)}."
            )
        client = self._require_client()
        with self._translate_errors("Image generation"):
            resp = client.images.generate(model=self.image_model, prompt=prompt, size=size, n=1)
            encoded = getattr(resp.data[0], "b64_json", None)
            if not encoded:
                raise AIBackendError("Image generation returned no image data.")
            return base64.b64decode(encoded)

    # ---------------- speech ----------------
    def synthesize_speech(self, text: str) -> bytes:
        text = _require_text(text, "text")
        client = self._require_client()
        with self._translate_errors("Speech synthesis"):
            resp = client.audio.speech.create(
                model=self.speech_model,
                voice=self.speech_voice,
                input=text,
                response_format="wav",
            )
            audio = resp.read()
            if not audio:
                raise AIBackendError("Speech synthesis returned no audio.")
            return audio

    # ---------------- live ----------------
    def open_live_session(self, callbacks, *, instructions: Optional[str] = None):
        """Open a realtime voice session and start dispatching its events.

        Returns a started :class:`~studio.ai.live.LiveSession`; the caller must
        ``close()`` it.
        """

        from .live import LiveSession

        client = self._require_client()
        with self._translate_errors("Live session"):
            realtime = getattr(client, "realtime", None)
            general_availability = realtime is not None
            if realtime is None:
                realtime = client.beta.realtime
            manager = realtime.connect(model=self.live_model)
        session = LiveSession(
            manager,
            callbacks,
            instructions=instructions,
            general_availability=general_availability,
        )
        session.start()
        return session


# ---------------- helpers ----------------
def _require_text(value: Optional[str], label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise AIRequestError(f"{label} must be a non-empty string.")
    return value


def _without_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _chat_text(resp: Any) -> str:
    choices = getattr(resp, "choices", []) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = message.get("content") if isinstance(message, dict) else getattr(message, "content", None)
    if isinstance(content, list):
        parts = [str(part.get("text") or "") for part in content if isinstance(part, dict) and part.get("type") == "text"]
        return "\n".join(part for part in parts if part)
    return str(content or "")


def _iter_output_content(resp: Any) -> Iterator[Any]:
    for item in getattr(resp, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for part in getattr(item, "content", None) or []:
            yield part


def _responses_text(resp: Any) -> str:
    text = getattr(resp, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text
    parts = [getattr(part, "text", "") for part in _iter_output_content(resp)]
    return "\n".join(part for part in parts if isinstance(part, str) and part)


def _collect_citations(resp: Any) -> List[Source]:
    sources: List[Source] = []
    seen = set()
    for part in _iter_output_content(resp):
        for annotation in getattr(part, "annotations", None) or []:
            if getattr(annotation, "type", None) != "url_citation":
                continue
            uri = getattr(annotation, "url", None)
            if not uri or uri in seen:
                continue
            seen.add(uri)
            sources.append(Source(uri=uri, title=getattr(annotation, "title", None) or uri))
    return sources


__all__ = [
    "ASPECT_RATIO_SIZES",
    "GenerativeClient",
    "QualityTier",
    "RetrievalResult",
    "Source",
]
