"""Generative AI integration for the studio."""

from __future__ import annotations

from flask import current_app

from .client import GenerativeClient, QualityTier, RetrievalResult, Source  # noqa: F401
from .errors import AIBackendError, AIConfigurationError, AIRequestError  # noqa: F401
from .prompts import PromptConfigError, inline_edit_templates

CLIENT_INSTANCE_KEY = "_GENERATIVE_CLIENT_INSTANCE"


def get_generative_client() -> GenerativeClient:
    """Return the application's shared client, building it on first use.

    A client is always returned. Without ``OPENAI_API_KEY`` it is unconfigured
    and every call fails fast with :class:`AIConfigurationError`.
    """

    app = current_app
    cached = app.config.get(CLIENT_INSTANCE_KEY)
    if cached is not None:
        return cached

    api_key = app.config.get("OPENAI_API_KEY")
    if not api_key:
        app.logger.info("OPENAI_API_KEY not configured; AI features will report a configuration error.")

    try:
        templates = inline_edit_templates()
    except PromptConfigError as exc:
        app.logger.warning("Using default in-line edit prompts: %s", exc)
        templates = None

    client = GenerativeClient(
        api_key,
        text_model=app.config["AI_TEXT_MODEL"],
        quality_model=app.config["AI_QUALITY_MODEL"],
        reasoning_model=app.config["AI_REASONING_MODEL"],
        image_model=app.config["AI_IMAGE_MODEL"],
        speech_model=app.config["AI_SPEECH_MODEL"],
        speech_voice=app.config["AI_SPEECH_VOICE"],
        live_model=app.config["AI_LIVE_MODEL"],
        edit_templates=templates,
    )
    app.config[CLIENT_INSTANCE_KEY] = client
    return client


__all__ = [
    "AIBackendError",
    "AIConfigurationError",
    "AIRequestError",
    "GenerativeClient",
    "QualityTier",
    "RetrievalResult",
    "Source",
    "get_generative_client",
]
