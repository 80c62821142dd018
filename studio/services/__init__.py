"""Service layer helpers for AI-assisted workflows."""

from __future__ import annotations

from .assistant import (  # noqa: F401
    AssistantError,
    AssistantMode,
    AssistantReply,
    GeneratedImage,
    SpeechClip,
    analyze_image,
    ask_assistant,
    generate_image,
    open_live_conversation,
    save_generated_image,
    synthesize_speech,
)

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
