from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from flask import current_app

PROMPT_CACHE_KEY = "_PROMPT_CONFIG_CACHE"

DEFAULT_INLINE_EDIT_TEMPLATES: Dict[str, str] = {
    "improve": (
        "Rewrite the following text to be more clear, engaging, and grammatically correct. "
        "Do not add any explanatory preamble, just provide the improved text:\n\n\"{text}\""
    ),
    "expand": (
        "Expand on the following idea or scene, adding more detail and description. "
        "Do not add any explanatory preamble, just provide the expanded text:\n\n\"{text}\""
    ),
    "summarize": (
        "Summarize the following text concisely. "
        "Do not add any explanatory preamble, just provide the summary:\n\n\"{text}\""
    ),
}


class PromptConfigError(RuntimeError):
    """Raised when the prompt configuration file is missing or malformed."""


def load_prompt_entry(key: str, *, required: bool = True) -> Dict[str, Any]:
    config = _load_prompt_config()
    entry = config.get(key)
    if entry is None:
        if required:
            raise PromptConfigError(f"Prompt configuration is missing the '{key}' entry.")
        return {}
    if not isinstance(entry, dict):
        raise PromptConfigError(f"Prompt configuration entry '{key}' must be a dictionary.")
    return entry


def _load_prompt_config() -> Dict[str, Any]:
    app = current_app
    cached = app.config.get(PROMPT_CACHE_KEY)
    if isinstance(cached, dict):
        return cached

    config_path = app.config.get("PROMPT_CONFIG_PATH")
    if not config_path:
        raise PromptConfigError("PROMPT_CONFIG_PATH is not configured.")

    path = Path(config_path)
    if not path.exists():
        raise PromptConfigError(f"Prompt configuration file not found at: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:  # pragma: no cover - malformed file should be obvious at runtime
            raise PromptConfigError(f"Unable to parse prompt configuration: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise PromptConfigError("Prompt configuration must be a JSON object.")

    app.config[PROMPT_CACHE_KEY] = data
    return data


def inline_edit_templates() -> Dict[str, str]:
    """Return the configured rewrite templates, filling gaps with the defaults."""

    entry = load_prompt_entry("inline_edit", required=False)
    templates = dict(DEFAULT_INLINE_EDIT_TEMPLATES)
    configured = entry.get("templates")
    if isinstance(configured, dict):
        for action, template in configured.items():
            if isinstance(template, str) and "{text}" in template:
                templates[action] = template
    return templates


_GENERATION_PARAMETER_KEYS = {"max_new_tokens", "temperature", "top_p"}


def extract_generation_parameters(parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Filter a raw parameters dictionary to generation kwargs the client accepts."""

    if not isinstance(parameters, dict):
        return {}

    kwargs: Dict[str, Any] = {}
    for key in _GENERATION_PARAMETER_KEYS:
        if key in parameters and parameters[key] is not None:
            kwargs[key] = parameters[key]
    return kwargs


__all__ = [
    "DEFAULT_INLINE_EDIT_TEMPLATES",
    "PromptConfigError",
    "extract_generation_parameters",
    "inline_edit_templates",
    "load_prompt_entry",
]
