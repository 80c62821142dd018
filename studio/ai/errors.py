"""Failures reported by the generative backend."""
from __future__ import annotations


class AIBackendError(RuntimeError):
    """Raised when a generative call fails or returns nothing usable."""


class AIConfigurationError(AIBackendError):
    """Raised before any network call when credentials are missing."""


class AIRequestError(AIBackendError):
    """Raised when the request itself is malformed (empty prompt, bad ratio...)."""
