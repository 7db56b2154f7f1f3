"""Error kinds raised across the tutor."""

from __future__ import annotations


class TutorError(Exception):
    """Base class for every error the tutor raises on purpose."""


class ConfigurationError(TutorError):
    """A required credential or setting is missing."""


class PayloadValidationError(TutorError):
    """Request fields are missing or malformed. No model call was made."""


class ModelGatewayError(TutorError):
    """The model call failed or returned no usable choice."""


class MalformedResponseError(TutorError):
    """The model replied, but the reply could not be turned into valid data.

    Carries the original reply and the fence-stripped text so the failure can
    be inspected by whoever receives it.
    """

    def __init__(self, message: str, raw: str = "", cleaned: str = ""):
        super().__init__(message)
        self.raw = raw
        self.cleaned = cleaned


class SecondaryGenerationError(TutorError):
    """Fetching a fresh question after a correct answer failed."""
