"""Exceptions raised by wtfy_core.

Rate-limit denials are deliberately absent: being refused admission is a
normal outcome and is reported through ``Admission.allowed``.
"""

from __future__ import annotations


class WtfyError(Exception):
    """Base class for every error wtfy raises on purpose."""


class ConfigurationError(WtfyError):
    """A credential or setting required to start is missing. Fatal."""


class InvalidRequestError(WtfyError, ValueError):
    """The submitted request is malformed or names an unsupported SDK."""


class TagListingError(WtfyError):
    """The repository's tags could not be listed.

    Nothing useful can be analysed without them, so unlike other upstream
    failures this one is escalated instead of degraded.
    """


class AnalysisFailedError(WtfyError):
    """The analysis workflow failed. The cause is chained and recorded on the progress row."""

    def __init__(self, request_id: str, message: str):
        super().__init__(f"Analysis {request_id} failed: {message}")
        self.request_id = request_id
        self.message = message
