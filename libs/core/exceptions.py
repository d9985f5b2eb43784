"""Custom exceptions for PineUI Builder."""

from typing import Any, Optional


class BuilderError(Exception):
    """Base exception for PineUI Builder."""

    status_code = 500

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class FetchError(BuilderError):
    """Outbound GET failed (connection, non-2xx status or malformed body)."""

    status_code = 502

    def __init__(
        self,
        message: str,
        url: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url


class ContextUnavailable(BuilderError):
    """
    No contract document in memory, on disk or from the network.

    Only expected on a brand-new deployment with no connectivity.
    """

    status_code = 503


class BundleDownloadError(BuilderError):
    """Bundle artifact pair could not be materialized for a version."""

    def __init__(
        self,
        message: str,
        version: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.version = version


class InvalidRequestError(BuilderError):
    """Client input rejected before any remote call."""

    status_code = 400


class ProviderStreamError(BuilderError):
    """Model provider failed while streaming."""

    status_code = 502


class ConfigurationError(BuilderError):
    """Required configuration is missing."""

    pass
