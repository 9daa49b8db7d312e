"""Exceptions raised for caller misuse of the OpenSubtitles client.

Remote failures are never raised: they come back as ``Outcome`` values.
"""


class OpenSubtitlesError(Exception):
    """Custom exception for OpenSubtitles API errors."""
    pass


class InvalidCredentialError(OpenSubtitlesError, ValueError):
    """An authenticated operation was called without a usable token."""
    pass


class MissingApiKeyError(OpenSubtitlesError, ValueError):
    """No OpenSubtitles API key is configured."""
    pass
