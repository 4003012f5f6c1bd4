"""Exception hierarchy for calproxy.

Startup treats every error below as fatal. During periodic refreshes,
``FetchError`` and ``ParseError`` are logged and the previously published
snapshot stays in place.
"""

from __future__ import annotations

from typing import Optional


class CalProxyError(Exception):
    """Base exception for all calproxy errors."""


class FetchError(CalProxyError):
    """The origin calendar could not be retrieved.

    Raised when:
    - The connection fails or is reset
    - The request times out
    - The origin answers with a non-success HTTP status

    Messages only ever carry the credential-free origin URL.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(CalProxyError):
    """The fetched text is not well-formed iCalendar data."""


class ConfigurationError(CalProxyError):
    """Required configuration is missing or invalid.

    Raised when:
    - The origin URL, shared secret or listen port is missing
    - The listen port is not an integer
    - The origin URL is not an http(s) URL with a hostname
    """
