"""Origin feed state and the snapshot published for it."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from urllib.parse import unquote, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict


class OriginAuthType(str, Enum):
    """Supported credential types for the origin feed."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


class OriginAuth(BaseModel):
    """Credential for the origin feed, sent as an Authorization header."""

    type: OriginAuthType = OriginAuthType.NONE
    username: Optional[str] = None
    password: Optional[str] = None
    bearer_token: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def get_headers(self) -> dict[str, str]:
        """Get HTTP headers for authentication."""
        headers = {}

        if self.type == OriginAuthType.BASIC and self.username is not None:
            credentials = self.username
            if self.password is not None:
                credentials += ":" + self.password
            encoded = base64.b64encode(credentials.encode()).decode()
            headers["Authorization"] = f"Basic {encoded}"

        elif self.type == OriginAuthType.BEARER and self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"

        return headers

    def __repr__(self) -> str:
        return f"OriginAuth(type={self.type.value!r})"

    __str__ = __repr__


def split_credentials(url: str) -> tuple[str, OriginAuth]:
    """Move URL userinfo into an ``OriginAuth`` so it never appears in logged URLs.

    Returns:
        The URL without userinfo and the extracted credential
    """
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url, OriginAuth()

    userinfo, _, host = parts.netloc.rpartition("@")
    username, sep, password = userinfo.partition(":")
    auth = OriginAuth(
        type=OriginAuthType.BASIC,
        username=unquote(username),
        password=unquote(password) if sep else None,
    )
    return urlunsplit(parts._replace(netloc=host)), auth


def origin_identifier(endpoint: str) -> str:
    """Stable identifier of an origin: hex SHA-512 of its endpoint address."""
    return hashlib.sha512(endpoint.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Snapshot:
    """Raw and censored calendar text from one successful refresh."""

    raw: str
    censored: str
    fetched_at: datetime


class Origin:
    """The upstream calendar feed and its currently published snapshot.

    The snapshot is replaced as a whole by ``publish``; readers take the
    reference once and read both halves from it, so a raw text is never paired
    with the censored text of another refresh.
    """

    def __init__(self, url: str, auth: Optional[OriginAuth] = None) -> None:
        endpoint, url_auth = split_credentials(url)
        self._endpoint = endpoint
        self._id = origin_identifier(endpoint)
        if auth is not None and auth.type != OriginAuthType.NONE:
            self.auth = auth
        else:
            self.auth = url_auth
        self._snapshot: Optional[Snapshot] = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def identifier(self) -> str:
        return self._id

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def last_fetch(self) -> Optional[datetime]:
        snapshot = self._snapshot
        return snapshot.fetched_at if snapshot is not None else None

    def publish(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot

    def __repr__(self) -> str:
        return f"Origin(endpoint={self._endpoint!r}, auth={self.auth.type.value!r})"
