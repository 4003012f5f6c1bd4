"""Capability tokens for the two calendar URLs.

Possession of a URL is the only access control:

- the raw feed is served at ``/<sha512(secret + origin_id)>.ics``
- the free/busy feed is served at ``/<origin_id>.ics``

Knowing the origin address is therefore enough to derive the free/busy URL,
while the raw feed additionally needs the shared secret. Tokens do not expire
and cannot be revoked short of changing the secret or the origin address.
"""

from __future__ import annotations

import hashlib

from calproxy.origin.models import Origin


def derive_full_token(secret: str, origin_id: str) -> str:
    """Token gating the raw calendar."""
    return hashlib.sha512((secret + origin_id).encode("utf-8")).hexdigest()


def derive_free_token(origin_id: str) -> str:
    """Token gating the free/busy calendar: the origin identifier itself."""
    return origin_id


class AccessGateway:
    """Maps request paths to the raw or censored half of the origin's snapshot."""

    def __init__(self, secret: str, origin: Origin) -> None:
        self.origin = origin
        self.full_token = derive_full_token(secret, origin.identifier)
        self.free_token = derive_free_token(origin.identifier)

    @property
    def full_path(self) -> str:
        return f"/{self.full_token}.ics"

    @property
    def free_path(self) -> str:
        return f"/{self.free_token}.ics"

    def raw_calendar(self) -> str:
        snapshot = self.origin.snapshot
        return snapshot.raw if snapshot is not None else ""

    def free_busy_calendar(self) -> str:
        snapshot = self.origin.snapshot
        return snapshot.censored if snapshot is not None else ""
