"""Identity checks consumed by the remote store.

Signing in is handled elsewhere; the storage layers only need to know
whether a real (non-anonymous) user is present and which bearer token to
send on their behalf.
"""

from __future__ import annotations


class AuthProvider:
    """No identity: every remote call becomes a no-op."""

    def is_authenticated(self) -> bool:
        return False

    def access_token(self) -> str | None:
        return None


class TokenAuth(AuthProvider):
    """Identity backed by an already issued access token."""

    def __init__(self, token: str | None, *, anonymous: bool = False) -> None:
        self._token = token or None
        self.anonymous = anonymous

    def is_authenticated(self) -> bool:
        return self._token is not None and not self.anonymous

    def access_token(self) -> str | None:
        return self._token if self.is_authenticated() else None

    def sign_out(self) -> None:
        self._token = None
