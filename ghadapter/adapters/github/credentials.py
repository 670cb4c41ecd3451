"""Credential value types.

A credential is one of two variants and each knows how it is presented to
the platform:

- ``AppCredential``: a signed app assertion, sent as ``Bearer <jwt>``; only
  valid for app-level endpoints (``/app/...``).
- ``InstallationCredential``: an installation access token, sent as
  ``token <value>``; valid for every other endpoint the installation can see.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Literal


@dataclass(frozen=True)
class AppIdentity:
    """The GitHub App as configured at startup."""

    app_id: int
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class SignedAssertion:
    """RS256 JWT asserting the caller is the app. Valid for 60 seconds."""

    token: str = field(repr=False)
    issued_at: int
    expires_at: int
    issuer: int

    @property
    def lifetime_seconds(self) -> int:
        return self.expires_at - self.issued_at


@dataclass(frozen=True)
class InstallationToken:
    """Access token returned by the installation token exchange."""

    token: str = field(repr=False)
    expires_at: str | None = None


@dataclass(frozen=True)
class AppCredential:
    assertion: SignedAssertion
    kind: ClassVar[Literal["app"]] = "app"

    @property
    def authorization(self) -> str:
        return f"Bearer {self.assertion.token}"


@dataclass(frozen=True)
class InstallationCredential:
    installation_id: int
    token: InstallationToken
    kind: ClassVar[Literal["installation"]] = "installation"

    @property
    def authorization(self) -> str:
        return f"token {self.token.token}"


Credential = AppCredential | InstallationCredential
