"""
Endpoint authentication settings.

An endpoint authenticates with at most one mechanism. The raw parameters
expose each mechanism's fields side by side; ``resolve_auth`` collapses them
into exactly one variant (or None) and rejects combinations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from tsmigrator.exceptions import ConfigurationError

if TYPE_CHECKING:
    from tsmigrator.config.params import EndpointParams


@dataclass(frozen=True)
class BasicAuth:
    """HTTP basic authentication. Either part may be empty."""

    kind: ClassVar[str] = "basic_auth"

    username: str = ""
    password: str = field(default="", repr=False)


@dataclass(frozen=True)
class BearerToken:
    """Static bearer token."""

    kind: ClassVar[str] = "bearer_token"

    token: str = field(repr=False)


@dataclass(frozen=True)
class BearerTokenFile:
    """Bearer token read from a file by the transport on each request."""

    kind: ClassVar[str] = "bearer_token_file"

    path: str


@dataclass(frozen=True)
class OAuth2:
    """OAuth2 client-credentials flow."""

    kind: ClassVar[str] = "oauth2"

    client_id: str
    token_url: str
    client_secret: str = field(default="", repr=False)
    scopes: tuple[str, ...] = ()


AuthConfig = BasicAuth | BearerToken | BearerTokenFile | OAuth2


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""


def resolve_auth(endpoint: str, params: EndpointParams) -> AuthConfig | None:
    """
    Pick the single configured auth mechanism for an endpoint.

    Args:
        endpoint: "reader" or "writer", used in error messages
        params: Raw endpoint parameters

    Returns:
        The configured mechanism, or None when no auth is configured

    Raises:
        ConfigurationError: If more than one mechanism is configured, or an
            OAuth2 setup is incomplete
    """
    candidates: list[AuthConfig] = []

    if _present(params.username) or _present(params.password):
        candidates.append(BasicAuth(username=params.username or "", password=params.password or ""))

    oauth2_fields = (
        params.oauth2_client_id,
        params.oauth2_client_secret,
        params.oauth2_token_url,
    )
    if any(_present(v) for v in oauth2_fields) or params.oauth2_scopes:
        if not (_present(params.oauth2_client_id) and _present(params.oauth2_token_url)):
            raise ConfigurationError(
                f"{endpoint} auth validation: oauth2 requires client_id and token_url",
                field=f"{endpoint}.oauth2",
            )
        candidates.append(
            OAuth2(
                client_id=params.oauth2_client_id or "",
                token_url=params.oauth2_token_url or "",
                client_secret=params.oauth2_client_secret or "",
                scopes=tuple(params.oauth2_scopes or ()),
            )
        )

    if _present(params.bearer_token):
        candidates.append(BearerToken(token=params.bearer_token or ""))

    if _present(params.bearer_token_file):
        candidates.append(BearerTokenFile(path=params.bearer_token_file or ""))

    if len(candidates) > 1:
        raise ConfigurationError(
            f"{endpoint} auth validation: at most one of basic_auth, oauth2, "
            "bearer_token & bearer_token_file must be configured",
            field=f"{endpoint}.auth",
        )
    return candidates[0] if candidates else None


__all__ = [
    "AuthConfig",
    "BasicAuth",
    "BearerToken",
    "BearerTokenFile",
    "OAuth2",
    "resolve_auth",
]
