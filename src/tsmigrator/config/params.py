"""
Raw migration parameters.

These dataclasses mirror what an operator supplies (command-line flags, a
config file, keyword arguments). Every field defaults to None, meaning
"not set", so each default is applied independently during validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass
class EndpointParams:
    """
    Raw settings for one remote endpoint (reader or writer).

    Attributes:
        url: Endpoint URL (required)
        timeout: Per-attempt deadline ("5m", seconds, or timedelta)
        retry_delay: Fixed delay between retries
        max_retries: Retry budget; 0 retries without limit
        on_timeout: Action on timeout: "retry", "skip" or "abort"
        on_error: Action on any other error: "retry", "skip" or "abort"
        username, password: Basic auth
        bearer_token, bearer_token_file: Bearer auth
        oauth2_client_id, oauth2_client_secret, oauth2_token_url,
        oauth2_scopes: OAuth2 client-credentials auth
    """

    url: str | None = None
    timeout: str | float | timedelta | None = None
    retry_delay: str | float | timedelta | None = None
    max_retries: int | None = None
    on_timeout: str | None = None
    on_error: str | None = None

    username: str | None = None
    password: str | None = field(default=None, repr=False)
    bearer_token: str | None = field(default=None, repr=False)
    bearer_token_file: str | None = None
    oauth2_client_id: str | None = None
    oauth2_client_secret: str | None = field(default=None, repr=False)
    oauth2_token_url: str | None = None
    oauth2_scopes: list[str] | None = None


@dataclass
class MigrationParams:
    """
    Raw settings for a migration run.

    Example:
        >>> params = MigrationParams(
        ...     start="2024-01-01T00:00:00Z",
        ...     end="2024-02-01T00:00:00Z",
        ...     reader=EndpointParams(url="http://old:9090/api/v1/read"),
        ...     writer=EndpointParams(url="http://new:9201/write"),
        ...     max_read_size="100MB",
        ... )
    """

    start: str | int | float | datetime | None = None
    end: str | int | float | datetime | None = None

    reader: EndpointParams = field(default_factory=EndpointParams)
    writer: EndpointParams = field(default_factory=EndpointParams)

    lookahead_increment: str | float | timedelta | None = None
    max_read_duration: str | float | timedelta | None = None
    max_read_size: str | int | None = None
    concurrent_pull: int | None = None
    concurrent_push: int | None = None

    progress_enabled: bool | None = None
    progress_metric_name: str | None = None
    progress_metric_url: str | None = None

    human_readable: bool | None = None


__all__ = ["EndpointParams", "MigrationParams"]
