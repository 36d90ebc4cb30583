"""
Settings and configuration for the archive client.

Centralizes configuration values and provides validation with fail-fast behavior.
Settings are immutable; derived values (such as a different account id) are
new instances.
"""
from __future__ import annotations

import dataclasses
import os
import re
from dataclasses import dataclass
from typing import Optional

from .planner import ONE_MIB, validate_part_size

__all__ = ["Settings", "DEFAULT_ACCOUNT_ID", "create_settings_from_env"]

# Sentinel the service resolves to the credentials' own account
DEFAULT_ACCOUNT_ID = "-"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the archive client.

    Service Settings:
        endpoint_url: Service endpoint (derived from region when omitted)
        region: Service region
        account_id: Account scope for every request ("-" = caller's account)

    HTTP Settings:
        http_timeout_s: Request timeout in seconds
        retry_max_attempts: Total attempts per call, including the first (1 = no retry)
        retry_base_delay_s: Delay before the first retry
        retry_multiplier: Exponential growth factor between retries
        retry_max_delay_s: Upper bound on a single retry delay

    Transfer Settings:
        part_size: Default multipart part size (power of two, 1 MiB..4 GiB)
        max_concurrency: Parts uploaded concurrently by the streaming uploader
        page_size: Optional page-size hint for listing calls
    """
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    account_id: str = DEFAULT_ACCOUNT_ID

    http_timeout_s: float = 60.0
    retry_max_attempts: int = 5
    retry_base_delay_s: float = 0.5
    retry_multiplier: float = 2.0
    retry_max_delay_s: float = 20.0

    part_size: int = 8 * ONE_MIB
    max_concurrency: int = 4
    page_size: Optional[int] = None

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.region:
            raise ValueError("region is required")
        if not re.match(r"^[a-z]{2}(?:-[a-z]+)+-\d+$", self.region):
            raise ValueError(f"Invalid region format: {self.region}")

        if self.endpoint_url is not None:
            url_pattern = r"^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$"
            if not re.match(url_pattern, self.endpoint_url):
                raise ValueError(f"Invalid endpoint_url format: {self.endpoint_url}")

        if not self.account_id:
            raise ValueError("account_id must not be empty (use '-' for the caller's account)")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be at least 1, got {self.retry_max_attempts}")
        if self.retry_base_delay_s < 0 or self.retry_max_delay_s < 0:
            raise ValueError("retry delays must be non-negative")
        if self.retry_multiplier < 1:
            raise ValueError(f"retry_multiplier must be >= 1, got {self.retry_multiplier}")

        # Raises InvalidPartSizeError (a ValueError)
        validate_part_size(self.part_size)

        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")

        if self.page_size is not None and self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")

    @property
    def resolved_endpoint(self) -> str:
        """Endpoint URL, defaulting to the regional service endpoint."""
        return self.endpoint_url or f"https://glacier.{self.region}.amazonaws.com"

    def with_account_id(self, account_id: str) -> Settings:
        """Return new settings scoped to ``account_id``."""
        return dataclasses.replace(self, account_id=account_id)


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - GLACIER_REGION (default: us-east-1)
        - GLACIER_ENDPOINT_URL (optional)
        - GLACIER_ACCOUNT_ID (default: "-")
        - GLACIER_HTTP_TIMEOUT (default: 60.0)
        - GLACIER_RETRY_MAX_ATTEMPTS (default: 5)
        - GLACIER_RETRY_BASE_DELAY (default: 0.5)
        - GLACIER_RETRY_MAX_DELAY (default: 20.0)
        - GLACIER_PART_SIZE (default: 8388608)
        - GLACIER_MAX_CONCURRENCY (default: 4)
        - GLACIER_PAGE_SIZE (optional)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: Optional[int]) -> Optional[int]:
        value = os.getenv(key)
        return int(value) if value else default

    return Settings(
        region=os.getenv("GLACIER_REGION") or "us-east-1",
        endpoint_url=os.getenv("GLACIER_ENDPOINT_URL") or None,
        account_id=os.getenv("GLACIER_ACCOUNT_ID") or DEFAULT_ACCOUNT_ID,
        http_timeout_s=get_float("GLACIER_HTTP_TIMEOUT", 60.0),
        retry_max_attempts=get_int("GLACIER_RETRY_MAX_ATTEMPTS", 5),
        retry_base_delay_s=get_float("GLACIER_RETRY_BASE_DELAY", 0.5),
        retry_max_delay_s=get_float("GLACIER_RETRY_MAX_DELAY", 20.0),
        part_size=get_int("GLACIER_PART_SIZE", 8 * ONE_MIB),
        max_concurrency=get_int("GLACIER_MAX_CONCURRENCY", 4),
        page_size=get_int("GLACIER_PAGE_SIZE", None),
    )
