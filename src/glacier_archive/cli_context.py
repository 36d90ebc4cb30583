"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and the
service client, avoiding global state and enabling proper dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .client import GlacierClient
from .settings import Settings, create_settings_from_env
from .storage.glacier_http import HttpTransport


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, client) that are
    initialized once and shared across a CLI command execution.
    """
    settings: Settings
    _client: Optional[GlacierClient] = None

    @classmethod
    def from_env(cls) -> CLIContext:
        """
        Create CLI context from environment variables.

        Returns:
            CLIContext with settings loaded from environment
        """
        settings = create_settings_from_env()
        return cls(settings=settings)

    @property
    def client(self) -> GlacierClient:
        """
        Get or create the service client (lazy initialization).

        The HTTP transport is only built on first access, so commands that
        never talk to the service (tree-hash) need no endpoint.
        """
        if self._client is None:
            self._client = GlacierClient(HttpTransport(self.settings), self.settings)
        return self._client
