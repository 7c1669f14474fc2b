"""Credential providers: resolve access tokens by provider name."""

from __future__ import annotations

import os
from typing import Protocol

from notifeed.errors.exceptions import CredentialError


class CredentialProvider(Protocol):
    async def get_access_token(self, provider: str) -> str:
        """Return a bearer token for ``provider`` or raise."""
        ...


class EnvCredentialProvider:
    """Resolves tokens from environment variables.

    Stores env var NAMES, never the secrets themselves; the value is read at
    call time so a rotated token is picked up on the next poll.
    """

    def __init__(self, env_vars: dict[str, str] | None = None) -> None:
        self._env_vars = dict(env_vars or {"slack": "SLACK_TOKEN"})

    async def get_access_token(self, provider: str) -> str:
        env_var = self._env_vars.get(provider)
        if not env_var:
            raise CredentialError(provider, f"No credential configured for provider '{provider}'")
        token = os.environ.get(env_var)
        if not token:
            raise CredentialError(provider, f"Environment variable {env_var} is not set")
        return token


class StaticCredentialProvider:
    """Fixed token per provider, for scripts and tests."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    async def get_access_token(self, provider: str) -> str:
        try:
            return self._tokens[provider]
        except KeyError:
            raise CredentialError(provider, f"No token for provider '{provider}'") from None
