"""Access token seam used by the runtime API and the terminal proxy."""

from __future__ import annotations

import os
from typing import Protocol

from cloudgpu.errors import AuthError

ACCESS_TOKEN_ENV = "CLOUDGPU_ACCESS_TOKEN"


class TokenProvider(Protocol):
    def get_access_token(self) -> str: ...


class StaticTokenProvider:
    """Serves a pre-issued bearer token; the environment wins over config."""

    def __init__(self, token: str = "", *, env: dict[str, str] | None = None) -> None:
        source = os.environ if env is None else env
        self._token = source.get(ACCESS_TOKEN_ENV, "").strip() or token.strip()

    def get_access_token(self) -> str:
        if not self._token:
            raise AuthError(
                "No access token configured",
                hint=f"Set {ACCESS_TOKEN_ENV} or access_token in the config file.",
            )
        return self._token
