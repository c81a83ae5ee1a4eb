from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Optional


class CredentialProvider(ABC):
    """Source of the bearer token attached to every service request."""

    @abstractmethod
    def get_token(self) -> Optional[str]:
        """Return the current token, or None when the learner is signed out."""


class StaticCredentialProvider(CredentialProvider):
    """Token held in memory, e.g. one passed on the command line."""

    def __init__(self, token: Optional[str] = None):
        self._token = token or None

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None


class EnvCredentialProvider(CredentialProvider):
    """Token read from an environment variable on each request."""

    def __init__(self, env_var: str):
        self.env_var = env_var

    def get_token(self) -> Optional[str]:
        value = os.getenv(self.env_var, "").strip()
        return value or None
