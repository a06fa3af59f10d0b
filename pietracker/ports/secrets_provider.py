"""SecretsProvider Port Interface.

Contract: resolve the API token (and any other secret) by logical name.
Values are returned verbatim to the caller and must never reach a log line.
`describe` names where a secret is expected to come from, so a missing
token can be reported without revealing anything about its value.
"""

from __future__ import annotations

from typing import Protocol


class SecretsProvider(Protocol):
    def get(self, secret_name: str) -> str:
        """Return the secret, raising if it is unknown or unset."""
        ...

    def describe(self, secret_name: str) -> str:
        """Human-readable origin of the secret, e.g. an environment variable name."""
        ...
