"""Authentication data models for azzonal.

Service principal credentials are read from the process environment only.
Nothing here validates the values: a missing or malformed value surfaces
as an authentication failure when the first remote call is attempted.

Security features:
- Frozen dataclass for immutability
- Secret excluded from repr
- Secret masking in to_dict_masked()
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from azzonal.log_sanitizer import LogSanitizer

# (field, primary variable, standard Azure SDK fallback)
ENVIRONMENT_VARIABLES = (
    ("client_id", "CLIENT_ID", "AZURE_CLIENT_ID"),
    ("client_secret", "CLIENT_SECRET", "AZURE_CLIENT_SECRET"),
    ("tenant_id", "TENANT_ID", "AZURE_TENANT_ID"),
    ("subscription_id", "SUBSCRIPTION_ID", "AZURE_SUBSCRIPTION_ID"),
)


@dataclass(frozen=True)
class ServicePrincipalConfig:
    """Service principal authentication configuration.

    Security:
    - client_secret comes from the environment and is never persisted
    - client_secret is excluded from repr and masked in to_dict_masked()
    """

    client_id: str | None = None
    tenant_id: str | None = None
    subscription_id: str | None = None
    client_secret: str | None = field(default=None, repr=False)

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "ServicePrincipalConfig":
        """Read credentials from environment variables.

        CLIENT_ID, CLIENT_SECRET, TENANT_ID and SUBSCRIPTION_ID take
        precedence over their AZURE_* counterparts.

        Args:
            environ: Mapping to read from (defaults to os.environ)
        """
        if environ is None:
            environ = os.environ

        values: dict[str, Any] = {}
        for field_name, primary, fallback in ENVIRONMENT_VARIABLES:
            values[field_name] = environ.get(primary) or environ.get(fallback) or None

        config = cls(**values)
        LogSanitizer.register_secret(config.client_secret)
        return config

    @property
    def missing_fields(self) -> list[str]:
        """Names of the values that were not provided."""
        return [name for name, _, _ in ENVIRONMENT_VARIABLES if not getattr(self, name)]

    def to_dict_masked(self) -> dict[str, Any]:
        """Convert to dictionary with the secret masked.

        Returns dict safe for logging.
        """
        return {
            "client_id": self.client_id,
            "tenant_id": self.tenant_id,
            "subscription_id": self.subscription_id,
            "client_secret": LogSanitizer.MASKED if self.client_secret else None,
        }
