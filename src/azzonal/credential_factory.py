"""Credential factory for Azure authentication.

This module creates the Azure Identity SDK credential used by every
management client. Only service principal authentication with a client
secret is supported; token acquisition and caching are delegated to
azure-identity.

Security:
- No token storage - delegates to Azure Identity SDK
- Client secrets from environment variables only
- Log sanitization for all error messages
"""

from azure.identity import ClientSecretCredential

from azzonal.auth_models import ServicePrincipalConfig
from azzonal.log_sanitizer import LogSanitizer


class CredentialError(Exception):
    """Raised when credential creation fails."""

    pass


class CredentialFactory:
    """Factory for creating Azure Identity credentials."""

    @staticmethod
    def create_credential(config: ServicePrincipalConfig) -> ClientSecretCredential:
        """Create service principal credential with client secret.

        Missing values are passed through unchecked; azure-identity rejects
        them and the rejection is reported as a CredentialError.

        Args:
            config: Service principal configuration

        Returns:
            ClientSecretCredential: Credential with client secret

        Raises:
            CredentialError: If azure-identity rejects the configuration
        """
        try:
            return ClientSecretCredential(
                tenant_id=config.tenant_id,
                client_id=config.client_id,
                client_secret=config.client_secret,
            )
        except Exception as e:
            safe_error = LogSanitizer.sanitize_exception(e)
            missing = config.missing_fields
            hint = f" (missing: {', '.join(missing)})" if missing else ""
            raise CredentialError(
                f"Failed to create service principal credential{hint}: {safe_error}"
            ) from e
