"""Configuration management module.

This module handles persistent configuration storage using TOML format.
Stores non-secret defaults like region, zone, VM size and image, and builds
the per-run ProvisioningConfig from them.

Security:
- Config file permissions: 0600 (owner read/write only)
- Secrets (client secret, admin password) are never read from or written to the file
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import tomli
import tomlkit

from azzonal.naming import ResourceNames, create_password, create_username

logger = logging.getLogger(__name__)

FORBIDDEN_KEYS = {"client_secret", "password", "admin_password", "secret", "token"}


class ConfigError(Exception):
    """Raised when configuration operations fail."""

    pass


@dataclass(frozen=True)
class ImageReference:
    """Marketplace image used for every OS disk."""

    publisher: str = "Canonical"
    offer: str = "UbuntuServer"
    sku: str = "16.04-LTS"
    version: str = "latest"

    @classmethod
    def from_urn(cls, urn: str) -> "ImageReference":
        """Parse a ``publisher:offer:sku:version`` URN.

        Raises:
            ConfigError: If the URN does not have exactly four parts
        """
        parts = urn.split(":")
        if len(parts) != 4 or not all(parts):
            raise ConfigError(f"Invalid image URN: {urn}. Expected publisher:offer:sku:version")
        return cls(*parts)

    @property
    def urn(self) -> str:
        return f"{self.publisher}:{self.offer}:{self.sku}:{self.version}"

    def to_parameters(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class AzzonalConfig:
    """Defaults stored in ~/.azzonal/config.toml."""

    default_region: str = "eastus2"
    default_zone: str = "1"
    default_vm_size: str = "Standard_D2a_v4"
    image: str = "Canonical:UbuntuServer:16.04-LTS:latest"
    address_prefix: str = "10.0.0.0/28"
    service_endpoints: list[str] = field(default_factory=lambda: ["Microsoft.Storage"])
    data_disk_size_gb: int = 100
    data_disk_sku: str = "StandardSSD_LRS"
    os_disk_sku: str = "Standard_LRS"
    admin_username: str = "azureuser"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AzzonalConfig":
        """Create from dictionary.

        Raises:
            ConfigError: If the data holds secrets or unknown keys
        """
        secret_keys = sorted(k for k in data if k.lower() in FORBIDDEN_KEYS)
        if secret_keys:
            raise ConfigError(
                f"Secrets must not be stored in the config file: {', '.join(secret_keys)}. "
                "Use environment variables instead."
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        config = cls(**data)
        if not isinstance(config.data_disk_size_gb, int) or config.data_disk_size_gb <= 0:
            raise ConfigError(
                f"data_disk_size_gb must be a positive integer, got: {config.data_disk_size_gb}"
            )
        return config


@dataclass(frozen=True)
class ProvisioningConfig:
    """Everything a single provisioning run needs apart from credentials."""

    names: ResourceNames
    admin_password: str = field(repr=False)
    region: str = "eastus2"
    zone: str = "1"
    vm_size: str = "Standard_D2a_v4"
    image: ImageReference = field(default_factory=ImageReference)
    address_prefix: str = "10.0.0.0/28"
    service_endpoints: tuple[str, ...] = ("Microsoft.Storage",)
    data_disk_size_gb: int = 100
    data_disk_sku: str = "StandardSSD_LRS"
    os_disk_sku: str = "Standard_LRS"
    admin_username: str = "azureuser"
    # Zones of the first VM, whose dependent resources are zoned implicitly.
    # None means the same zone as everything else.
    implicit_vm_zones: tuple[str, ...] | None = None

    @property
    def vm_1_zones(self) -> tuple[str, ...]:
        if self.implicit_vm_zones is None:
            return (self.zone,)
        return self.implicit_vm_zones

    @classmethod
    def generate(cls, **overrides: Any) -> "ProvisioningConfig":
        """Create a config with fresh random names and a fresh password."""
        return cls(
            names=overrides.pop("names", None) or ResourceNames.generate(),
            admin_password=overrides.pop("admin_password", None) or create_password(),
            **overrides,
        )


class ConfigManager:
    """Manage azzonal configuration file.

    Configuration is stored at ~/.azzonal/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".azzonal"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file
        """
        if custom_path:
            return Path(custom_path).expanduser().resolve()
        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> AzzonalConfig:
        """Load configuration from file.

        A missing file yields the built-in defaults.

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return AzzonalConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)

            logger.debug(f"Loaded config from: {config_path}")
        except Exception as e:
            raise ConfigError(f"Failed to load config: {e}") from e

        return AzzonalConfig.from_dict(data)

    @classmethod
    def save_config(cls, config: AzzonalConfig, custom_path: str | None = None) -> Path:
        """Save configuration to file.

        Existing comments and formatting are preserved by tomlkit; the file
        is written to a temporary path and renamed into place.

        Returns:
            Path the config was written to

        Raises:
            ConfigError: If saving fails
        """
        config_path = cls.get_config_path(custom_path)
        temp_path = config_path.with_suffix(".tmp")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()

            for key, value in config.to_dict().items():
                doc[key] = value

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)

            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")
            return config_path

        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

    @classmethod
    def build_provisioning_config(
        cls,
        overrides: dict[str, Any] | None = None,
        custom_path: str | None = None,
    ) -> ProvisioningConfig:
        """Build the per-run config: CLI overrides > config file > defaults.

        Args:
            overrides: Values from CLI flags; None values are ignored
            custom_path: Custom config file path (optional)

        Returns:
            ProvisioningConfig with freshly generated names and password
        """
        stored = cls.load_config(custom_path)
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

        image = overrides.pop("image", stored.image)
        zone = overrides.pop("zone", stored.default_zone)

        return ProvisioningConfig.generate(
            region=overrides.pop("region", stored.default_region),
            zone=zone,
            vm_size=overrides.pop("vm_size", stored.default_vm_size),
            image=image if isinstance(image, ImageReference) else ImageReference.from_urn(image),
            address_prefix=stored.address_prefix,
            service_endpoints=tuple(stored.service_endpoints),
            data_disk_size_gb=stored.data_disk_size_gb,
            data_disk_sku=stored.data_disk_sku,
            os_disk_sku=stored.os_disk_sku,
            admin_username=stored.admin_username or create_username(),
            implicit_vm_zones=overrides.pop("implicit_vm_zones", None),
            **overrides,
        )
