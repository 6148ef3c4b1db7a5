"""Resource name and credential generation.

Names are random so repeated runs in the same subscription never collide.
Passwords are generated per run and registered with the log sanitizer.
"""

import secrets
import string
from dataclasses import dataclass, fields

from azzonal.log_sanitizer import LogSanitizer

DEFAULT_ADMIN_USERNAME = "azureuser"
PASSWORD_LENGTH = 20
PASSWORD_SPECIALS = "!@#$%^&*()-_=+"


def create_random_name(prefix: str, max_len: int = 30) -> str:
    """Create a random resource name.

    Args:
        prefix: Leading part of the name
        max_len: Maximum total length

    Returns:
        ``prefix`` followed by random lowercase hex, truncated to ``max_len``

    Raises:
        ValueError: If the prefix leaves no room for the random suffix
    """
    if len(prefix) >= max_len:
        raise ValueError(f"Prefix '{prefix}' leaves no room for a random suffix (max {max_len})")
    suffix = secrets.token_hex(max_len)
    return (prefix + suffix)[:max_len]


def create_username() -> str:
    """Return the admin username for generated VMs."""
    return DEFAULT_ADMIN_USERNAME


def create_password(length: int = PASSWORD_LENGTH) -> str:
    """Create a random admin password meeting Azure complexity rules.

    Azure requires 3 of 4 character classes; this always includes all 4.
    The password is registered with LogSanitizer before it is returned.
    """
    if length < 16:
        raise ValueError("Password length must be at least 16")

    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(PASSWORD_SPECIALS),
    ]
    alphabet = string.ascii_letters + string.digits + PASSWORD_SPECIALS
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]

    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    password = "".join(chars)

    LogSanitizer.register_secret(password)
    return password


@dataclass(frozen=True)
class ResourceNames:
    """Every resource name used by a single run."""

    resource_group: str
    virtual_network: str
    subnet: str
    public_ip_1: str
    public_ip_2: str
    network_interface_1: str
    network_interface_2: str
    data_disk: str
    vm_1: str
    vm_2: str
    computer_name_1: str
    computer_name_2: str

    def __post_init__(self):
        """Reject duplicate names."""
        values = self.as_list()
        if len(set(values)) != len(values):
            raise ValueError("Resource names must be unique within a run")

    def as_list(self) -> list[str]:
        """Return all names in field order."""
        return [getattr(self, f.name) for f in fields(self)]

    @classmethod
    def generate(cls) -> "ResourceNames":
        """Generate a fresh set of random names."""
        return cls(
            resource_group=create_random_name("rgCOMV"),
            virtual_network=create_random_name("VirtualNetwork_"),
            subnet=create_random_name("subnet_"),
            public_ip_1=create_random_name("pip1"),
            public_ip_2=create_random_name("pip2"),
            network_interface_1=create_random_name("networkInterface"),
            network_interface_2=create_random_name("networkInterface"),
            data_disk=create_random_name("ds"),
            vm_1=create_random_name("lVM1", 15),
            vm_2=create_random_name("lVM2", 15),
            computer_name_1=create_random_name("linuxComputer", 15),
            computer_name_2=create_random_name("zonalComputer", 15),
        )
