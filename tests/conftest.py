"""
Shared test fixtures and configuration for azzonal tests.

This module provides common fixtures used across all test types:
- Isolation from real Azure credentials in the environment
- Sample provisioning configs and plans
- In-memory resource executor
- Temporary config directories
"""

import pytest

from azzonal.config_manager import ProvisioningConfig
from azzonal.log_sanitizer import LogSanitizer
from azzonal.naming import ResourceNames
from azzonal.plan import build_zonal_vm_plan
from tests.mocks.azure_mock import FakeResourceExecutor

TEST_PASSWORD = "Xq7!kP2#vL9@mN4$"  # noqa: S105 - test fixture, not a real credential

CREDENTIAL_VARIABLES = [
    "CLIENT_ID",
    "CLIENT_SECRET",
    "TENANT_ID",
    "SUBSCRIPTION_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_TENANT_ID",
    "AZURE_SUBSCRIPTION_ID",
]


# ============================================================================
# ENVIRONMENT FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Remove real credentials and registered secrets for every test.

    Tests must never reach a real subscription.
    """
    for name in CREDENTIAL_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    LogSanitizer.clear_secrets()
    yield
    LogSanitizer.clear_secrets()


@pytest.fixture
def sp_environment(monkeypatch):
    """Complete service principal environment."""
    values = {
        "CLIENT_ID": "12345678-1234-1234-1234-123456789012",
        "CLIENT_SECRET": "fake-client-secret-value",  # noqa: S105 - test fixture
        "TENANT_ID": "87654321-4321-4321-4321-210987654321",
        "SUBSCRIPTION_ID": "abcdef00-0000-0000-0000-000000abcdef",
    }
    for name, value in values.items():
        monkeypatch.setenv(name, value)
    return values


@pytest.fixture
def temp_config_dir(tmp_path):
    """Temporary .azzonal directory for config file tests."""
    config_dir = tmp_path / ".azzonal"
    config_dir.mkdir()
    return config_dir


# ============================================================================
# PLAN FIXTURES
# ============================================================================


@pytest.fixture
def resource_names():
    """Fixed, readable resource names."""
    return ResourceNames(
        resource_group="rgCOMV-test",
        virtual_network="VirtualNetwork_test",
        subnet="subnet_test",
        public_ip_1="pip1-test",
        public_ip_2="pip2-test",
        network_interface_1="networkInterface1-test",
        network_interface_2="networkInterface2-test",
        data_disk="ds-test",
        vm_1="lVM1-test",
        vm_2="lVM2-test",
        computer_name_1="linuxComputer1",
        computer_name_2="zonalComputer2",
    )


@pytest.fixture
def provisioning_config(resource_names):
    """Default provisioning config with fixed names and password."""
    LogSanitizer.register_secret(TEST_PASSWORD)
    return ProvisioningConfig(names=resource_names, admin_password=TEST_PASSWORD)


@pytest.fixture
def zonal_plan(provisioning_config):
    """The ten-step zonal VM plan."""
    return build_zonal_vm_plan(provisioning_config)


@pytest.fixture
def fake_executor():
    """In-memory executor where every call succeeds."""
    return FakeResourceExecutor()
