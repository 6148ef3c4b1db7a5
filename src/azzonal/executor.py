"""Resource executors: the only code that talks to Azure.

ResourceExecutor is the seam between the Provisioner and the remote
control plane. AzureResourceExecutor implements it with the Azure
management SDKs; tests substitute an in-memory fake.

Plan parameters are plain dicts with snake_case keys. They are turned into
typed SDK models here, right before the call, so the SDK serializes them
into the ARM request body (``properties`` wrapper, camelCase keys).

Every call blocks until the long-running operation reaches a terminal
state. Retries and polling live inside the SDK pipeline.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol

from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.compute.models import (
    CreationData,
    DataDisk,
    Disk,
    DiskSku,
    HardwareProfile,
    ImageReference,
    ManagedDiskParameters,
    NetworkInterfaceReference,
    NetworkProfile,
    OSDisk,
    OSProfile,
    StorageProfile,
    VirtualMachine,
)
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import (
    AddressSpace,
    NetworkInterface,
    NetworkInterfaceIPConfiguration,
    PublicIPAddress,
    PublicIPAddressSku,
    ServiceEndpointPropertiesFormat,
    Subnet,
    VirtualNetwork,
)
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import ResourceGroup

from azzonal.auth_models import ServicePrincipalConfig
from azzonal.credential_factory import CredentialError, CredentialFactory
from azzonal.log_sanitizer import LogSanitizer
from azzonal.plan import ProvisioningStep, ResourceKind

logger = logging.getLogger(__name__)


class ResourceExecutor(Protocol):
    """Blocking create / delete operations against a resource manager."""

    def create_resource_group(self, name: str, parameters: dict[str, Any]) -> str:
        """Create or update a resource group and return its id."""
        ...

    def create_or_update(
        self,
        step: ProvisioningStep,
        resource_group: str,
        parameters: dict[str, Any],
        parent_name: str | None = None,
    ) -> str:
        """Create or update the resource described by ``step`` and return its id."""
        ...

    def delete_resource_group(self, name: str) -> None:
        """Delete a resource group and everything in it."""
        ...


# Parameter dict -> SDK model


def _virtual_network(parameters: dict[str, Any]) -> VirtualNetwork:
    return VirtualNetwork(
        location=parameters["location"],
        address_space=AddressSpace(
            address_prefixes=list(parameters["address_space"]["address_prefixes"])
        ),
    )


def _subnet(parameters: dict[str, Any]) -> Subnet:
    return Subnet(
        name=parameters.get("name"),
        address_prefix=parameters["address_prefix"],
        service_endpoints=[
            ServiceEndpointPropertiesFormat(service=endpoint["service"])
            for endpoint in parameters.get("service_endpoints", [])
        ],
    )


def _public_ip_address(parameters: dict[str, Any]) -> PublicIPAddress:
    return PublicIPAddress(
        location=parameters["location"],
        sku=PublicIPAddressSku(name=parameters["sku"]["name"]),
        public_ip_address_version=parameters.get("public_ip_address_version"),
        public_ip_allocation_method=parameters.get("public_ip_allocation_method"),
        zones=parameters.get("zones"),
    )


def _network_interface(parameters: dict[str, Any]) -> NetworkInterface:
    ip_configurations = []
    for ip_config in parameters["ip_configurations"]:
        public_ip = ip_config.get("public_ip_address")
        ip_configurations.append(
            NetworkInterfaceIPConfiguration(
                name=ip_config["name"],
                primary=ip_config.get("primary"),
                subnet=Subnet(id=ip_config["subnet"]["id"]),
                private_ip_allocation_method=ip_config.get("private_ip_allocation_method"),
                public_ip_address=PublicIPAddress(id=public_ip["id"]) if public_ip else None,
            )
        )
    return NetworkInterface(location=parameters["location"], ip_configurations=ip_configurations)


def _managed_disk(parameters: dict[str, Any]) -> Disk:
    return Disk(
        location=parameters["location"],
        sku=DiskSku(name=parameters["sku"]["name"]),
        disk_size_gb=parameters["disk_size_gb"],
        zones=parameters.get("zones"),
        creation_data=CreationData(create_option=parameters["creation_data"]["create_option"]),
    )


def _virtual_machine(parameters: dict[str, Any]) -> VirtualMachine:
    storage = parameters["storage_profile"]
    os_disk = storage["os_disk"]
    os_profile = parameters["os_profile"]

    return VirtualMachine(
        location=parameters["location"],
        zones=parameters.get("zones"),
        hardware_profile=HardwareProfile(vm_size=parameters["hardware_profile"]["vm_size"]),
        os_profile=OSProfile(
            computer_name=os_profile["computer_name"],
            admin_username=os_profile["admin_username"],
            admin_password=os_profile["admin_password"],
        ),
        network_profile=NetworkProfile(
            network_interfaces=[
                NetworkInterfaceReference(id=nic["id"], primary=nic.get("primary"))
                for nic in parameters["network_profile"]["network_interfaces"]
            ]
        ),
        storage_profile=StorageProfile(
            image_reference=ImageReference(**storage["image_reference"]),
            os_disk=OSDisk(
                create_option=os_disk["create_option"],
                os_type=os_disk.get("os_type"),
                caching=os_disk.get("caching"),
                managed_disk=ManagedDiskParameters(
                    storage_account_type=os_disk["managed_disk"]["storage_account_type"]
                ),
            ),
            data_disks=[
                DataDisk(
                    lun=disk["lun"],
                    create_option=disk["create_option"],
                    managed_disk=ManagedDiskParameters(id=disk["managed_disk"]["id"]),
                )
                for disk in storage.get("data_disks", [])
            ],
        ),
    )


class AzureResourceExecutor:
    """ResourceExecutor backed by azure-mgmt-resource, -network and -compute.

    Clients are created on first use so that missing or invalid credentials
    surface on the first remote call rather than at construction.
    """

    # kind -> (client, operations group, model builder)
    OPERATIONS: dict[ResourceKind, tuple[str, str, Callable[[dict[str, Any]], Any]]] = {
        ResourceKind.VIRTUAL_NETWORK: ("network", "virtual_networks", _virtual_network),
        ResourceKind.SUBNET: ("network", "subnets", _subnet),
        ResourceKind.PUBLIC_IP_ADDRESS: ("network", "public_ip_addresses", _public_ip_address),
        ResourceKind.NETWORK_INTERFACE: ("network", "network_interfaces", _network_interface),
        ResourceKind.MANAGED_DISK: ("compute", "disks", _managed_disk),
        ResourceKind.VIRTUAL_MACHINE: ("compute", "virtual_machines", _virtual_machine),
    }

    def __init__(self, config: ServicePrincipalConfig, **client_options: Any):
        """Initialize executor.

        Args:
            config: Service principal credentials and subscription
            **client_options: Passed to every management client
                (e.g. ``transport``, ``retry_total``)
        """
        self._config = config
        self._client_options = client_options
        self._clients: dict[str, Any] | None = None

    def _connect(self) -> dict[str, Any]:
        if self._clients is None:
            credential = CredentialFactory.create_credential(self._config)
            subscription_id = self._config.subscription_id
            options = self._client_options
            try:
                self._clients = {
                    "resource": ResourceManagementClient(credential, subscription_id, **options),
                    "network": NetworkManagementClient(credential, subscription_id, **options),
                    "compute": ComputeManagementClient(credential, subscription_id, **options),
                }
            except ValueError as e:
                # The SDK rejects a missing subscription id at construction
                raise CredentialError(
                    f"Failed to create management clients: {LogSanitizer.sanitize_exception(e)}"
                ) from e
            logger.debug("Created Azure management clients")
        return self._clients

    def create_resource_group(self, name: str, parameters: dict[str, Any]) -> str:
        # Resource group create_or_update is synchronous, not an LRO
        resource_group = self._connect()["resource"].resource_groups.create_or_update(
            name, ResourceGroup(location=parameters["location"])
        )
        return resource_group.id

    def create_or_update(
        self,
        step: ProvisioningStep,
        resource_group: str,
        parameters: dict[str, Any],
        parent_name: str | None = None,
    ) -> str:
        try:
            client_name, group_name, build_model = self.OPERATIONS[step.kind]
        except KeyError:
            raise ValueError(f"Unsupported resource kind: {step.kind}") from None

        model = build_model(parameters)
        operations = getattr(self._connect()[client_name], group_name)
        if parent_name:
            poller = operations.begin_create_or_update(
                resource_group, parent_name, step.name, model
            )
        else:
            poller = operations.begin_create_or_update(resource_group, step.name, model)
        return poller.result().id

    def delete_resource_group(self, name: str) -> None:
        self._connect()["resource"].resource_groups.begin_delete(name).result()
