"""Provisioning plan: an ordered list of typed resource steps.

A step is a pure description of one create-or-update call: the resource
kind, its name, its SDK parameter bundle and the earlier steps it depends
on. Ids that only exist once an earlier step has run are written as
``Ref(step_key)`` placeholders and substituted at execution time.

The plan knows nothing about Azure clients. The Provisioner interprets it
against a ResourceExecutor, which makes ordering and zone consistency
checkable without a live subscription.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from azzonal.config_manager import ProvisioningConfig

PRIMARY_IP_CONFIGURATION = "internal"


class PlanValidationError(Exception):
    """Raised when a provisioning plan is inconsistent."""

    pass


class ResourceKind(StrEnum):
    """Azure resource kinds created by a plan."""

    RESOURCE_GROUP = "resource_group"
    VIRTUAL_NETWORK = "virtual_network"
    SUBNET = "subnet"
    PUBLIC_IP_ADDRESS = "public_ip_address"
    NETWORK_INTERFACE = "network_interface"
    MANAGED_DISK = "managed_disk"
    VIRTUAL_MACHINE = "virtual_machine"

    @property
    def is_regional(self) -> bool:
        """Subnets inherit their region from the virtual network."""
        return self != ResourceKind.SUBNET


@dataclass(frozen=True)
class Ref:
    """Placeholder for the id of the resource created by step ``key``."""

    key: str


@dataclass(frozen=True)
class ProvisionedResource:
    """A resource that exists remotely."""

    key: str
    kind: ResourceKind
    name: str
    id: str


@dataclass(frozen=True)
class ProvisioningStep:
    """One create-or-update call."""

    key: str
    kind: ResourceKind
    name: str
    parameters: dict[str, Any] = field(hash=False)
    description: str = ""
    # Key of the step whose resource contains this one (subnet -> vnet)
    parent: str | None = None

    @property
    def references(self) -> list[Ref]:
        return list(find_references(self.parameters))

    @property
    def depends_on(self) -> tuple[str, ...]:
        """Keys of earlier steps this step needs, in first-use order."""
        keys = [self.parent] if self.parent else []
        for ref in self.references:
            if ref.key not in keys:
                keys.append(ref.key)
        return tuple(keys)

    @property
    def zones(self) -> tuple[str, ...]:
        return tuple(self.parameters.get("zones") or ())

    @property
    def location(self) -> str | None:
        return self.parameters.get("location")

    @property
    def label(self) -> str:
        return self.description or self.kind.value.replace("_", " ")


def find_references(value: Any) -> Iterator[Ref]:
    """Yield every Ref inside a nested parameter bundle."""
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from find_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from find_references(item)


def resolve_references(value: Any, resources: Mapping[str, ProvisionedResource]) -> Any:
    """Return a copy of ``value`` with every Ref replaced by a resource id.

    Raises:
        PlanValidationError: If a Ref names a resource that does not exist yet
    """
    if isinstance(value, Ref):
        if value.key not in resources:
            raise PlanValidationError(f"Unresolved reference to '{value.key}'")
        return resources[value.key].id
    if isinstance(value, Mapping):
        return {k: resolve_references(v, resources) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_references(item, resources) for item in value]
    return value


@dataclass(frozen=True)
class ProvisioningPlan:
    """Resource group plus the ordered steps created inside it."""

    resource_group: ProvisioningStep
    steps: tuple[ProvisioningStep, ...]

    @property
    def location(self) -> str | None:
        return self.resource_group.location

    def all_steps(self) -> list[ProvisioningStep]:
        """Every step in execution order, resource group first."""
        return [self.resource_group, *self.steps]

    def get_step(self, key: str) -> ProvisioningStep:
        for step in self.all_steps():
            if step.key == key:
                return step
        raise KeyError(key)

    def count_by_kind(self) -> dict[ResourceKind, int]:
        counts: dict[ResourceKind, int] = {}
        for step in self.all_steps():
            counts[step.kind] = counts.get(step.kind, 0) + 1
        return counts

    def validate(self) -> None:
        """Check the plan before anything is created.

        Raises:
            PlanValidationError: Listing every problem found
        """
        errors: list[str] = []

        if self.resource_group.kind != ResourceKind.RESOURCE_GROUP:
            errors.append("First step must create a resource group")
        if not self.location:
            errors.append("Resource group has no location")

        seen_keys: set[str] = set()
        seen_names: set[str] = set()
        for step in self.all_steps():
            if step.key in seen_keys:
                errors.append(f"Duplicate step key: {step.key}")
            if step.name in seen_names:
                errors.append(f"Duplicate resource name: {step.name}")
            if step is not self.resource_group and step.kind == ResourceKind.RESOURCE_GROUP:
                errors.append(f"{step.key}: only one resource group per plan")

            for key in step.depends_on:
                if key not in seen_keys:
                    errors.append(f"{step.key}: depends on '{key}' which is not an earlier step")

            if step.kind.is_regional and step.location != self.location:
                errors.append(
                    f"{step.key}: location {step.location} does not match "
                    f"resource group location {self.location}"
                )

            if step.kind == ResourceKind.SUBNET:
                self._check_subnet(step, errors)
            if step.kind == ResourceKind.VIRTUAL_MACHINE:
                self._check_primary_interface(step, errors)
                self._check_zones(step, errors)

            seen_keys.add(step.key)
            seen_names.add(step.name)

        if errors:
            raise PlanValidationError("Invalid provisioning plan:\n  " + "\n  ".join(errors))

    def _kind_of(self, key: str) -> ResourceKind | None:
        try:
            return self.get_step(key).kind
        except KeyError:
            return None

    def _check_subnet(self, step: ProvisioningStep, errors: list[str]) -> None:
        if not step.parent or self._kind_of(step.parent) != ResourceKind.VIRTUAL_NETWORK:
            errors.append(f"{step.key}: subnet must have a virtual network parent")

    def _check_primary_interface(self, step: ProvisioningStep, errors: list[str]) -> None:
        interfaces = step.parameters.get("network_profile", {}).get("network_interfaces", [])
        primaries = [nic for nic in interfaces if nic.get("primary")]
        if len(primaries) != 1:
            errors.append(
                f"{step.key}: exactly one network interface must be primary, found {len(primaries)}"
            )

    def _check_zones(self, step: ProvisioningStep, errors: list[str]) -> None:
        """A zoned dependency must sit in the same zones as the VM."""
        vm_zones = set(step.zones)
        for dependency in self._zoned_dependencies(step):
            dependency_zones = set(dependency.zones)
            if dependency_zones and dependency_zones != vm_zones:
                errors.append(
                    f"{step.key}: zones {sorted(vm_zones)} do not match "
                    f"{dependency.key} zones {sorted(dependency_zones)}"
                )

    def _zoned_dependencies(self, vm_step: ProvisioningStep) -> list[ProvisioningStep]:
        """Disks and public IPs reached from a VM directly or through its NICs."""
        found: list[ProvisioningStep] = []
        pending = list(vm_step.depends_on)
        visited: set[str] = set()
        while pending:
            key = pending.pop(0)
            if key in visited:
                continue
            visited.add(key)
            try:
                dependency = self.get_step(key)
            except KeyError:
                continue
            if dependency.kind in (ResourceKind.MANAGED_DISK, ResourceKind.PUBLIC_IP_ADDRESS):
                found.append(dependency)
            elif dependency.kind == ResourceKind.NETWORK_INTERFACE:
                pending.extend(dependency.depends_on)
        return found


# Parameter builders


def _public_ip_parameters(config: ProvisioningConfig, zones: tuple[str, ...] = ()) -> dict:
    parameters: dict[str, Any] = {
        "location": config.region,
        "sku": {"name": "Standard"},
        "public_ip_address_version": "IPv4",
        "public_ip_allocation_method": "Static",
    }
    if zones:
        parameters["zones"] = list(zones)
    return parameters


def _network_interface_parameters(config: ProvisioningConfig, public_ip_key: str) -> dict:
    return {
        "location": config.region,
        "ip_configurations": [
            {
                "name": PRIMARY_IP_CONFIGURATION,
                "primary": True,
                "subnet": {"id": Ref("subnet")},
                "private_ip_allocation_method": "Dynamic",
                "public_ip_address": {"id": Ref(public_ip_key)},
            }
        ],
    }


def _virtual_machine_parameters(
    config: ProvisioningConfig,
    computer_name: str,
    network_interface_key: str,
    zones: tuple[str, ...],
    data_disk_keys: tuple[str, ...] = (),
) -> dict:
    storage_profile: dict[str, Any] = {
        "os_disk": {
            "create_option": "FromImage",
            "os_type": "Linux",
            "caching": "ReadWrite",
            "managed_disk": {"storage_account_type": config.os_disk_sku},
        },
        "image_reference": config.image.to_parameters(),
    }
    if data_disk_keys:
        storage_profile["data_disks"] = [
            {"lun": lun, "create_option": "Attach", "managed_disk": {"id": Ref(key)}}
            for lun, key in enumerate(data_disk_keys)
        ]

    parameters: dict[str, Any] = {
        "location": config.region,
        "hardware_profile": {"vm_size": config.vm_size},
        "os_profile": {
            "admin_username": config.admin_username,
            "admin_password": config.admin_password,
            "computer_name": computer_name,
        },
        "network_profile": {
            "network_interfaces": [{"id": Ref(network_interface_key), "primary": True}]
        },
        "storage_profile": storage_profile,
    }
    if zones:
        parameters["zones"] = list(zones)
    return parameters


def build_zonal_vm_plan(config: ProvisioningConfig) -> ProvisioningPlan:
    """Build the two-VM availability zone plan.

    The first VM is zoned while its public IP is not; Azure places its OS
    disk in the VM's zone implicitly. The second VM gets an explicitly
    zoned public IP and an explicitly zoned empty data disk.
    """
    names = config.names
    zone = (config.zone,)

    resource_group = ProvisioningStep(
        key="resource_group",
        kind=ResourceKind.RESOURCE_GROUP,
        name=names.resource_group,
        parameters={"location": config.region},
        description="resource group",
    )

    steps = (
        ProvisioningStep(
            key="virtual_network",
            kind=ResourceKind.VIRTUAL_NETWORK,
            name=names.virtual_network,
            parameters={
                "location": config.region,
                "address_space": {"address_prefixes": [config.address_prefix]},
            },
            description="Linux virtual network",
        ),
        ProvisioningStep(
            key="public_ip_1",
            kind=ResourceKind.PUBLIC_IP_ADDRESS,
            name=names.public_ip_1,
            parameters=_public_ip_parameters(config),
            description="Linux public IP address",
        ),
        ProvisioningStep(
            key="subnet",
            kind=ResourceKind.SUBNET,
            name=names.subnet,
            parameters={
                "name": names.subnet,
                "address_prefix": config.address_prefix,
                "service_endpoints": [{"service": s} for s in config.service_endpoints],
            },
            description="Linux subnet",
            parent="virtual_network",
        ),
        ProvisioningStep(
            key="network_interface_1",
            kind=ResourceKind.NETWORK_INTERFACE,
            name=names.network_interface_1,
            parameters=_network_interface_parameters(config, "public_ip_1"),
            description="Linux network interface",
        ),
        ProvisioningStep(
            key="vm_1",
            kind=ResourceKind.VIRTUAL_MACHINE,
            name=names.vm_1,
            parameters=_virtual_machine_parameters(
                config,
                names.computer_name_1,
                "network_interface_1",
                zones=config.vm_1_zones,
            ),
            description="zonal VM with implicitly zoned related resources",
        ),
        ProvisioningStep(
            key="public_ip_2",
            kind=ResourceKind.PUBLIC_IP_ADDRESS,
            name=names.public_ip_2,
            parameters=_public_ip_parameters(config, zones=zone),
            description="zonal public IP address",
        ),
        ProvisioningStep(
            key="data_disk",
            kind=ResourceKind.MANAGED_DISK,
            name=names.data_disk,
            parameters={
                "location": config.region,
                "sku": {"name": config.data_disk_sku},
                "disk_size_gb": config.data_disk_size_gb,
                "zones": list(zone),
                "creation_data": {"create_option": "Empty"},
            },
            description="zonal managed data disk",
        ),
        ProvisioningStep(
            key="network_interface_2",
            kind=ResourceKind.NETWORK_INTERFACE,
            name=names.network_interface_2,
            parameters=_network_interface_parameters(config, "public_ip_2"),
            description="zonal network interface",
        ),
        ProvisioningStep(
            key="vm_2",
            kind=ResourceKind.VIRTUAL_MACHINE,
            name=names.vm_2,
            parameters=_virtual_machine_parameters(
                config,
                names.computer_name_2,
                "network_interface_2",
                zones=zone,
                data_disk_keys=("data_disk",),
            ),
            description="zonal VM with explicitly zoned public IP and data disk",
        ),
    )

    return ProvisioningPlan(resource_group=resource_group, steps=steps)
