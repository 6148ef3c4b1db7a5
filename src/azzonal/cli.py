"""Command-line interface for azzonal.

Commands:
    azzonal run          Provision the zonal VM plan, then delete the resource group
    azzonal plan         Validate and print the plan without calling Azure
    azzonal config init  Write the default config file
    azzonal config show  Print the effective config file values

Credentials are read from CLIENT_ID, CLIENT_SECRET, TENANT_ID and
SUBSCRIPTION_ID (or their AZURE_* equivalents).
"""

import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from azzonal import __version__
from azzonal.auth_models import ServicePrincipalConfig
from azzonal.config_manager import AzzonalConfig, ConfigError, ConfigManager
from azzonal.executor import AzureResourceExecutor
from azzonal.log_sanitizer import LogSanitizer
from azzonal.plan import PlanValidationError, ProvisioningPlan, build_zonal_vm_plan
from azzonal.provisioner import Provisioner, RunResult

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    # SDK HTTP logging is noisy at INFO and may echo request bodies
    logging.getLogger("azure").setLevel(logging.WARNING)


def _build_plan(
    region: str | None, zone: str | None, vm_size: str | None, image: str | None, config: str | None
) -> ProvisioningPlan:
    provisioning_config = ConfigManager.build_provisioning_config(
        {"region": region, "zone": zone, "vm_size": vm_size, "image": image},
        custom_path=config,
    )
    plan = build_zonal_vm_plan(provisioning_config)
    plan.validate()
    return plan


def _plan_table(plan: ProvisioningPlan) -> Table:
    table = Table(title="Provisioning Plan", show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Name", style="green")
    table.add_column("Zones", style="yellow")
    table.add_column("Depends On", style="white")

    for index, step in enumerate(plan.all_steps(), start=1):
        table.add_row(
            str(index),
            step.key,
            step.kind.value,
            step.name,
            ",".join(step.zones) or "-",
            ", ".join(step.depends_on) or "-",
        )
    return table


def _result_table(result: RunResult) -> Table:
    table = Table(title="Provisioned Resources", show_header=True)
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Resource ID", style="green")

    for resource in result.resources.values():
        table.add_row(resource.key, resource.kind.value, resource.id)
    return table


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """azzonal - provision Azure VMs in an availability zone.

    \b
    Creates a resource group, virtual network, subnet, public IPs,
    network interfaces, a zonal data disk and two zonal virtual machines,
    then deletes the resource group again.

    \b
    CONFIGURATION:
        Credentials: CLIENT_ID, CLIENT_SECRET, TENANT_ID, SUBSCRIPTION_ID
        Config file: ~/.azzonal/config.toml
    """


_plan_options = [
    click.option("--region", help="Azure region", type=str),
    click.option("--zone", help="Availability zone", type=str),
    click.option("--vm-size", help="VM size for both VMs", type=str),
    click.option("--image", help="Image URN (publisher:offer:sku:version)", type=str),
    click.option("--config", help="Config file path", type=click.Path()),
    click.option("--verbose", "-v", is_flag=True, help="Enable debug logging"),
]


def plan_options(func):
    for option in reversed(_plan_options):
        func = option(func)
    return func


@main.command()
@plan_options
def run(
    region: str | None,
    zone: str | None,
    vm_size: str | None,
    image: str | None,
    config: str | None,
    verbose: bool,
):
    """Provision both VMs, then delete the resource group.

    The resource group is deleted even when provisioning fails part way.
    Exits 1 if any provisioning step failed, whatever the teardown outcome.

    \b
    Examples:
        azzonal run
        azzonal run --region westus2 --zone 2
        azzonal run --vm-size Standard_D2s_v5 --verbose
    """
    _configure_logging(verbose)
    try:
        plan = _build_plan(region, zone, vm_size, image, config)
    except (ConfigError, PlanValidationError) as e:
        click.echo(f"Error: {LogSanitizer.sanitize_exception(e)}", err=True)
        sys.exit(1)

    executor = AzureResourceExecutor(ServicePrincipalConfig.from_environment())
    result = Provisioner(executor).run(plan)

    console = Console()
    if result.resources:
        console.print(_result_table(result))
    console.print(result.get_summary())

    if result.teardown_error:
        click.echo(f"Warning: {result.teardown_error}", err=True)
    if result.error:
        click.echo(f"Error ({result.error.error_type}): {result.error}", err=True)
    sys.exit(result.exit_code)


@main.command()
@plan_options
def plan(
    region: str | None,
    zone: str | None,
    vm_size: str | None,
    image: str | None,
    config: str | None,
    verbose: bool,
):
    """Validate and print the plan without calling Azure."""
    _configure_logging(verbose)
    try:
        provisioning_plan = _build_plan(region, zone, vm_size, image, config)
    except (ConfigError, PlanValidationError) as e:
        click.echo(f"Error: {LogSanitizer.sanitize_exception(e)}", err=True)
        sys.exit(1)

    Console().print(_plan_table(provisioning_plan))
    if verbose:
        for step in provisioning_plan.all_steps():
            logger.debug(f"{step.key}: {LogSanitizer.sanitize_dict(step.parameters)}")


@main.group(name="config")
def config_group():
    """Manage the azzonal config file."""


@config_group.command(name="init")
@click.option("--config", help="Config file path", type=click.Path())
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(config: str | None, force: bool):
    """Write the default config file."""
    path = ConfigManager.get_config_path(config)
    if path.exists() and not force:
        click.echo(f"Error: Config file already exists: {path}. Use --force to overwrite.", err=True)
        sys.exit(1)

    try:
        written = ConfigManager.save_config(AzzonalConfig(), config)
    except ConfigError as e:
        click.echo(f"Error: {LogSanitizer.sanitize_exception(e)}", err=True)
        sys.exit(1)
    click.echo(f"Wrote config file: {written}")


@config_group.command(name="show")
@click.option("--config", help="Config file path", type=click.Path())
def config_show(config: str | None):
    """Print the effective config values."""
    try:
        loaded = ConfigManager.load_config(config)
    except ConfigError as e:
        click.echo(f"Error: {LogSanitizer.sanitize_exception(e)}", err=True)
        sys.exit(1)

    for key, value in loaded.to_dict().items():
        click.echo(f"{key} = {value}")


if __name__ == "__main__":
    main()
