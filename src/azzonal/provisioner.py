"""Provisioner: runs a plan step by step and always tears down.

The Provisioner executes a ProvisioningPlan against a ResourceExecutor:
- Steps run strictly in order, each awaited to completion
- The first failure aborts the remaining steps (no retries at this layer)
- The resource group is deleted on every exit path once it exists

Run states:
    NOT_STARTED -> PROVISIONING -> SUCCEEDED | FAILED -> TEARING_DOWN -> DONE

The resource group handle never lives in shared state. It is created and
released by the provisioned_resource_group() context manager, which hands
it to the body and passes it explicitly to teardown_resource_group().
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)

from azzonal.credential_factory import CredentialError
from azzonal.executor import ResourceExecutor
from azzonal.log_sanitizer import LogSanitizer
from azzonal.plan import (
    ProvisionedResource,
    ProvisioningPlan,
    ProvisioningStep,
    resolve_references,
)

logger = logging.getLogger(__name__)

QUOTA_ERROR_INDICATORS = [
    "QuotaExceeded",
    "OperationNotAllowed",
    "SkuNotAvailable",
    "NotAvailableForSubscription",
    "ZonalAllocationFailed",
    "currently not available",
]


class ProvisioningError(Exception):
    """Raised when a provisioning step fails."""

    def __init__(self, message: str, step_key: str | None = None, error_type: str = "unknown"):
        super().__init__(message)
        self.step_key = step_key
        self.error_type = error_type


class RunState(StrEnum):
    NOT_STARTED = "not_started"
    PROVISIONING = "provisioning"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TEARING_DOWN = "tearing_down"
    DONE = "done"


class TeardownStatus(StrEnum):
    SKIPPED = "skipped"  # No resource group was ever created
    DELETED = "deleted"
    FAILED = "failed"


def classify_error(error: BaseException) -> str:
    """Classify a step failure.

    Returns:
        One of 'auth', 'conflict', 'not_found', 'quota', 'unknown'
    """
    if isinstance(error, (ClientAuthenticationError, CredentialError)):
        return "auth"
    if isinstance(error, ResourceExistsError):
        return "conflict"
    if isinstance(error, ResourceNotFoundError):
        return "not_found"
    if isinstance(error, HttpResponseError) and error.status_code in (401, 403):
        return "auth"

    message = str(error).lower()
    if any(indicator.lower() in message for indicator in QUOTA_ERROR_INDICATORS):
        return "quota"
    return "unknown"


@dataclass
class RunResult:
    """Outcome of a single run.

    Attributes:
        resources: Created resources keyed by step key, in creation order
        failed_step: Key of the step that failed, if any
        error: The failure, if any
        teardown: What happened to the resource group at the end
        teardown_error: Sanitized teardown failure message
        history: Every state the run passed through
    """

    resources: dict[str, ProvisionedResource] = field(default_factory=dict)
    failed_step: str | None = None
    error: ProvisioningError | None = None
    teardown: TeardownStatus | None = None
    teardown_error: str | None = None
    history: list[RunState] = field(default_factory=lambda: [RunState.NOT_STARTED])

    @property
    def state(self) -> RunState:
        return self.history[-1]

    @property
    def succeeded(self) -> bool:
        """True if every step was created; teardown outcome is irrelevant."""
        return self.error is None and RunState.SUCCEEDED in self.history

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def transition(self, state: RunState) -> None:
        logger.debug(f"Run state: {self.state} -> {state}")
        self.history.append(state)

    def record(self, resource: ProvisionedResource) -> None:
        self.resources[resource.key] = resource

    def fail(self, step_key: str, error: ProvisioningError) -> None:
        self.failed_step = step_key
        self.error = error
        self.transition(RunState.FAILED)

    def get_summary(self) -> str:
        """Get human-readable summary."""
        if self.succeeded:
            outcome = f"Provisioned {len(self.resources)} resources"
        else:
            outcome = f"Provisioning failed at step '{self.failed_step}'"
        return f"{outcome}; resource group teardown: {self.teardown or 'not attempted'}"


def execute_step(
    step: ProvisioningStep,
    result: RunResult,
    create: Callable[[], str],
) -> ProvisionedResource:
    """Run one create call with progress logging.

    Args:
        step: Step being executed
        result: Run bookkeeping; receives the resource or the failure
        create: Zero-argument callable performing the blocking remote call

    Raises:
        ProvisioningError: If the remote call fails
    """
    logger.info(f"Creating a {step.label} with name: {step.name}...")
    try:
        resource_id = create()
    except Exception as e:
        error = ProvisioningError(
            LogSanitizer.create_safe_error_message(e, f"Failed to create {step.label} {step.name}"),
            step_key=step.key,
            error_type=classify_error(e),
        )
        result.fail(step.key, error)
        raise error from e

    resource = ProvisionedResource(key=step.key, kind=step.kind, name=step.name, id=resource_id)
    result.record(resource)
    logger.info(f"Created a {step.label}: {resource_id}")
    return resource


def teardown_resource_group(
    executor: ResourceExecutor, resource_group: ProvisionedResource | None
) -> tuple[TeardownStatus, str | None]:
    """Delete the resource group if one was created.

    Errors are logged and returned, never raised.

    Returns:
        (status, sanitized error message or None)
    """
    if resource_group is None:
        logger.info("Did not create any resources in Azure. No clean up is necessary")
        return TeardownStatus.SKIPPED, None

    try:
        logger.info(f"Deleting Resource Group: {resource_group.id}")
        executor.delete_resource_group(resource_group.name)
        logger.info(f"Deleted Resource Group: {resource_group.id}")
        return TeardownStatus.DELETED, None
    except Exception as e:
        safe_error = LogSanitizer.create_safe_error_message(
            e, f"Failed to delete resource group {resource_group.name}"
        )
        logger.error(safe_error)
        return TeardownStatus.FAILED, safe_error


@contextmanager
def provisioned_resource_group(
    executor: ResourceExecutor, step: ProvisioningStep, result: RunResult
) -> Iterator[ProvisionedResource]:
    """Create the resource group and guarantee its deletion.

    Teardown runs on every exit from the ``with`` block, and also when the
    resource group itself could not be created (as a no-op).
    """
    resource_group: ProvisionedResource | None = None
    try:
        resource_group = execute_step(
            step, result, lambda: executor.create_resource_group(step.name, step.parameters)
        )
        yield resource_group
    finally:
        result.transition(RunState.TEARING_DOWN)
        result.teardown, result.teardown_error = teardown_resource_group(executor, resource_group)


class Provisioner:
    """Interpret a ProvisioningPlan against a ResourceExecutor."""

    def __init__(self, executor: ResourceExecutor):
        """Initialize provisioner.

        Args:
            executor: Executor performing the remote calls
        """
        self.executor = executor

    def run(self, plan: ProvisioningPlan) -> RunResult:
        """Provision every step of the plan, then delete the resource group.

        Provisioning failures are logged and reported in the result rather
        than raised.

        Raises:
            PlanValidationError: If the plan is inconsistent (nothing is created)
        """
        plan.validate()

        result = RunResult()
        result.transition(RunState.PROVISIONING)
        try:
            with provisioned_resource_group(self.executor, plan.resource_group, result) as rg:
                for step in plan.steps:
                    self._create(step, rg, result)
                result.transition(RunState.SUCCEEDED)
        except ProvisioningError as e:
            logger.error(str(e))
        finally:
            result.transition(RunState.DONE)

        logger.info(result.get_summary())
        return result

    def _create(
        self, step: ProvisioningStep, resource_group: ProvisionedResource, result: RunResult
    ) -> ProvisionedResource:
        parameters = resolve_references(step.parameters, result.resources)
        parent_name = result.resources[step.parent].name if step.parent else None
        logger.debug(f"Parameters for {step.key}: {LogSanitizer.sanitize_dict(parameters)}")

        return execute_step(
            step,
            result,
            lambda: self.executor.create_or_update(
                step, resource_group.name, parameters, parent_name=parent_name
            ),
        )
