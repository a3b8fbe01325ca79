"""
Error taxonomy for vertical scaling.

Every error carries the identifier of the entity it concerns and a category
that decides how the failure is reported. Step failures are wrapped in
ScalingStepError with ``raise ... from ...`` so the full causal chain is
available for logs and notifications.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of scaling failures."""

    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    UNSUPPORTED_STATE = "unsupported_state"
    TIMEOUT = "timeout"
    PARTIAL_TOPOLOGY = "partial_topology"
    CONTROL_PLANE = "control_plane"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class ScalingError(Exception):
    """Base exception for vertical scaling failures."""

    category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, entity_id: str | None = None) -> None:
        self.message = message
        self.entity_id = entity_id
        super().__init__(message)


class ConfigurationError(ScalingError):
    """Missing or malformed settings."""

    category = ErrorCategory.CONFIGURATION


class NotFoundError(ScalingError):
    """A control-plane read returned nothing."""

    category = ErrorCategory.NOT_FOUND


class InstanceNotFoundError(NotFoundError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"DB instance ({instance_id}) not found", instance_id)


class ClusterNotFoundError(NotFoundError):
    def __init__(self, cluster_id: str) -> None:
        super().__init__(f"DB cluster ({cluster_id}) not found", cluster_id)


class PeerReaderNotFoundError(NotFoundError):
    def __init__(self, instance_id: str, cluster_id: str) -> None:
        super().__init__(
            f"No reader peer for DB instance ({instance_id}) in cluster ({cluster_id})",
            instance_id,
        )


class AlarmNotFoundError(NotFoundError):
    def __init__(self, alarm_name: str) -> None:
        super().__init__(f"Cloudwatch alarm ({alarm_name}) not found", alarm_name)


class AlarmElementNotFoundError(NotFoundError):
    def __init__(self, alarm_name: str, element: str) -> None:
        self.element = element
        super().__init__(
            f"Cloudwatch alarm ({alarm_name}) has no {element}",
            alarm_name,
        )


class UnsupportedStateError(ScalingError):
    """The instance is in a state the scaler refuses to act on."""

    category = ErrorCategory.UNSUPPORTED_STATE


class UnsupportedInstanceClassError(UnsupportedStateError):
    def __init__(self, instance_class: str, entity_id: str | None = None) -> None:
        self.instance_class = instance_class
        super().__init__(
            f"DB instance class ({instance_class}) not in the supported lists",
            entity_id,
        )


class MaximumSizeReachedError(UnsupportedStateError):
    def __init__(self, instance_class: str, entity_id: str | None = None) -> None:
        self.instance_class = instance_class
        super().__init__(
            f"Maximum usable instance size reached (current class {instance_class})",
            entity_id,
        )


class WaitTimeoutError(ScalingError):
    """A polling phase exceeded its deadline."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, message: str, entity_id: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{message} after {timeout_seconds:g} seconds", entity_id)


class ModificationNotStartedError(WaitTimeoutError):
    def __init__(self, instance_id: str, timeout_seconds: float) -> None:
        super().__init__(
            "timed out waiting for database modifications to begin",
            instance_id,
            timeout_seconds,
        )


class InstanceNotAvailableError(WaitTimeoutError):
    def __init__(self, instance_id: str, timeout_seconds: float) -> None:
        super().__init__(
            "timed out waiting for database to become available",
            instance_id,
            timeout_seconds,
        )


class ControlPlaneError(ScalingError):
    """An AWS API call failed."""

    category = ErrorCategory.CONTROL_PLANE


class FailoverError(ScalingError):
    """Failover was rejected, possibly after the reader was already resized."""

    category = ErrorCategory.PARTIAL_TOPOLOGY

    def __init__(
        self, message: str, entity_id: str | None = None, class_changed: bool = False
    ) -> None:
        self.class_changed = class_changed
        super().__init__(message, entity_id)


class TriggerTransportError(ScalingError):
    """The trigger queue could not be read or acknowledged."""

    category = ErrorCategory.TRANSPORT


class MalformedTriggerError(TriggerTransportError):
    """The trigger message body could not be decoded."""


class ScalingStepError(ScalingError):
    """
    Wrapper naming the orchestration step and entity that failed.

    Its category is the category of the innermost ScalingError in the chain.
    """

    def __init__(self, operation: str, entity_id: str | None = None) -> None:
        self.operation = operation
        super().__init__(operation, entity_id)

    @property
    def category(self) -> ErrorCategory:  # type: ignore[override]
        root = root_scaling_error(self.__cause__)
        return root.category if root is not None else ErrorCategory.UNKNOWN


def iter_error_chain(error: BaseException | None):
    """Yield an exception followed by its explicit causes."""
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        yield error
        error = error.__cause__


def root_scaling_error(error: BaseException | None) -> ScalingError | None:
    """Return the innermost ScalingError in a cause chain."""
    root = None
    for item in iter_error_chain(error):
        if isinstance(item, ScalingError) and not isinstance(item, ScalingStepError):
            root = item
    return root


def error_category(error: BaseException) -> ErrorCategory:
    """Resolve the reporting category of any exception."""
    if isinstance(error, ScalingError):
        return error.category
    return ErrorCategory.UNKNOWN


def format_error_chain(error: BaseException) -> str:
    """Render ``outer: inner: root`` the way the logs and alerts show it."""
    return ": ".join(str(item) for item in iter_error_chain(error))
