"""
Data model for a single vertical scaling invocation.

Instances are immutable snapshots: each refresh from the control plane or
decision step returns a new DatabaseInstance instead of mutating a shared one.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from src.scaling.catalog import Architecture

AVAILABLE_STATUS = "available"


@dataclass(frozen=True)
class DatabaseInstance:
    """Snapshot of a DB instance taking part in a scaling step."""

    instance_id: str
    cluster_id: str = ""
    instance_class: str = ""
    status: str = ""
    is_writer: bool = False
    architecture: Architecture | None = None
    size_index: int | None = None

    def evolve(self, **changes: Any) -> "DatabaseInstance":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "instance_id": self.instance_id,
            "cluster_id": self.cluster_id,
            "instance_class": self.instance_class,
            "status": self.status,
            "is_writer": self.is_writer,
            "architecture": self.architecture.value if self.architecture else None,
            "size_index": self.size_index,
        }


@dataclass(frozen=True)
class InstanceDescription:
    """The fields of a DescribeDBInstances record the scaler reads."""

    instance_id: str
    instance_class: str
    status: str
    cluster_id: str


@dataclass(frozen=True)
class ClusterMember:
    instance_id: str
    is_writer: bool


@dataclass(frozen=True)
class ClusterMembership:
    """Members of a DB cluster in listing order."""

    cluster_id: str
    members: tuple[ClusterMember, ...] = ()

    def is_writer(self, instance_id: str) -> bool:
        for member in self.members:
            if member.instance_id == instance_id:
                return member.is_writer
        return False


@dataclass(frozen=True)
class ScalingEvent:
    """A trigger received from the queue."""

    instance_id: str
    receipt_handle: str
    message_id: str | None = None
    alarm_name: str | None = None
    new_state: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "instance_id": self.instance_id,
            "message_id": self.message_id,
            "alarm_name": self.alarm_name,
            "new_state": self.new_state,
            "received_at": self.received_at.isoformat(),
        }
