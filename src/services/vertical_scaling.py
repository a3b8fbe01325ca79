"""
Vertical Scaling Service: one scale-up step per trigger.

Responsibilities:
- Receive one trigger and resolve the target instance's role
- Validate the current class and compute the next one
- Resize a reader directly, or resize and promote a peer reader of a writer
- Refresh the memory-derived alarms of the instance that changed class
- Acknowledge the trigger only after every step succeeded
- Report the outcome to Mattermost

State machine:
    START -> ROLE_RESOLVED -> CLASS_VALIDATED
          -> DIRECT_RESIZE | [PEER_RESIZE] -> FAILOVER
          -> ALARMS_UPDATED -> ACKNOWLEDGED -> DONE
Any step may end in FAILED. An empty queue ends in SKIPPED.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.execution.failover import FailoverCoordinator
from src.execution.waiter import StateTransitionWaiter
from src.monitoring.alarms import AlarmThresholdUpdater
from src.monitoring.notifications import MattermostNotifier
from src.scaling.decision import ScalingDecisionEngine
from src.scaling.errors import (
    ScalingError,
    ScalingStepError,
    format_error_chain,
)
from src.scaling.models import DatabaseInstance, ScalingEvent
from src.scaling.roles import ClusterRoleResolver
from src.streaming.trigger_queue import TriggerQueue
from src.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class ScalingState(str, Enum):
    """States of one scaling invocation."""

    START = "start"
    ROLE_RESOLVED = "role_resolved"
    CLASS_VALIDATED = "class_validated"
    DIRECT_RESIZE = "direct_resize"
    PEER_RESIZE = "peer_resize"
    FAILOVER = "failover"
    ALARMS_UPDATED = "alarms_updated"
    ACKNOWLEDGED = "acknowledged"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ScalingOutcome:
    """Result of one invocation."""

    state: ScalingState = ScalingState.START
    history: list[ScalingState] = field(default_factory=lambda: [ScalingState.START])
    event: ScalingEvent | None = None
    target: DatabaseInstance | None = None
    resized: DatabaseInstance | None = None
    new_class: str | None = None
    peer_resized: bool = False
    failover_performed: bool = False
    notification_sent: bool = False
    error: ScalingError | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def is_success(self) -> bool:
        return self.state in (ScalingState.DONE, ScalingState.SKIPPED)

    @property
    def failed_after(self) -> ScalingState | None:
        """Last state reached before failing."""
        if self.state != ScalingState.FAILED:
            return None
        return self.history[-2]

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def advance(self, state: ScalingState) -> None:
        self.state = state
        self.history.append(state)
        if state in (ScalingState.DONE, ScalingState.SKIPPED, ScalingState.FAILED):
            self.completed_at = datetime.now(UTC)

    def fail(self, error: ScalingError) -> None:
        self.error = error
        self.advance(ScalingState.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "history": [state.value for state in self.history],
            "is_success": self.is_success,
            "event": self.event.to_dict() if self.event else None,
            "target": self.target.to_dict() if self.target else None,
            "resized": self.resized.to_dict() if self.resized else None,
            "new_class": self.new_class,
            "peer_resized": self.peer_resized,
            "failover_performed": self.failover_performed,
            "notification_sent": self.notification_sent,
            "error": format_error_chain(self.error) if self.error else None,
            "error_category": self.error.category.value if self.error else None,
            "failed_after": self.failed_after.value if self.failed_after else None,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


@contextmanager
def scaling_step(operation: str, entity_id: str | None = None) -> Iterator[None]:
    """Wrap any failure inside the block with the operation and entity it concerns."""
    try:
        yield
    except Exception as e:
        raise ScalingStepError(operation, entity_id) from e


class VerticalScalingService:
    """
    Orchestrates a single vertical scaling step.

    Collaborators are passed in fully configured; the service itself holds no
    state between invocations.
    """

    def __init__(
        self,
        trigger_queue: TriggerQueue,
        role_resolver: ClusterRoleResolver,
        decision_engine: ScalingDecisionEngine,
        waiter: StateTransitionWaiter,
        failover: FailoverCoordinator,
        alarm_updater: AlarmThresholdUpdater,
        notifier: MattermostNotifier,
    ) -> None:
        self.trigger_queue = trigger_queue
        self.role_resolver = role_resolver
        self.decision_engine = decision_engine
        self.waiter = waiter
        self.failover = failover
        self.alarm_updater = alarm_updater
        self.notifier = notifier

    async def run_once(self) -> ScalingOutcome:
        """
        Process at most one pending trigger.

        Returns:
            ScalingOutcome describing how far the invocation got
        """
        outcome = ScalingOutcome()

        try:
            with scaling_step("Failed to receive SQS message"):
                event = self.trigger_queue.receive()

            if event is None:
                logger.info("No new messages to process, skipping")
                outcome.advance(ScalingState.SKIPPED)
                return outcome

            outcome.event = event
            with log_context(instance_id=event.instance_id, message_id=event.message_id):
                await self._process(event, outcome)

        except ScalingError as e:
            outcome.fail(e)
            logger.error(
                "Failed to run vertical scaling",
                failed_after=outcome.failed_after.value if outcome.failed_after else None,
                category=e.category.value,
                error=format_error_chain(e),
            )
            await self.notifier.send_error(e)

        return outcome

    async def _process(self, event: ScalingEvent, outcome: ScalingOutcome) -> None:
        instance_id = event.instance_id
        logger.info("Vertical scaling of multitenant database is needed", instance_id=instance_id)

        with scaling_step(f"Failed to obtain DB instance ({instance_id}) information", instance_id):
            target = self.role_resolver.resolve_role(DatabaseInstance(instance_id=instance_id))
        outcome.target = target
        outcome.advance(ScalingState.ROLE_RESOLVED)

        with scaling_step(f"Failed to get DB instance ({instance_id}) new class type", instance_id):
            target = self.decision_engine.resolve_index(target)
            new_class = self.decision_engine.next_class(target)
        outcome.target = target
        outcome.new_class = new_class
        outcome.advance(ScalingState.CLASS_VALIDATED)

        if not target.is_writer:
            logger.info(
                "DB instance is a reader, calling class upgrade",
                instance_id=instance_id,
                instance_class=target.instance_class,
            )
            resized = await self._resize(target, new_class)
            outcome.advance(ScalingState.DIRECT_RESIZE)
        else:
            logger.info(
                "DB instance is a writer, getting first available reader",
                instance_id=instance_id,
                instance_class=target.instance_class,
            )
            resized = await self._scale_through_peer(target, new_class, outcome)
        outcome.resized = resized

        with scaling_step(
            f"Failed to update Cloudwatch alarms of DB instance ({resized.instance_id})",
            resized.instance_id,
        ):
            self.alarm_updater.update_alarms(resized.instance_id, new_class, target.architecture)
        outcome.advance(ScalingState.ALARMS_UPDATED)

        logger.info("Vertical scaling was successfully handled, deleting SQS message")
        with scaling_step("Failed to delete SQS message", event.message_id):
            self.trigger_queue.delete(event)
        outcome.advance(ScalingState.ACKNOWLEDGED)

        outcome.notification_sent = await self.notifier.send_success(target, new_class)
        outcome.advance(ScalingState.DONE)

    async def _scale_through_peer(
        self,
        writer: DatabaseInstance,
        new_class: str,
        outcome: ScalingOutcome,
    ) -> DatabaseInstance:
        """Bring a reader up to the writer's next class and promote it."""
        with scaling_step(
            f"Failed to obtain reader peer of DB instance ({writer.instance_id})",
            writer.instance_id,
        ):
            peer = self.role_resolver.find_peer_reader(writer)
            peer = self.role_resolver.resolve_role(peer)
            peer = self.decision_engine.resolve_index(peer)

        if self.decision_engine.needs_resize(writer, peer):
            peer = await self._resize(peer, new_class)
            outcome.peer_resized = True
            outcome.advance(ScalingState.PEER_RESIZE)
        else:
            logger.info(
                "Reader already at or above the new class, skipping resize",
                reader_id=peer.instance_id,
                instance_class=peer.instance_class,
                new_class=new_class,
            )

        with scaling_step(f"Failed to failover DB instance ({peer.instance_id})", peer.instance_id):
            peer = self.failover.failover(peer, resized=outcome.peer_resized)
        outcome.failover_performed = True
        outcome.advance(ScalingState.FAILOVER)
        return peer

    async def _resize(self, instance: DatabaseInstance, new_class: str) -> DatabaseInstance:
        with scaling_step(
            f"Failed to change DB instance ({instance.instance_id}) class", instance.instance_id
        ):
            return await self.waiter.resize_instance(instance, new_class)
