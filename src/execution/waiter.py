"""
State transition waiter for instance class changes.

After a modification request an instance goes through two phases:
- modification started: status leaves "available"
- modification settled: status returns to "available"

Each phase polls on its own interval and is bounded by its own deadline.
A failed status read is logged and polled again on the next tick; only the
deadline ends a phase early.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from src.execution.rds import RDSControlPlane
from src.scaling.errors import (
    ControlPlaneError,
    InstanceNotAvailableError,
    ModificationNotStartedError,
    NotFoundError,
    WaitTimeoutError,
)
from src.scaling.models import AVAILABLE_STATUS, DatabaseInstance, InstanceDescription
from src.utils.logging import get_logger

logger = get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class WaitPhase:
    """Bounds of one polling phase."""

    name: str
    timeout_seconds: float
    poll_interval_seconds: float


class StateTransitionWaiter:
    """Issues class changes and waits for them to begin and settle."""

    def __init__(
        self,
        rds: RDSControlPlane,
        start_timeout_seconds: float = 300.0,
        start_poll_interval_seconds: float = 15.0,
        available_timeout_seconds: float = 1000.0,
        available_poll_interval_seconds: float = 5.0,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the waiter.

        Args:
            rds: RDS control plane adapter
            start_timeout_seconds: Deadline for the modification to begin
            start_poll_interval_seconds: Poll interval while waiting to begin
            available_timeout_seconds: Deadline for the instance to become available
            available_poll_interval_seconds: Poll interval while waiting to settle
            sleep: Coroutine used between polls
            clock: Monotonic clock used for deadlines
        """
        self.rds = rds
        self.start_phase = WaitPhase(
            name="modification_started",
            timeout_seconds=start_timeout_seconds,
            poll_interval_seconds=start_poll_interval_seconds,
        )
        self.available_phase = WaitPhase(
            name="available",
            timeout_seconds=available_timeout_seconds,
            poll_interval_seconds=available_poll_interval_seconds,
        )
        self._sleep = sleep
        self._clock = clock

    async def resize_instance(
        self, instance: DatabaseInstance, new_class: str
    ) -> DatabaseInstance:
        """
        Change an instance's class and wait until the change has settled.

        Returns:
            Refreshed snapshot carrying the new class and latest status

        Raises:
            ControlPlaneError: the modification request was rejected
            ModificationNotStartedError: status never left "available"
            InstanceNotAvailableError: status never returned to "available"
        """
        logger.info(
            "Upgrading database instance class",
            instance_id=instance.instance_id,
            current_class=instance.instance_class,
            new_class=new_class,
        )
        self.rds.modify_instance_class(instance.instance_id, new_class)

        logger.info(
            "Waiting for db instance to start modifications",
            instance_id=instance.instance_id,
            timeout_seconds=self.start_phase.timeout_seconds,
        )
        await self.wait_for_modification_start(instance.instance_id)

        logger.info(
            "Waiting for db instance to become available",
            instance_id=instance.instance_id,
            timeout_seconds=self.available_phase.timeout_seconds,
        )
        description = await self.wait_for_available(instance.instance_id)

        if description.instance_class != new_class:
            logger.warning(
                "DB instance available with unexpected class",
                instance_id=instance.instance_id,
                expected_class=new_class,
                instance_class=description.instance_class,
            )

        return instance.evolve(instance_class=new_class, status=description.status)

    async def wait_for_modification_start(self, instance_id: str) -> InstanceDescription:
        """Phase A: return once the status is anything but "available"."""
        return await self._poll(
            instance_id,
            self.start_phase,
            lambda status: status != AVAILABLE_STATUS,
            ModificationNotStartedError,
        )

    async def wait_for_available(self, instance_id: str) -> InstanceDescription:
        """Phase B: return once the status is "available"."""
        return await self._poll(
            instance_id,
            self.available_phase,
            lambda status: status == AVAILABLE_STATUS,
            InstanceNotAvailableError,
        )

    async def _poll(
        self,
        instance_id: str,
        phase: WaitPhase,
        done: Callable[[str], bool],
        timeout_error: type[WaitTimeoutError],
    ) -> InstanceDescription:
        deadline = self._clock() + phase.timeout_seconds
        attempts = 0

        while True:
            attempts += 1
            try:
                description = self.rds.describe_instance(instance_id)
            except (ControlPlaneError, NotFoundError) as e:
                logger.error(
                    "Unable to describe DB instance while polling",
                    instance_id=instance_id,
                    phase=phase.name,
                    attempt=attempts,
                    error=str(e),
                )
            else:
                if done(description.status):
                    logger.info(
                        "DB instance status",
                        instance_id=instance_id,
                        phase=phase.name,
                        status=description.status,
                        attempts=attempts,
                    )
                    return description
                logger.debug(
                    "DB instance still waiting",
                    instance_id=instance_id,
                    phase=phase.name,
                    status=description.status,
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise timeout_error(instance_id, phase.timeout_seconds)
            await self._sleep(min(phase.poll_interval_seconds, remaining))
