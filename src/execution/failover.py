"""
Failover coordination.

Promotes a reader to cluster writer. A rejected failover is never retried
and is reported as a partial topology change.
"""

from src.execution.rds import RDSControlPlane
from src.scaling.errors import ControlPlaneError, FailoverError
from src.scaling.models import DatabaseInstance
from src.utils.logging import get_logger

logger = get_logger(__name__)


class FailoverCoordinator:
    """Issues promote-to-writer requests."""

    def __init__(self, rds: RDSControlPlane) -> None:
        self.rds = rds

    def failover(self, instance: DatabaseInstance, resized: bool = False) -> DatabaseInstance:
        """
        Promote an instance to writer of its cluster.

        Args:
            instance: Reader to promote
            resized: Whether the reader's class was changed earlier in this run

        Returns:
            Snapshot flagged as the cluster writer

        Raises:
            FailoverError: the control plane rejected the failover
        """
        logger.info(
            "Initiating DB instance failover",
            instance_id=instance.instance_id,
            cluster_id=instance.cluster_id,
        )
        try:
            self.rds.failover_cluster(instance.cluster_id, instance.instance_id)
        except ControlPlaneError as e:
            if resized:
                message = (
                    f"failover to DB instance ({instance.instance_id}) failed; "
                    f"instance class is ({instance.instance_class}) but it is not the writer"
                )
            else:
                message = (
                    f"failover to DB instance ({instance.instance_id}) failed; "
                    "cluster writer was not switched"
                )
            logger.critical(
                "Failover failed, cluster topology needs attention",
                instance_id=instance.instance_id,
                cluster_id=instance.cluster_id,
                instance_class=instance.instance_class,
                resized=resized,
                error=str(e),
            )
            raise FailoverError(message, instance.instance_id, class_changed=resized) from e

        return instance.evolve(is_writer=True)
