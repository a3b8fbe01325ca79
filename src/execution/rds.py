"""
RDS control plane adapter.

Thin typed wrapper over the boto3 RDS client. Reads return dataclasses and
raise NotFoundError subclasses for empty results; every botocore failure is
wrapped in ControlPlaneError with the entity it concerns.
"""

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from src.scaling.errors import (
    ClusterNotFoundError,
    ControlPlaneError,
    InstanceNotFoundError,
)
from src.scaling.models import ClusterMember, ClusterMembership, InstanceDescription
from src.utils.logging import get_logger

logger = get_logger(__name__)

INSTANCE_NOT_FOUND_CODES = frozenset({"DBInstanceNotFound", "DBInstanceNotFoundFault"})
CLUSTER_NOT_FOUND_CODES = frozenset({"DBClusterNotFoundFault", "DBClusterNotFound"})


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class RDSControlPlane:
    """Reads and mutations of Aurora instances and clusters."""

    def __init__(self, client: Any) -> None:
        """
        Initialize the adapter.

        Args:
            client: boto3 RDS client
        """
        self._client = client

    def describe_instance(self, instance_id: str) -> InstanceDescription:
        """Read status, class and owning cluster of an instance."""
        try:
            response = self._client.describe_db_instances(DBInstanceIdentifier=instance_id)
        except ClientError as e:
            if _error_code(e) in INSTANCE_NOT_FOUND_CODES:
                raise InstanceNotFoundError(instance_id) from e
            raise ControlPlaneError("unable to describe DB instance", instance_id) from e
        except BotoCoreError as e:
            raise ControlPlaneError("unable to describe DB instance", instance_id) from e

        instances = response.get("DBInstances") or []
        if not instances:
            raise InstanceNotFoundError(instance_id)

        instance = instances[0]
        return InstanceDescription(
            instance_id=instance.get("DBInstanceIdentifier", instance_id),
            instance_class=instance.get("DBInstanceClass", ""),
            status=instance.get("DBInstanceStatus", ""),
            cluster_id=instance.get("DBClusterIdentifier", ""),
        )

    def describe_cluster(self, cluster_id: str) -> ClusterMembership:
        """Read the members of a cluster and their writer flags."""
        if not cluster_id:
            raise ClusterNotFoundError(cluster_id)

        try:
            response = self._client.describe_db_clusters(DBClusterIdentifier=cluster_id)
        except ClientError as e:
            if _error_code(e) in CLUSTER_NOT_FOUND_CODES:
                raise ClusterNotFoundError(cluster_id) from e
            raise ControlPlaneError("unable to describe DB cluster", cluster_id) from e
        except BotoCoreError as e:
            raise ControlPlaneError("unable to describe DB cluster", cluster_id) from e

        clusters = response.get("DBClusters") or []
        if not clusters:
            raise ClusterNotFoundError(cluster_id)

        members = tuple(
            ClusterMember(
                instance_id=member["DBInstanceIdentifier"],
                is_writer=bool(member.get("IsClusterWriter", False)),
            )
            for member in clusters[0].get("DBClusterMembers") or []
        )
        return ClusterMembership(cluster_id=cluster_id, members=members)

    def modify_instance_class(self, instance_id: str, instance_class: str) -> None:
        """Change an instance's class, applied immediately."""
        try:
            self._client.modify_db_instance(
                DBInstanceIdentifier=instance_id,
                DBInstanceClass=instance_class,
                ApplyImmediately=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise ControlPlaneError(
                f"unable to upgrade database to class ({instance_class})", instance_id
            ) from e

        logger.info(
            "DB instance modification requested",
            instance_id=instance_id,
            instance_class=instance_class,
        )

    def failover_cluster(self, cluster_id: str, target_instance_id: str) -> None:
        """Promote the target instance to cluster writer."""
        try:
            self._client.failover_db_cluster(
                DBClusterIdentifier=cluster_id,
                TargetDBInstanceIdentifier=target_instance_id,
            )
        except (ClientError, BotoCoreError) as e:
            raise ControlPlaneError("unable to failover DB cluster", cluster_id) from e
