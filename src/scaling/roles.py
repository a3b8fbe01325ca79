"""
Cluster role resolution.

Determines whether an instance is its cluster's writer and, for writers,
which tenant reader should take over.
"""

from src.execution.rds import RDSControlPlane
from src.scaling.errors import PeerReaderNotFoundError
from src.scaling.models import ClusterMembership, DatabaseInstance
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ClusterRoleResolver:
    """Resolves writer/reader roles from the RDS control plane."""

    def __init__(self, rds: RDSControlPlane, instance_name_prefix: str) -> None:
        """
        Initialize the resolver.

        Args:
            rds: RDS control plane adapter
            instance_name_prefix: Name prefix of the tenant instances eligible as peers
        """
        self.rds = rds
        self.instance_name_prefix = instance_name_prefix

    def resolve_role(self, instance: DatabaseInstance) -> DatabaseInstance:
        """
        Load an instance and its cluster membership.

        Returns:
            Snapshot with status, class, cluster and writer flag populated
        """
        description = self.rds.describe_instance(instance.instance_id)
        membership = self.rds.describe_cluster(description.cluster_id)

        resolved = instance.evolve(
            cluster_id=description.cluster_id,
            instance_class=description.instance_class,
            status=description.status,
            is_writer=membership.is_writer(instance.instance_id),
        )

        logger.info(
            "DB instance role resolved",
            instance_id=resolved.instance_id,
            cluster_id=resolved.cluster_id,
            instance_class=resolved.instance_class,
            status=resolved.status,
            is_writer=resolved.is_writer,
        )
        return resolved

    def eligible_peers(
        self, instance: DatabaseInstance, membership: ClusterMembership
    ) -> list[str]:
        """Tenant members of the cluster other than the instance itself."""
        return [
            member.instance_id
            for member in membership.members
            if self.instance_name_prefix in member.instance_id
            and member.instance_id != instance.instance_id
        ]

    def find_peer_reader(self, instance: DatabaseInstance) -> DatabaseInstance:
        """
        Pick the reader that will be resized and promoted in place of a writer.

        The first eligible member in listing order wins.

        Raises:
            PeerReaderNotFoundError: no tenant member besides the instance
        """
        membership = self.rds.describe_cluster(instance.cluster_id)
        peers = self.eligible_peers(instance, membership)
        if not peers:
            raise PeerReaderNotFoundError(instance.instance_id, instance.cluster_id)

        if len(peers) > 1:
            logger.warning(
                "Multiple reader peers eligible, using first listed",
                instance_id=instance.instance_id,
                peers=peers,
            )

        logger.info(
            "DB instance selected for vertical scaling",
            writer_id=instance.instance_id,
            reader_id=peers[0],
        )
        return DatabaseInstance(instance_id=peers[0])
