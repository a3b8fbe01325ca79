"""
Scaling decision engine.

Resolves where an instance sits in its architecture's catalog and picks the
next class up. Scaling is refused one step before the catalog ceiling: the
class returned by next_class always has at least one larger class above it.
"""

from collections.abc import Mapping

from src.scaling.catalog import (
    CATALOGS,
    Architecture,
    InstanceClassCatalog,
    detect_architecture,
    get_catalog,
)
from src.scaling.errors import MaximumSizeReachedError, UnsupportedInstanceClassError
from src.scaling.models import DatabaseInstance
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ScalingDecisionEngine:
    """Single decision engine over an architecture-keyed catalog map."""

    def __init__(
        self,
        catalogs: Mapping[Architecture, InstanceClassCatalog] = CATALOGS,
    ) -> None:
        self.catalogs = catalogs

    def catalog_for(self, instance_class: str) -> InstanceClassCatalog:
        """Catalog matching the architecture inferred from a class name."""
        return get_catalog(detect_architecture(instance_class), self.catalogs)

    def resolve_index(self, instance: DatabaseInstance) -> DatabaseInstance:
        """
        Locate the instance's current class in its catalog.

        Returns:
            Snapshot with architecture and size_index set

        Raises:
            UnsupportedInstanceClassError: class is in neither catalog
        """
        catalog = self.catalog_for(instance.instance_class)
        index = catalog.index_of(instance.instance_class)
        if index is None:
            raise UnsupportedInstanceClassError(
                instance.instance_class, instance.instance_id
            )

        logger.info(
            "Current DB instance class",
            instance_id=instance.instance_id,
            instance_class=instance.instance_class,
            architecture=catalog.architecture.value,
            size_index=index,
        )
        return instance.evolve(architecture=catalog.architecture, size_index=index)

    def next_class(self, instance: DatabaseInstance) -> str:
        """
        Compute the class one step above the instance's current class.

        Raises:
            MaximumSizeReachedError: the next class would be the catalog's last
        """
        if instance.size_index is None:
            instance = self.resolve_index(instance)

        catalog = self.catalog_for(instance.instance_class)
        new_index = instance.size_index + 1
        if new_index + 1 >= len(catalog):
            raise MaximumSizeReachedError(instance.instance_class, instance.instance_id)

        new_class = catalog.classes[new_index]
        logger.info(
            "New DB instance class",
            instance_id=instance.instance_id,
            new_class=new_class,
            architecture=catalog.architecture.value,
        )
        return new_class

    def needs_resize(self, target: DatabaseInstance, peer: DatabaseInstance) -> bool:
        """Whether a peer is smaller than the target's next class."""
        return target.size_index + 1 > peer.size_index

    def memory_bytes(self, instance_class: str, architecture: Architecture) -> int:
        """Memory capacity of a class, read from the given architecture's table."""
        return get_catalog(architecture, self.catalogs).memory_bytes(instance_class)
