"""
Instance class catalogs.

Two ordered tables, smallest to largest, keyed by CPU architecture. Memory
capacities are exact byte counts.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from src.scaling.errors import UnsupportedInstanceClassError

# Graviton class names carry the architecture letter before the size suffix
GRAVITON_MARKER = "g."


class Architecture(str, Enum):
    """CPU architecture family of an instance class."""

    STANDARD = "standard"
    GRAVITON = "graviton"


@dataclass(frozen=True)
class InstanceClassCatalog:
    """An ordered catalog of instance classes for one architecture."""

    architecture: Architecture
    classes: tuple[str, ...]
    memory: Mapping[str, int] = field(repr=False)

    def __len__(self) -> int:
        return len(self.classes)

    def index_of(self, instance_class: str) -> int | None:
        """Position of a class in the catalog, or None if absent."""
        for index, candidate in enumerate(self.classes):
            if candidate == instance_class:
                return index
        return None

    def memory_bytes(self, instance_class: str) -> int:
        """Memory capacity of a class in bytes."""
        try:
            return self.memory[instance_class]
        except KeyError:
            raise UnsupportedInstanceClassError(instance_class) from None


STANDARD_CATALOG = InstanceClassCatalog(
    architecture=Architecture.STANDARD,
    classes=(
        "db.t3.medium",
        "db.t3.large",
        "db.r5.large",
        "db.r5.xlarge",
        "db.r5.2xlarge",
        "db.r5.4xlarge",
        "db.r5.8xlarge",
        "db.r5.12xlarge",
        "db.r5.16xlarge",
        "db.r5.24xlarge",
    ),
    memory={
        "db.t3.medium": 4294967296,
        "db.t3.large": 8589934592,
        "db.r5.large": 17179869184,
        "db.r5.xlarge": 34359738368,
        "db.r5.2xlarge": 68719476736,
        "db.r5.4xlarge": 137438953472,
        "db.r5.8xlarge": 274877906944,
        "db.r5.12xlarge": 412316860416,
        "db.r5.16xlarge": 549755813888,
        "db.r5.24xlarge": 824633720832,
    },
)

GRAVITON_CATALOG = InstanceClassCatalog(
    architecture=Architecture.GRAVITON,
    classes=(
        "db.t4g.small",
        "db.t4g.medium",
        "db.t4g.large",
        "db.r6g.large",
        "db.r6g.xlarge",
        "db.r6g.2xlarge",
        "db.r6g.4xlarge",
        "db.r6g.8xlarge",
        "db.r6g.12xlarge",
        "db.r6g.16xlarge",
        "db.r6g.24xlarge",
    ),
    memory={
        "db.t4g.small": 2147483648,
        "db.t4g.medium": 4294967296,
        "db.t4g.large": 8589934592,
        "db.r6g.large": 17179869184,
        "db.r6g.xlarge": 34359738368,
        "db.r6g.2xlarge": 68719476736,
        "db.r6g.4xlarge": 137438953472,
        "db.r6g.8xlarge": 274877906944,
        "db.r6g.12xlarge": 412316860416,
        "db.r6g.16xlarge": 549755813888,
        "db.r6g.24xlarge": 824633720832,
    },
)

CATALOGS: Mapping[Architecture, InstanceClassCatalog] = {
    Architecture.STANDARD: STANDARD_CATALOG,
    Architecture.GRAVITON: GRAVITON_CATALOG,
}


def detect_architecture(instance_class: str) -> Architecture:
    """Infer the architecture from the class name alone."""
    if GRAVITON_MARKER in instance_class:
        return Architecture.GRAVITON
    return Architecture.STANDARD


def get_catalog(
    architecture: Architecture,
    catalogs: Mapping[Architecture, InstanceClassCatalog] = CATALOGS,
) -> InstanceClassCatalog:
    """Get the catalog for an architecture."""
    return catalogs[architecture]
