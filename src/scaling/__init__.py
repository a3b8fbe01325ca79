"""
Scaling decision layer for Aurora vertical scaling.

This module provides:
- Instance class catalogs keyed by architecture
- The decision engine choosing the next instance class
- Cluster role resolution for writers and readers
- The error taxonomy shared by every layer
"""

from src.scaling.catalog import (
    CATALOGS,
    GRAVITON_CATALOG,
    STANDARD_CATALOG,
    Architecture,
    InstanceClassCatalog,
    detect_architecture,
    get_catalog,
)
from src.scaling.decision import ScalingDecisionEngine
from src.scaling.errors import (
    ErrorCategory,
    ScalingError,
    ScalingStepError,
    format_error_chain,
)
from src.scaling.models import (
    ClusterMember,
    ClusterMembership,
    DatabaseInstance,
    InstanceDescription,
    ScalingEvent,
)

__all__ = [
    # Catalog
    "CATALOGS",
    "GRAVITON_CATALOG",
    "STANDARD_CATALOG",
    "Architecture",
    "InstanceClassCatalog",
    "detect_architecture",
    "get_catalog",
    # Decision
    "ScalingDecisionEngine",
    # Errors
    "ErrorCategory",
    "ScalingError",
    "ScalingStepError",
    "format_error_chain",
    # Models
    "ClusterMember",
    "ClusterMembership",
    "DatabaseInstance",
    "InstanceDescription",
    "ScalingEvent",
]
