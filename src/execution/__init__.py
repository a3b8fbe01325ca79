"""
Execution Layer for Aurora vertical scaling.

This module provides the AWS client setup, the RDS control plane adapter,
the state transition waiter gating every class change, and failover
coordination.
"""

from src.execution.aws import AWSClients, AWSConfig, create_clients
from src.execution.failover import FailoverCoordinator
from src.execution.rds import RDSControlPlane
from src.execution.waiter import StateTransitionWaiter, WaitPhase

__all__ = [
    "AWSClients",
    "AWSConfig",
    "create_clients",
    "FailoverCoordinator",
    "RDSControlPlane",
    "StateTransitionWaiter",
    "WaitPhase",
]
