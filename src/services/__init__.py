"""
Services for the Aurora vertical scaler.

This module provides the vertical scaling service that runs one scale-up
step per trigger.
"""

from src.services.vertical_scaling import (
    ScalingOutcome,
    ScalingState,
    VerticalScalingService,
    scaling_step,
)

__all__ = [
    "ScalingOutcome",
    "ScalingState",
    "VerticalScalingService",
    "scaling_step",
]
