"""
Trigger transport for vertical scaling.

Data Flow:
    CloudWatch Alarm → SNS → SQS → TriggerQueue → VerticalScalingService
"""

from .trigger_queue import TriggerQueue, decode_trigger

__all__ = [
    "TriggerQueue",
    "decode_trigger",
]
