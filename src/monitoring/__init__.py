"""
Monitoring integrations for Aurora vertical scaling.

This module provides:
- CloudWatch alarm threshold updates after a class change
- Mattermost notifications for scaling outcomes
"""

from src.monitoring.alarms import (
    AlarmThresholdUpdater,
    connections_alarm_name,
    connections_threshold,
    memory_alarm_name,
    memory_expression,
)
from src.monitoring.notifications import MattermostNotifier

__all__ = [
    # Alarms
    "AlarmThresholdUpdater",
    "connections_alarm_name",
    "connections_threshold",
    "memory_alarm_name",
    "memory_expression",
    # Notifications
    "MattermostNotifier",
]
