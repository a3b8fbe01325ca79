"""
CloudWatch alarm threshold updates.

Two alarms follow an instance's memory capacity:
- ``<instance>-memory``: metric math alarm whose ``e1`` expression adds a
  proportion of the instance memory to the freeable memory metric ``m1``
- ``<instance>-connections``: DatabaseConnections alarm whose threshold is
  derived from the instance memory

PutMetricAlarm replaces the whole alarm, so every field of the described
alarm is carried over and only the recomputed value changes.
"""

import copy
from decimal import Decimal
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from src.scaling.catalog import Architecture
from src.scaling.decision import ScalingDecisionEngine
from src.scaling.errors import (
    AlarmElementNotFoundError,
    AlarmNotFoundError,
    ControlPlaneError,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

MEMORY_ALARM_SUFFIX = "-memory"
CONNECTIONS_ALARM_SUFFIX = "-connections"
MEMORY_EXPRESSION_ID = "e1"
MEMORY_BASE_METRIC_ID = "m1"
CONNECTIONS_METRIC_NAME = "DatabaseConnections"

# Fields of a described MetricAlarm accepted back by PutMetricAlarm
PUT_METRIC_ALARM_FIELDS = (
    "AlarmName",
    "AlarmDescription",
    "ActionsEnabled",
    "OKActions",
    "AlarmActions",
    "InsufficientDataActions",
    "MetricName",
    "Namespace",
    "Statistic",
    "ExtendedStatistic",
    "Dimensions",
    "Period",
    "Unit",
    "EvaluationPeriods",
    "DatapointsToAlarm",
    "Threshold",
    "ComparisonOperator",
    "TreatMissingData",
    "EvaluateLowSampleCountPercentile",
    "Metrics",
    "ThresholdMetricId",
)


def memory_alarm_name(instance_id: str) -> str:
    return f"{instance_id}{MEMORY_ALARM_SUFFIX}"


def connections_alarm_name(instance_id: str) -> str:
    return f"{instance_id}{CONNECTIONS_ALARM_SUFFIX}"


def format_ratio(value: float) -> str:
    """Shortest plain decimal text for a ratio: 1.0 is "1", 1e-05 is "0.00001"."""
    return format(Decimal(repr(value)).normalize(), "f")


def memory_expression(cache_proportion: float, memory_bytes: int) -> str:
    """Metric math for freeable memory plus the cache share of the instance."""
    return f"{MEMORY_BASE_METRIC_ID} + {format_ratio(cache_proportion)}*{memory_bytes}"


def connections_threshold(
    safety_percentage: float, memory_bytes: int, divider: float
) -> float:
    """Connection count threshold for an instance of the given memory."""
    return safety_percentage * (float(memory_bytes) / divider)


def to_put_metric_alarm_params(alarm: dict[str, Any]) -> dict[str, Any]:
    """Map a described alarm onto PutMetricAlarm arguments, dropping empty fields."""
    return {
        key: alarm[key]
        for key in PUT_METRIC_ALARM_FIELDS
        if key in alarm and alarm[key] is not None
    }


def apply_memory_expression(
    alarms: list[dict[str, Any]], alarm_name: str, expression: str
) -> dict[str, Any]:
    """
    Set the ``e1`` expression on the first alarm that has one.

    Returns:
        Updated copy of the matching alarm
    """
    for alarm in alarms:
        for index, metric in enumerate(alarm.get("Metrics") or []):
            if metric.get("Id") == MEMORY_EXPRESSION_ID:
                updated = copy.deepcopy(alarm)
                updated["Metrics"][index]["Expression"] = expression
                return updated
    raise AlarmElementNotFoundError(alarm_name, f"metric expression ({MEMORY_EXPRESSION_ID})")


def apply_connections_threshold(
    alarms: list[dict[str, Any]], alarm_name: str, threshold: float
) -> dict[str, Any]:
    """
    Set the threshold on the first DatabaseConnections alarm.

    Returns:
        Updated copy of the matching alarm
    """
    for alarm in alarms:
        if alarm.get("MetricName") == CONNECTIONS_METRIC_NAME:
            updated = copy.deepcopy(alarm)
            updated["Threshold"] = threshold
            return updated
    raise AlarmElementNotFoundError(alarm_name, f"{CONNECTIONS_METRIC_NAME} metric")


class AlarmThresholdUpdater:
    """Recomputes memory-derived alarm definitions after a class change."""

    def __init__(
        self,
        client: Any,
        memory_cache_proportion: float,
        connections_safety_percentage: float,
        memory_connections_divider: float,
        decision_engine: ScalingDecisionEngine | None = None,
    ) -> None:
        """
        Initialize the updater.

        Args:
            client: boto3 CloudWatch client
            memory_cache_proportion: Share of instance memory added to the memory metric
            connections_safety_percentage: Share of the memory-derived connection limit to alarm at
            memory_connections_divider: Bytes of memory per allowed connection
            decision_engine: Source of the memory tables
        """
        self._client = client
        self.memory_cache_proportion = memory_cache_proportion
        self.connections_safety_percentage = connections_safety_percentage
        self.memory_connections_divider = memory_connections_divider
        self.decision_engine = decision_engine or ScalingDecisionEngine()

    def update_alarms(
        self, instance_id: str, new_class: str, architecture: Architecture
    ) -> None:
        """Refresh both alarms of an instance for its new class."""
        self.update_memory_alarm(memory_alarm_name(instance_id), new_class, architecture)
        self.update_connections_alarm(
            connections_alarm_name(instance_id), new_class, architecture
        )

    def update_memory_alarm(
        self, alarm_name: str, new_class: str, architecture: Architecture
    ) -> dict[str, Any]:
        memory_bytes = self.decision_engine.memory_bytes(new_class, architecture)
        expression = memory_expression(self.memory_cache_proportion, memory_bytes)

        logger.info(
            "Updating Cloudwatch alarm with new metric",
            alarm_name=alarm_name,
            new_class=new_class,
            expression=expression,
        )
        alarm = apply_memory_expression(self._describe(alarm_name), alarm_name, expression)
        self._put(alarm_name, alarm)
        return alarm

    def update_connections_alarm(
        self, alarm_name: str, new_class: str, architecture: Architecture
    ) -> dict[str, Any]:
        memory_bytes = self.decision_engine.memory_bytes(new_class, architecture)
        threshold = connections_threshold(
            self.connections_safety_percentage,
            memory_bytes,
            self.memory_connections_divider,
        )

        logger.info(
            "Updating Cloudwatch alarm with new threshold",
            alarm_name=alarm_name,
            new_class=new_class,
            threshold=threshold,
        )
        alarm = apply_connections_threshold(self._describe(alarm_name), alarm_name, threshold)
        self._put(alarm_name, alarm)
        return alarm

    def _describe(self, alarm_name: str) -> list[dict[str, Any]]:
        try:
            response = self._client.describe_alarms(AlarmNames=[alarm_name])
        except (ClientError, BotoCoreError) as e:
            raise ControlPlaneError("Failed to describe Cloudwatch alarms", alarm_name) from e

        alarms = response.get("MetricAlarms") or []
        if not alarms:
            raise AlarmNotFoundError(alarm_name)
        return alarms

    def _put(self, alarm_name: str, alarm: dict[str, Any]) -> None:
        params = to_put_metric_alarm_params(alarm)
        params["AlarmName"] = alarm_name
        try:
            self._client.put_metric_alarm(**params)
        except (ClientError, BotoCoreError) as e:
            raise ControlPlaneError("Failed to update Cloudwatch alarm", alarm_name) from e
