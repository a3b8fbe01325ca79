"""
Shared test fixtures and configuration.
"""

import copy
import json
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from config.settings import (
    AppSettings,
    AWSSettings,
    NotificationSettings,
    ScalerSettings,
    WaiterSettings,
)
from src.monitoring.notifications import MattermostNotifier

# ============================================================================
# Constants
# ============================================================================

INSTANCE_PREFIX = "rds-db-multitenant"
CLUSTER_ID = "rds-cluster-multitenant-0001"
WRITER_ID = f"{INSTANCE_PREFIX}-0001-a"
READER_ID = f"{INSTANCE_PREFIX}-0001-b"
QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/db-vertical-scaling"

MEMORY_CACHE_PROPORTION = 0.25
CONNECTIONS_SAFETY_PERCENTAGE = 0.8
MEMORY_CONNECTIONS_DIVIDER = 12582880.0

SCALER_ENV = {
    "SCALER_INSTANCE_NAME_PREFIX": INSTANCE_PREFIX,
    "SCALER_ENVIRONMENT": "test",
    "SCALER_QUEUE_URL": QUEUE_URL,
    "SCALER_MEMORY_CACHE_PROPORTION": str(MEMORY_CACHE_PROPORTION),
    "SCALER_CONNECTIONS_SAFETY_PERCENTAGE": str(CONNECTIONS_SAFETY_PERCENTAGE),
    "SCALER_MEMORY_CONNECTIONS_DIVIDER": str(MEMORY_CONNECTIONS_DIVIDER),
    "MATTERMOST_NOTIFICATIONS_HOOK": "https://mattermost.example.com/hooks/notifications",
    "MATTERMOST_ALERTS_HOOK": "https://mattermost.example.com/hooks/alerts",
}

LEGACY_ENV_NAMES = (
    "RDSMultitenantDBInstanceNamePrefix",
    "Environment",
    "QueueURL",
    "MemoryCacheProportion",
    "ConnectionsSafetyPercentage",
    "MemoryConnectionsDivider",
    "MattermostNotificationsHook",
    "MattermostAlertsHook",
)


def client_error(code: str, operation: str, message: str = "error") -> ClientError:
    """Build a botocore ClientError."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


# ============================================================================
# Time Fixtures
# ============================================================================


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def scaler_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Populate every required environment variable."""
    for key in LEGACY_ENV_NAMES:
        monkeypatch.delenv(key, raising=False)
    for key, value in SCALER_ENV.items():
        monkeypatch.setenv(key, value)
    return dict(SCALER_ENV)


@pytest.fixture
def app_settings() -> AppSettings:
    """Fully explicit settings, independent of the environment."""
    return AppSettings(
        env="development",
        log_format="console",
        scaler=ScalerSettings(
            instance_name_prefix=INSTANCE_PREFIX,
            environment="test",
            queue_url=QUEUE_URL,
            memory_cache_proportion=MEMORY_CACHE_PROPORTION,
            connections_safety_percentage=CONNECTIONS_SAFETY_PERCENTAGE,
            memory_connections_divider=MEMORY_CONNECTIONS_DIVIDER,
        ),
        notifications=NotificationSettings(
            notifications_hook=SCALER_ENV["MATTERMOST_NOTIFICATIONS_HOOK"],
            alerts_hook=SCALER_ENV["MATTERMOST_ALERTS_HOOK"],
        ),
        waiter=WaiterSettings(
            start_timeout_seconds=60,
            start_poll_interval_seconds=15,
            available_timeout_seconds=120,
            available_poll_interval_seconds=5,
        ),
        aws=AWSSettings(region="us-east-1"),
    )


# ============================================================================
# AWS Fakes
# ============================================================================


class FakeRDSClient:
    """
    Stateful stand-in for the boto3 RDS client.

    After modify_db_instance the instance reports the statuses of
    ``status_script`` one per describe call, repeating the last one.
    """

    def __init__(
        self,
        instances: dict[str, str],
        writer_id: str,
        cluster_id: str = CLUSTER_ID,
        status_script: Iterable[str] = ("modifying", "modifying", "available"),
    ) -> None:
        self.cluster_id = cluster_id
        self.classes = dict(instances)
        self.writer_id = writer_id
        self.status_script = tuple(status_script)
        self._statuses: dict[str, deque[str]] = {
            instance_id: deque(["available"]) for instance_id in instances
        }
        self.describe_failures: deque[Exception] = deque()
        self.modify_error: Exception | None = None
        self.failover_error: Exception | None = None
        self.describe_calls: list[str] = []
        self.modify_calls: list[dict[str, Any]] = []
        self.failover_calls: list[dict[str, Any]] = []

    def describe_db_instances(self, DBInstanceIdentifier: str) -> dict[str, Any]:
        self.describe_calls.append(DBInstanceIdentifier)
        if self.describe_failures:
            raise self.describe_failures.popleft()
        if DBInstanceIdentifier not in self.classes:
            return {"DBInstances": []}

        statuses = self._statuses[DBInstanceIdentifier]
        status = statuses.popleft() if len(statuses) > 1 else statuses[0]
        return {
            "DBInstances": [
                {
                    "DBInstanceIdentifier": DBInstanceIdentifier,
                    "DBInstanceClass": self.classes[DBInstanceIdentifier],
                    "DBInstanceStatus": status,
                    "DBClusterIdentifier": self.cluster_id,
                }
            ]
        }

    def describe_db_clusters(self, DBClusterIdentifier: str) -> dict[str, Any]:
        if DBClusterIdentifier != self.cluster_id:
            return {"DBClusters": []}
        return {
            "DBClusters": [
                {
                    "DBClusterIdentifier": self.cluster_id,
                    "DBClusterMembers": [
                        {
                            "DBInstanceIdentifier": instance_id,
                            "IsClusterWriter": instance_id == self.writer_id,
                        }
                        for instance_id in self.classes
                    ],
                }
            ]
        }

    def modify_db_instance(
        self, DBInstanceIdentifier: str, DBInstanceClass: str, ApplyImmediately: bool
    ) -> dict[str, Any]:
        self.modify_calls.append(
            {
                "DBInstanceIdentifier": DBInstanceIdentifier,
                "DBInstanceClass": DBInstanceClass,
                "ApplyImmediately": ApplyImmediately,
            }
        )
        if self.modify_error:
            raise self.modify_error
        self.classes[DBInstanceIdentifier] = DBInstanceClass
        self._statuses[DBInstanceIdentifier] = deque(self.status_script)
        return {"DBInstance": {"DBInstanceIdentifier": DBInstanceIdentifier}}

    def failover_db_cluster(
        self, DBClusterIdentifier: str, TargetDBInstanceIdentifier: str
    ) -> dict[str, Any]:
        self.failover_calls.append(
            {
                "DBClusterIdentifier": DBClusterIdentifier,
                "TargetDBInstanceIdentifier": TargetDBInstanceIdentifier,
            }
        )
        if self.failover_error:
            raise self.failover_error
        self.writer_id = TargetDBInstanceIdentifier
        return {"DBCluster": {"DBClusterIdentifier": DBClusterIdentifier}}


class FakeCloudWatchClient:
    """Stand-in for the boto3 CloudWatch client holding alarms by name."""

    def __init__(self, alarms: Iterable[dict[str, Any]] = ()) -> None:
        self.alarms = {alarm["AlarmName"]: copy.deepcopy(alarm) for alarm in alarms}
        self.put_calls: list[dict[str, Any]] = []

    def describe_alarms(self, AlarmNames: list[str]) -> dict[str, Any]:
        return {
            "MetricAlarms": [
                copy.deepcopy(self.alarms[name]) for name in AlarmNames if name in self.alarms
            ]
        }

    def put_metric_alarm(self, **params: Any) -> dict[str, Any]:
        self.put_calls.append(copy.deepcopy(params))
        self.alarms[params["AlarmName"]] = copy.deepcopy(params)
        return {}


def make_memory_alarm(instance_id: str, expression: str = "m1 + 0.25*4294967296") -> dict[str, Any]:
    """A described metric-math memory alarm as CloudWatch returns it."""
    return {
        "AlarmName": f"{instance_id}-memory",
        "AlarmArn": f"arn:aws:cloudwatch:us-east-1:123456789012:alarm:{instance_id}-memory",
        "AlarmDescription": "Freeable memory below cache headroom",
        "ActionsEnabled": True,
        "OKActions": [],
        "AlarmActions": ["arn:aws:sns:us-east-1:123456789012:db-vertical-scaling"],
        "InsufficientDataActions": [],
        "StateValue": "ALARM",
        "StateUpdatedTimestamp": datetime(2024, 1, 1, tzinfo=UTC),
        "EvaluationPeriods": 3,
        "DatapointsToAlarm": 3,
        "Threshold": 0.0,
        "ComparisonOperator": "LessThanThreshold",
        "TreatMissingData": "missing",
        "Metrics": [
            {
                "Id": "m1",
                "MetricStat": {
                    "Metric": {
                        "Namespace": "AWS/RDS",
                        "MetricName": "FreeableMemory",
                        "Dimensions": [{"Name": "DBInstanceIdentifier", "Value": instance_id}],
                    },
                    "Period": 60,
                    "Stat": "Average",
                },
                "ReturnData": False,
            },
            {
                "Id": "e1",
                "Expression": expression,
                "Label": "FreeableMemoryWithCache",
                "ReturnData": True,
            },
        ],
    }


def make_connections_alarm(instance_id: str, threshold: float = 100.0) -> dict[str, Any]:
    """A described single-metric DatabaseConnections alarm."""
    return {
        "AlarmName": f"{instance_id}-connections",
        "AlarmArn": f"arn:aws:cloudwatch:us-east-1:123456789012:alarm:{instance_id}-connections",
        "AlarmDescription": "Database connections close to the class limit",
        "ActionsEnabled": True,
        "OKActions": [],
        "AlarmActions": ["arn:aws:sns:us-east-1:123456789012:db-vertical-scaling"],
        "InsufficientDataActions": [],
        "StateValue": "OK",
        "MetricName": "DatabaseConnections",
        "Namespace": "AWS/RDS",
        "Statistic": "Average",
        "Dimensions": [{"Name": "DBInstanceIdentifier", "Value": instance_id}],
        "Period": 60,
        "EvaluationPeriods": 2,
        "Threshold": threshold,
        "ComparisonOperator": "GreaterThanOrEqualToThreshold",
        "TreatMissingData": "missing",
    }


def make_trigger_body(instance_id: str, message_id: str = "msg-0001") -> str:
    """SQS body of an SNS-delivered CloudWatch alarm naming the instance."""
    alarm = {
        "AlarmName": f"{instance_id}-memory",
        "AlarmDescription": "Freeable memory below cache headroom",
        "AWSAccountId": "123456789012",
        "NewStateValue": "ALARM",
        "NewStateReason": "Threshold Crossed",
        "StateChangeTime": "2024-01-01T00:00:00.000+0000",
        "Region": "US East (N. Virginia)",
        "OldStateValue": "OK",
        "Trigger": {
            "MetricName": "FreeableMemory",
            "Namespace": "AWS/RDS",
            "StatisticType": "Statistic",
            "Statistic": "AVERAGE",
            "Unit": None,
            "Dimensions": [{"value": instance_id, "name": "DBInstanceIdentifier"}],
            "Period": 60,
            "EvaluationPeriods": 3,
            "ComparisonOperator": "LessThanThreshold",
            "Threshold": 0.0,
        },
    }
    return json.dumps(
        {
            "Type": "Notification",
            "MessageId": message_id,
            "TopicArn": "arn:aws:sns:us-east-1:123456789012:db-vertical-scaling",
            "Subject": f'ALARM: "{instance_id}-memory"',
            "Message": json.dumps(alarm),
        }
    )


def make_sqs_client(*bodies: str) -> MagicMock:
    """SQS client mock returning the given bodies, then an empty queue."""
    client = MagicMock()
    responses = [
        {
            "Messages": [
                {
                    "MessageId": f"sqs-{index}",
                    "ReceiptHandle": f"receipt-{index}",
                    "Body": body,
                }
            ]
        }
        for index, body in enumerate(bodies)
    ]
    responses.append({})
    client.receive_message.side_effect = responses
    return client


@pytest.fixture
def mock_notifier() -> AsyncMock:
    """Notifier whose sends always succeed."""
    notifier = AsyncMock(spec=MattermostNotifier)
    notifier.send_success.return_value = True
    notifier.send_error.return_value = True
    return notifier


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest.fixture
def rds_factory():
    """Build a FakeRDSClient."""
    return FakeRDSClient


@pytest.fixture
def cloudwatch_factory():
    """Build a FakeCloudWatchClient."""
    return FakeCloudWatchClient


@pytest.fixture
def alarm_factory():
    """Build described alarms: ``alarm_factory.memory(id)`` and ``.connections(id)``."""
    return SimpleNamespace(memory=make_memory_alarm, connections=make_connections_alarm)


@pytest.fixture
def trigger_body():
    """Build SQS bodies carrying an alarm for an instance."""
    return make_trigger_body


@pytest.fixture
def sqs_factory():
    """Build an SQS client mock from message bodies."""
    return make_sqs_client


@pytest.fixture
def aws_error():
    """Build botocore ClientErrors."""
    return client_error
