"""
Entry points for the Aurora vertical scaler.

- ``main()``: console script, exits non-zero when the invocation failed
- ``lambda_handler(event, context)``: AWS Lambda handler (scheduled or
  SQS-notified); the trigger itself is always pulled from the queue
"""

import asyncio
import sys
from typing import Any

from pydantic import ValidationError

from config.settings import AppSettings, NotificationSettings, ScalerSettings, load_settings
from src.execution.aws import AWSClients, AWSConfig, create_clients
from src.execution.failover import FailoverCoordinator
from src.execution.rds import RDSControlPlane
from src.execution.waiter import StateTransitionWaiter
from src.monitoring.alarms import AlarmThresholdUpdater
from src.monitoring.notifications import MattermostNotifier
from src.scaling.decision import ScalingDecisionEngine
from src.scaling.errors import ConfigurationError, format_error_chain
from src.scaling.roles import ClusterRoleResolver
from src.services.vertical_scaling import ScalingOutcome, VerticalScalingService
from src.streaming.trigger_queue import TriggerQueue
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_notifier(notifications: NotificationSettings, environment: str) -> MattermostNotifier:
    return MattermostNotifier(
        notifications_hook=str(notifications.notifications_hook),
        alerts_hook=str(notifications.alerts_hook),
        environment=environment,
        username=notifications.username,
        icon_url=notifications.icon_url,
        timeout_seconds=notifications.timeout_seconds,
    )


def build_service(settings: AppSettings, clients: AWSClients) -> VerticalScalingService:
    """Wire the scaling service from settings and AWS clients."""
    scaler = settings.scaler
    waiter_settings = settings.waiter

    rds = RDSControlPlane(clients.rds)
    decision_engine = ScalingDecisionEngine()

    return VerticalScalingService(
        trigger_queue=TriggerQueue(clients.sqs, scaler.queue_url),
        role_resolver=ClusterRoleResolver(rds, scaler.instance_name_prefix),
        decision_engine=decision_engine,
        waiter=StateTransitionWaiter(
            rds,
            start_timeout_seconds=waiter_settings.start_timeout_seconds,
            start_poll_interval_seconds=waiter_settings.start_poll_interval_seconds,
            available_timeout_seconds=waiter_settings.available_timeout_seconds,
            available_poll_interval_seconds=waiter_settings.available_poll_interval_seconds,
        ),
        failover=FailoverCoordinator(rds),
        alarm_updater=AlarmThresholdUpdater(
            clients.cloudwatch,
            memory_cache_proportion=scaler.memory_cache_proportion,
            connections_safety_percentage=scaler.connections_safety_percentage,
            memory_connections_divider=scaler.memory_connections_divider,
            decision_engine=decision_engine,
        ),
        notifier=build_notifier(settings.notifications, scaler.environment),
    )


async def report_configuration_error(error: ConfigurationError) -> None:
    """Send a configuration failure to the alerts hook when it is itself configured."""
    logger.error("Environment variables were not set", error=format_error_chain(error))
    try:
        notifications = NotificationSettings()
    except ValidationError:
        logger.error("Mattermost hooks not configured, error notification skipped")
        return

    try:
        environment = ScalerSettings().environment
    except ValidationError:
        environment = "unknown"

    await build_notifier(notifications, environment).send_error(error)


async def run(settings: AppSettings | None = None) -> ScalingOutcome:
    """Run one vertical scaling invocation."""
    outcome = ScalingOutcome()

    if settings is None:
        setup_logging()
        try:
            settings = load_settings()
        except ConfigurationError as e:
            outcome.fail(e)
            await report_configuration_error(e)
            return outcome

    setup_logging(settings.log_level, settings.log_format)

    aws = settings.aws
    try:
        clients = create_clients(
            AWSConfig(
                region=aws.region,
                profile=aws.profile,
                access_key_id=aws.access_key_id,
                secret_access_key=aws.secret_access_key,
                session_token=aws.session_token,
            )
        )
    except ConfigurationError as e:
        outcome.fail(e)
        logger.error("Failed to initiate AWS clients", error=format_error_chain(e))
        await build_notifier(settings.notifications, settings.scaler.environment).send_error(e)
        return outcome

    return await build_service(settings, clients).run_once()


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """AWS Lambda entry point."""
    outcome = asyncio.run(run())
    return outcome.to_dict()


def main() -> None:
    """Console script entry point."""
    outcome = asyncio.run(run())
    sys.exit(0 if outcome.is_success else 1)


if __name__ == "__main__":
    main()
