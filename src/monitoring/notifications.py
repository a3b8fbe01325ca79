"""
Mattermost notifications for vertical scaling outcomes.

Success messages go to the notifications hook, failures to the alerts hook.
Sending is fire-and-forget: a failed post is logged and reported as False,
never raised.
"""

from datetime import UTC, datetime
from typing import Any

import httpx

from src.scaling.errors import (
    ErrorCategory,
    FailoverError,
    error_category,
    format_error_chain,
    root_scaling_error,
)
from src.scaling.models import DatabaseInstance
from src.utils.logging import get_logger

logger = get_logger(__name__)

SUCCESS_COLOR = "#006400"
ERROR_COLOR = "#FF0000"

DEFAULT_SUCCESS_MESSAGE = "Vertical scaling was successfully handled"
DEFAULT_ERROR_MESSAGE = "The Database Factory vertical scaling failed"


def topology_warning(error: BaseException) -> str:
    root = root_scaling_error(error)
    if isinstance(root, FailoverError) and root.class_changed:
        return (
            "Instance class changed but failover did not complete. "
            "Check the cluster writer manually before retrying."
        )
    return "Failover did not complete. Check the cluster writer manually before retrying."


class MattermostNotifier:
    """Posts Slack-style attachments to Mattermost incoming webhooks."""

    def __init__(
        self,
        notifications_hook: str,
        alerts_hook: str,
        environment: str,
        username: str = "Database Factory",
        icon_url: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            notifications_hook: Webhook URL for success messages
            alerts_hook: Webhook URL for error messages
            environment: Deployment environment shown in every message
            username: Display name of the posting bot
            icon_url: Avatar of the posting bot
            timeout_seconds: HTTP timeout per post
        """
        self.notifications_hook = notifications_hook
        self.alerts_hook = alerts_hook
        self.environment = environment
        self.username = username
        self.icon_url = icon_url
        self.timeout_seconds = timeout_seconds

    def build_payload(self, color: str, fields: list[dict[str, Any]]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "username": self.username,
            "attachments": [
                {
                    "color": color,
                    "fields": fields,
                    "footer": "Aurora Vertical Scaler",
                    "ts": int(datetime.now(UTC).timestamp()),
                }
            ],
        }
        if self.icon_url:
            payload["icon_url"] = self.icon_url
        return payload

    def success_payload(
        self,
        instance: DatabaseInstance,
        new_class: str,
        message: str = DEFAULT_SUCCESS_MESSAGE,
    ) -> dict[str, Any]:
        return self.build_payload(
            SUCCESS_COLOR,
            [
                {"title": message, "short": False},
                {"title": "DBInstanceIdentifier", "value": instance.instance_id, "short": True},
                {"title": "DBClusterIdentifier", "value": instance.cluster_id, "short": True},
                {"title": "UpgradedDBClass", "value": new_class, "short": True},
                {"title": "IsClusterWriter", "value": str(instance.is_writer).lower(), "short": True},
                {"title": "Environment", "value": self.environment, "short": True},
            ],
        )

    def error_payload(
        self,
        error: BaseException,
        message: str = DEFAULT_ERROR_MESSAGE,
    ) -> dict[str, Any]:
        category = error_category(error)
        fields = [
            {"title": message, "short": False},
            {"title": "Error Message", "value": format_error_chain(error), "short": False},
            {"title": "Error Category", "value": category.value, "short": True},
            {"title": "Environment", "value": self.environment, "short": True},
        ]
        if category == ErrorCategory.PARTIAL_TOPOLOGY:
            fields.insert(1, {"title": "DANGER", "value": topology_warning(error), "short": False})
        return self.build_payload(ERROR_COLOR, fields)

    async def send_success(
        self,
        instance: DatabaseInstance,
        new_class: str,
        message: str = DEFAULT_SUCCESS_MESSAGE,
    ) -> bool:
        """Report a completed scaling step."""
        return await self._send(
            self.notifications_hook, self.success_payload(instance, new_class, message)
        )

    async def send_error(
        self,
        error: BaseException,
        message: str = DEFAULT_ERROR_MESSAGE,
    ) -> bool:
        """Report a failed invocation."""
        return await self._send(self.alerts_hook, self.error_payload(error, message))

    async def _send(self, webhook_url: str, payload: dict[str, Any]) -> bool:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    webhook_url,
                    json=payload,
                    headers={"X-Custom-Header": "aws-sns"},
                    timeout=self.timeout_seconds,
                )
                response.raise_for_status()
        except Exception as e:
            logger.error(
                "Failed to send Mattermost notification",
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return True
