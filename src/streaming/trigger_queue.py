"""
SQS trigger queue for vertical scaling.

CloudWatch alarms publish to SNS, which delivers to SQS. A message body is
therefore an SNS envelope whose ``Message`` field is the alarm notification
as a JSON string. The first dimension of the alarm trigger names the DB
instance to scale.

Messages are received one at a time and deleted only after the scaling step
succeeded; anything else is left for redelivery.
"""

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.scaling.errors import MalformedTriggerError, TriggerTransportError
from src.scaling.models import ScalingEvent
from src.utils.logging import get_logger

logger = get_logger(__name__)


class AlarmDimension(BaseModel):
    """A dimension of the alarm's metric."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(default="", alias="name")
    value: str = Field(alias="value")


class AlarmTrigger(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    metric_name: str | None = Field(default=None, alias="MetricName")
    namespace: str | None = Field(default=None, alias="Namespace")
    dimensions: list[AlarmDimension] = Field(default_factory=list, alias="Dimensions")


class AlarmNotification(BaseModel):
    """CloudWatch alarm state change as published to SNS."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    alarm_name: str | None = Field(default=None, alias="AlarmName")
    new_state_value: str | None = Field(default=None, alias="NewStateValue")
    new_state_reason: str | None = Field(default=None, alias="NewStateReason")
    region: str | None = Field(default=None, alias="Region")
    trigger: AlarmTrigger = Field(alias="Trigger")


class SNSEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str | None = Field(default=None, alias="Type")
    message_id: str | None = Field(default=None, alias="MessageId")
    topic_arn: str | None = Field(default=None, alias="TopicArn")
    subject: str | None = Field(default=None, alias="Subject")
    message: str = Field(alias="Message")


def decode_trigger(body: str, receipt_handle: str) -> ScalingEvent:
    """
    Decode an SQS message body into a scaling event.

    Raises:
        MalformedTriggerError: the body is not an SNS-wrapped alarm with a dimension
    """
    try:
        envelope = SNSEnvelope.model_validate_json(body)
    except ValidationError as e:
        raise MalformedTriggerError(f"unable to decode SQS message body: {e}") from e

    try:
        alarm = AlarmNotification.model_validate_json(envelope.message)
    except ValidationError as e:
        raise MalformedTriggerError(f"unable to decode SQS message: {e}") from e

    if not alarm.trigger.dimensions:
        raise MalformedTriggerError(
            f"alarm ({alarm.alarm_name}) carries no dimensions", envelope.message_id
        )

    instance_id = alarm.trigger.dimensions[0].value
    if not instance_id:
        raise MalformedTriggerError(
            f"alarm ({alarm.alarm_name}) has an empty instance dimension", envelope.message_id
        )

    return ScalingEvent(
        instance_id=instance_id,
        receipt_handle=receipt_handle,
        message_id=envelope.message_id,
        alarm_name=alarm.alarm_name,
        new_state=alarm.new_state_value,
    )


class TriggerQueue:
    """Receive-one/delete-one access to the trigger queue."""

    def __init__(self, client: Any, queue_url: str, wait_time_seconds: int = 0) -> None:
        """
        Initialize the queue.

        Args:
            client: boto3 SQS client
            queue_url: URL of the trigger queue
            wait_time_seconds: Long-poll duration for receive
        """
        self._client = client
        self.queue_url = queue_url
        self.wait_time_seconds = wait_time_seconds

    def receive(self) -> ScalingEvent | None:
        """
        Receive at most one pending trigger.

        Returns:
            The decoded event, or None when the queue is empty

        Raises:
            TriggerTransportError: the queue could not be read
            MalformedTriggerError: the message could not be decoded
        """
        try:
            response = self._client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=self.wait_time_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise TriggerTransportError("unable to get SQS message", self.queue_url) from e

        messages = response.get("Messages") or []
        if not messages:
            return None

        message = messages[0]
        event = decode_trigger(message["Body"], message["ReceiptHandle"])

        logger.info(
            "Received scaling trigger",
            instance_id=event.instance_id,
            message_id=event.message_id,
            alarm_name=event.alarm_name,
        )
        return event

    def delete(self, event: ScalingEvent) -> None:
        """
        Acknowledge a processed trigger.

        Raises:
            TriggerTransportError: the message could not be deleted
        """
        try:
            self._client.delete_message(
                QueueUrl=self.queue_url,
                ReceiptHandle=event.receipt_handle,
            )
        except (ClientError, BotoCoreError) as e:
            raise TriggerTransportError("unable to delete SQS message", event.message_id) from e

        logger.info("Deleted scaling trigger", message_id=event.message_id)
