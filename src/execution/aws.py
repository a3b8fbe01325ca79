"""
AWS session and client construction.

Responsibilities:
- Build one boto3 session from explicit settings (default chain otherwise)
- Create the RDS, CloudWatch and SQS clients the scaler talks to
"""

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from src.scaling.errors import ConfigurationError
from src.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AWSConfig:
    """Configuration for AWS clients."""

    # AWS credentials (optional, uses default chain if not provided)
    region: str = "us-east-1"
    profile: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None

    # Client settings
    max_attempts: int = 3
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class AWSClients:
    """The boto3 clients used by one invocation."""

    rds: Any
    cloudwatch: Any
    sqs: Any


def create_session(aws_config: AWSConfig) -> boto3.Session:
    """Create a boto3 session honouring profile or static credentials."""
    session_kwargs: dict[str, Any] = {"region_name": aws_config.region}

    if aws_config.profile:
        session_kwargs["profile_name"] = aws_config.profile
    elif aws_config.access_key_id and aws_config.secret_access_key:
        session_kwargs["aws_access_key_id"] = aws_config.access_key_id
        session_kwargs["aws_secret_access_key"] = aws_config.secret_access_key
        if aws_config.session_token:
            session_kwargs["aws_session_token"] = aws_config.session_token

    return boto3.Session(**session_kwargs)


def create_clients(aws_config: AWSConfig) -> AWSClients:
    """
    Create the AWS clients.

    Raises:
        ConfigurationError: the session could not be created (e.g. unknown profile)
    """
    client_config = Config(
        retries={"max_attempts": aws_config.max_attempts, "mode": "standard"},
        connect_timeout=aws_config.connect_timeout_seconds,
        read_timeout=aws_config.read_timeout_seconds,
    )

    try:
        session = create_session(aws_config)
        clients = AWSClients(
            rds=session.client("rds", config=client_config),
            cloudwatch=session.client("cloudwatch", config=client_config),
            sqs=session.client("sqs", config=client_config),
        )
    except BotoCoreError as e:
        raise ConfigurationError(f"unable to initiate AWS session: {e}") from e

    logger.info("Connected to AWS", region=aws_config.region)
    return clients
