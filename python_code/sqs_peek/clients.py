"""
A factory module for creating the boto3 SQS client used by a run.

The coordinator receives either a client built here or one injected by the
caller (a moto-backed client or a fake during testing). A single client is
built per run and shared by every worker thread; boto3 clients are safe for
concurrent use.
"""

import logging
from typing import Optional

import boto3
import botocore.config
from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_sqs import SQSClient

from .exceptions import SessionError

logger = logging.getLogger(__name__)


def build_boto_config(max_pool_connections: int) -> botocore.config.Config:
    """
    Returns the botocore configuration shared by all SQS calls of a run.

    The connection pool is sized to the worker count so that every worker can
    hold a connection at once.
    """
    return botocore.config.Config(
        retries={"max_attempts": 5, "mode": "adaptive"},
        max_pool_connections=max(max_pool_connections, 1),
    )


def get_sqs_client(
    region: Optional[str],
    profile: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    max_pool_connections: int = 10,
) -> SQSClient:
    """
    Establishes an authenticated session and returns an SQS client.

    Credentials are resolved eagerly so that a missing profile or an empty
    credential chain fails here, before any worker starts.

    Args:
        region: The AWS region of the queue.
        profile: A shared-credentials profile name, or None for the default chain.
        endpoint_url: An optional endpoint override, e.g. a LocalStack URL.
        max_pool_connections: Size of the HTTP connection pool.

    Returns:
        A boto3 SQS client.

    Raises:
        SessionError: If the profile does not exist, no credentials are found,
                      or the region or endpoint URL is unusable.
    """
    try:
        session = boto3.Session(profile_name=profile, region_name=region)
        credentials = session.get_credentials()
    except BotoCoreError as e:
        raise SessionError(f"Could not create AWS session: {e}") from e

    if credentials is None:
        raise SessionError(
            f"No AWS credentials found (profile={profile or 'default chain'})."
        )

    if endpoint_url:
        logger.info(f"Using SQS endpoint override: {endpoint_url}")

    try:
        client: SQSClient = session.client(
            "sqs",
            endpoint_url=endpoint_url,
            config=build_boto_config(max_pool_connections),
        )
    except (BotoCoreError, ValueError) as e:
        raise SessionError(f"Could not create SQS client: {e}") from e
    return client


def resolve_queue_url(sqs_client: SQSClient, queue: str) -> str:
    """
    Turns a queue URL, ARN or bare name into a queue URL.

    Args:
        sqs_client: The SQS client used for the lookup.
        queue: A queue URL (returned unchanged), an ARN of the form
               ``arn:aws:sqs:<region>:<account>:<name>``, or a queue name.

    Returns:
        The queue URL.

    Raises:
        SessionError: If the identifier is malformed or the queue is not found.
    """
    if queue.startswith(("https://", "http://")):
        return queue

    lookup = {"QueueName": queue}
    if queue.startswith("arn:"):
        parts = queue.split(":")
        if len(parts) != 6 or parts[2] != "sqs" or not parts[5]:
            raise SessionError(f"Malformed SQS queue ARN: {queue!r}")
        lookup = {"QueueName": parts[5]}
        if parts[4]:
            lookup["QueueOwnerAWSAccountId"] = parts[4]

    try:
        response = sqs_client.get_queue_url(**lookup)
    except (ClientError, BotoCoreError) as e:
        raise SessionError(f"Could not resolve queue {queue!r}: {e}") from e
    return response["QueueUrl"]
