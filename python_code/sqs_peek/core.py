"""
Worker logic for the SQS drain tool.

These functions hold the per-worker behavior of the drain and the purge. They
receive every dependency (the SQS client, the shared collection, the
cancellation event and the Powertools logger) from the coordinator in app.py,
so they can be unit-tested in isolation against fakes or moto.
"""

import queue
import threading
from typing import Any, Dict, Iterator, List, Optional, Sequence, cast

from aws_lambda_powertools import Logger
from aws_lambda_powertools.metrics import EphemeralMetrics, MetricUnit
from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_sqs.client import SQSClient
from mypy_boto3_sqs.type_defs import DeleteMessageBatchRequestEntryTypeDef

from .exceptions import DeleteError, ReceiveError
from .model import ConsumerResult, Message, MessageCollection, PollerResult

# Hard SQS limit on messages per receive_message and entries per delete_message_batch.
MAX_BATCH_SIZE = 10

# A poller stops after this many consecutive calls that added nothing.
EMPTY_RECEIVES_BEFORE_EXIT = 2

# How often a blocked purge worker wakes up to check for cancellation.
CHANNEL_POLL_SECONDS = 0.5

METRICS_NAMESPACE = "SqsPeek"

# Run summary keys reported as Count metrics.
METRIC_NAMES = {
    "messages_drained": "MessagesDrained",
    "messages_purged": "MessagesPurged",
    "receive_calls": "ReceiveCalls",
    "delete_calls": "DeleteCalls",
}


def poll_queue(
    sqs_client: SQSClient,
    queue_url: str,
    collection: MessageCollection,
    worker_id: int,
    cancelled: threading.Event,
    logger: Logger,
) -> PollerResult:
    """
    Receives batches from the queue into the shared collection until this
    worker sees no progress.

    The stop decision is local to the worker: two consecutive receive calls
    that add nothing to its running total end the loop, even if other workers
    are still finding messages. An empty response from SQS only means nothing
    was available at that instant, so one pass may leave messages behind;
    callers that need an exhaustive drain must run the tool again.

    Args:
        sqs_client: The shared boto3 SQS client.
        queue_url: The URL of the queue being drained.
        collection: The collection every poller appends to.
        worker_id: Index of this poller, used for logging.
        cancelled: Set by the coordinator when another worker has failed.
        logger: The Powertools Logger instance for structured logging.

    Returns:
        A PollerResult with this worker's call and message counts.

    Raises:
        ReceiveError: If any receive_message call fails.
    """
    result = PollerResult(worker_id=worker_id)
    empty_streak = 0

    while empty_streak < EMPTY_RECEIVES_BEFORE_EXIT:
        if cancelled.is_set():
            logger.info("Poller cancelled.", extra={"worker": worker_id})
            break

        try:
            response = sqs_client.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=MAX_BATCH_SIZE,
                AttributeNames=["All"],
                MessageAttributeNames=["All"],
            )
        except (ClientError, BotoCoreError) as e:
            raise ReceiveError(f"receive_message failed on worker {worker_id}: {e}") from e
        result.receive_calls += 1

        messages = cast(List[Message], response.get("Messages", []))
        for message in messages:
            collection.append(message)

        previous_total = result.messages_received
        result.messages_received += len(messages)
        if result.messages_received == previous_total:
            empty_streak += 1
        else:
            empty_streak = 0

    logger.debug(
        "Poller finished.",
        extra={
            "worker": worker_id,
            "receive_calls": result.receive_calls,
            "messages_received": result.messages_received,
        },
    )
    return result


def to_delete_entry(message: Message) -> DeleteMessageBatchRequestEntryTypeDef:
    """Builds the delete_message_batch entry for one received delivery."""
    return {"Id": message["MessageId"], "ReceiptHandle": message["ReceiptHandle"]}


def chunked(items: Sequence[Any], size: int = MAX_BATCH_SIZE) -> Iterator[Sequence[Any]]:
    """Yields consecutive slices of at most `size` items, in order."""
    if size <= 0:
        raise ValueError("Chunk size must be positive.")
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _put(channel: "queue.Queue[Optional[Message]]", item: Optional[Message], cancelled: threading.Event) -> bool:
    """Blocks until the item is handed over; returns False if the run was cancelled first."""
    while True:
        try:
            channel.put(item, timeout=CHANNEL_POLL_SECONDS)
            return True
        except queue.Full:
            if cancelled.is_set():
                return False


def purge_producer(
    messages: Sequence[Message],
    channel: "queue.Queue[Optional[Message]]",
    consumer_count: int,
    cancelled: threading.Event,
) -> int:
    """
    Streams every drained message onto the purge channel, in collection order,
    then closes the channel with one `None` sentinel per consumer.

    Returns:
        The number of messages handed to consumers.
    """
    sent = 0
    for message in messages:
        if not _put(channel, message, cancelled):
            return sent
        sent += 1
    for _ in range(consumer_count):
        if not _put(channel, None, cancelled):
            break
    return sent


def delete_batch(
    sqs_client: SQSClient,
    queue_url: str,
    entries: Sequence[DeleteMessageBatchRequestEntryTypeDef],
) -> None:
    """
    Issues a single delete_message_batch call.

    The per-entry `Failed` list in the response is not inspected.

    Raises:
        DeleteError: If the call itself fails.
    """
    try:
        sqs_client.delete_message_batch(QueueUrl=queue_url, Entries=list(entries))
    except (ClientError, BotoCoreError) as e:
        raise DeleteError(f"delete_message_batch failed for {len(entries)} entries: {e}") from e


def purge_consumer(
    sqs_client: SQSClient,
    queue_url: str,
    channel: "queue.Queue[Optional[Message]]",
    worker_id: int,
    cancelled: threading.Event,
    logger: Logger,
) -> ConsumerResult:
    """
    Drains the purge channel into a private list of delete entries, then
    deletes them in batches of at most 10, one call at a time.

    Each message taken from the channel belongs to this consumer alone, so the
    entry list needs no locking. Nothing is retried.

    Args:
        sqs_client: The shared boto3 SQS client.
        queue_url: The URL of the queue being purged.
        channel: The queue fed by `purge_producer`.
        worker_id: Index of this consumer, used for logging.
        cancelled: Set by the coordinator when another worker has failed.
        logger: The Powertools Logger instance for structured logging.

    Returns:
        A ConsumerResult with this worker's call and entry counts.

    Raises:
        DeleteError: If any delete_message_batch call fails.
    """
    result = ConsumerResult(worker_id=worker_id)
    entries: List[DeleteMessageBatchRequestEntryTypeDef] = []

    while True:
        try:
            item = channel.get(timeout=CHANNEL_POLL_SECONDS)
        except queue.Empty:
            if cancelled.is_set():
                return result
            continue
        if item is None:
            break
        entries.append(to_delete_entry(item))

    for chunk in chunked(entries, MAX_BATCH_SIZE):
        if cancelled.is_set():
            logger.info("Purge consumer cancelled.", extra={"worker": worker_id})
            break
        delete_batch(sqs_client, queue_url, chunk)
        result.delete_calls += 1
        result.entries_deleted += len(chunk)

    logger.debug(
        "Purge consumer finished.",
        extra={
            "worker": worker_id,
            "delete_calls": result.delete_calls,
            "entries_deleted": result.entries_deleted,
        },
    )
    return result


def emit_metrics(environment: str, status: str, payload: Dict[str, Any], logger: Logger) -> None:
    """
    Flushes the run summary to stdout as a CloudWatch Embedded Metric Format
    (EMF) document.

    Args:
        environment: Value of the 'Environment' dimension.
        status: "Success" or "Failure", attached as metadata.
        payload: Run details; known counters become metrics and every other
                 field is attached as metadata.
        logger: The Powertools Logger instance for structured logging.
    """
    metrics = EphemeralMetrics(namespace=METRICS_NAMESPACE)
    metrics.add_dimension(name="Environment", value=environment)

    for key, name in METRIC_NAMES.items():
        metrics.add_metric(name=name, unit=MetricUnit.Count, value=payload.get(key, 0))
    if "latency_ms" in payload:
        metrics.add_metric(name="RunLatencyMs", unit=MetricUnit.Milliseconds, value=payload["latency_ms"])

    metrics.add_metadata(key="Status", value=status)
    for key, value in payload.items():
        if key not in METRIC_NAMES and key != "latency_ms":
            metrics.add_metadata(key=key, value=value)

    metrics.flush_metrics()
    logger.debug("Run metrics flushed.", extra={"status": status})
