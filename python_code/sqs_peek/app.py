"""
Drain coordinator for the SQS drain tool.

This module orchestrates a single run. Its responsibilities include:
  - Detecting the worker count from the host.
  - Building (or accepting) the shared SQS client and resolving the queue URL.
  - Running the poller pool and waiting for every poller to finish.
  - Handing the aggregated collection to the snapshot writer.
  - Running the purge pipeline when deletion is requested.
  - Emitting the final run metrics.

Worker failures are never handled inside the workers. The first exception a
worker raises reaches the coordinator through its future; the coordinator then
sets the session's cancellation event, waits for the remaining workers to
unwind, skips every later stage and re-raises.
"""

import os
import queue
import sys
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

from aws_lambda_powertools import Logger
from mypy_boto3_sqs import SQSClient

from . import clients, core, writer
from .model import ConsumerResult, DrainReport, DrainSession, Message, PollerResult

SERVICE_NAME = "sqs-peek"


def build_logger(level: str = "INFO") -> Logger:
    """Returns the run's structured logger; logs go to stderr so stdout carries only the EMF metrics."""
    return Logger(service=SERVICE_NAME, level=level, stream=sys.stderr)


def detect_worker_count() -> int:
    """Returns the host's logical CPU count, treating an unknown or non-positive count as 1."""
    count = os.cpu_count()
    if not count or count <= 0:
        return 1
    return count


def _wait_all(futures: Sequence[Future], session: DrainSession) -> List[Any]:
    """
    Blocks until every future completes and returns their results in order.

    If any worker raises, the cancellation event is set, the remaining workers
    are awaited, and the first observed exception is re-raised.
    """
    done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
    failed = [f for f in futures if f in done and f.exception() is not None]
    if failed:
        session.cancelled.set()
        wait(not_done)
        raise failed[0].exception()  # type: ignore[misc]
    return [f.result() for f in futures]


def run_pollers(session: DrainSession, sqs_client: SQSClient, logger: Logger) -> List[PollerResult]:
    """Starts `worker_count` pollers against the resolved queue and waits for all of them."""
    worker_count = session.worker_count or 1
    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="poller") as executor:
        futures = [
            executor.submit(
                core.poll_queue,
                sqs_client,
                session.queue_url,
                session.messages,
                worker_id,
                session.cancelled,
                logger,
            )
            for worker_id in range(worker_count)
        ]
        return _wait_all(futures, session)


def run_purge(
    session: DrainSession,
    messages: Sequence[Message],
    sqs_client: SQSClient,
    logger: Logger,
) -> Tuple[List[ConsumerResult], int]:
    """
    Deletes every message in `messages` using one producer and `worker_count`
    consumers connected by a single-slot channel.

    Returns:
        The per-consumer results and the number of messages the producer sent.
    """
    worker_count = session.worker_count or 1
    channel: "queue.Queue[Optional[Message]]" = queue.Queue(maxsize=1)

    with ThreadPoolExecutor(max_workers=worker_count + 1, thread_name_prefix="purge") as executor:
        futures = [
            executor.submit(
                core.purge_consumer,
                sqs_client,
                session.queue_url,
                channel,
                worker_id,
                session.cancelled,
                logger,
            )
            for worker_id in range(worker_count)
        ]
        futures.append(
            executor.submit(core.purge_producer, messages, channel, worker_count, session.cancelled)
        )
        results = _wait_all(futures, session)
    return results[:-1], results[-1]


def _execute(session: DrainSession, sqs_client: Optional[SQSClient], logger: Logger) -> DrainReport:
    if sqs_client is None:
        sqs_client = clients.get_sqs_client(
            session.region,
            session.profile,
            session.endpoint_url,
            max_pool_connections=(session.worker_count or 1) + 1,
        )
    session.queue_url = clients.resolve_queue_url(sqs_client, session.queue)
    logger.info(
        "Draining queue.",
        extra={"queue_url": session.queue_url, "workers": session.worker_count},
    )

    report = DrainReport(
        queue_url=session.queue_url,
        file_name=session.file_name,
        worker_count=session.worker_count or 1,
    )
    report.pollers = run_pollers(session, sqs_client, logger)

    messages = session.messages.snapshot()
    logger.info("Receive phase complete.", extra={"messages": len(messages)})
    path = writer.write_snapshot(messages, session.file_name)
    logger.info("Snapshot written.", extra={"path": path, "messages": len(messages)})

    if session.purge:
        report.consumers, _ = run_purge(session, messages, sqs_client, logger)
        logger.info(
            "Purge complete.",
            extra={"messages": report.messages_purged, "delete_calls": report.delete_calls},
        )

    return report


def perform(
    session: DrainSession,
    sqs_client: Optional[SQSClient] = None,
    logger: Optional[Logger] = None,
) -> DrainReport:
    """
    Runs a complete drain for an already-configured session.

    This function follows these steps:
    1. Detects the worker count unless the session already carries one.
    2. Builds the SQS client (unless one is injected) and resolves the queue URL.
    3. Runs the pollers and waits until all of them have stopped.
    4. Writes the snapshot.
    5. If purge is requested, deletes every drained message and waits for it.

    On return the snapshot has been written. Any failure is re-raised after a
    Failure metric is emitted; in that case no later stage has run.

    Args:
        session: The run configuration and shared state.
        sqs_client: An optional pre-built client (used by tests).
        logger: An optional Powertools Logger; one is built if omitted.

    Returns:
        A DrainReport summarizing the run.

    Raises:
        DrainError: Any of its subclasses, naming the stage that failed.
    """
    logger = logger or build_logger()
    start_time = datetime.now(timezone.utc)
    if session.worker_count is None:
        session.worker_count = detect_worker_count()

    try:
        report = _execute(session, sqs_client, logger)
    except Exception as e:
        latency_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
        error_payload = {
            "stage": getattr(e, "stage", "unknown"),
            "error_type": type(e).__name__,
            "error_message": str(e),
            "messages_drained": len(session.messages),
            "latency_ms": latency_ms,
        }
        core.emit_metrics(session.environment, "Failure", error_payload, logger)
        logger.error("Drain failed.", extra=error_payload, exc_info=True)
        raise

    latency_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
    core.emit_metrics(
        session.environment,
        "Success",
        {
            "queue_url": report.queue_url,
            "output_file": report.file_name,
            "workers": report.worker_count,
            "messages_drained": report.messages_drained,
            "messages_purged": report.messages_purged,
            "receive_calls": report.receive_calls,
            "delete_calls": report.delete_calls,
            "latency_ms": latency_ms,
        },
        logger,
    )
    return report
