"""Shared test doubles — in-memory stand-ins for the boto3 SQS client."""

from __future__ import annotations

import hashlib
import itertools
import json
import threading
import time
from typing import Any

from botocore.exceptions import ClientError

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/drain-test"


def make_message(n: int) -> dict[str, Any]:
    body = json.dumps({"seq": n})
    return {
        "MessageId": f"msg-{n:05d}",
        "ReceiptHandle": f"receipt-{n:05d}",
        "MD5OfBody": hashlib.md5(body.encode()).hexdigest(),
        "Body": body,
        "Attributes": {"SentTimestamp": "1700000000000"},
    }


def client_error(operation: str, code: str = "InternalError") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{operation} blew up"}}, operation)


class _RecordingDeletes:
    """delete_message_batch recorder shared by both fakes."""

    def __init__(self, delete_errors: set[int] | None = None) -> None:
        self._lock = threading.Lock()
        self.delete_calls: list[list[dict[str, str]]] = []
        self._delete_errors = delete_errors or set()

    def delete_message_batch(self, QueueUrl: str, Entries: list[dict[str, str]]) -> dict[str, Any]:
        with self._lock:
            call_index = len(self.delete_calls)
            self.delete_calls.append(list(Entries))
        if call_index in self._delete_errors:
            raise client_error("DeleteMessageBatch")
        return {"Successful": [{"Id": e["Id"]} for e in Entries], "Failed": []}

    @property
    def deleted_ids(self) -> list[str]:
        return [e["Id"] for call in self.delete_calls for e in call]

    def get_queue_url(self, QueueName: str, **kwargs: Any) -> dict[str, str]:
        return {"QueueUrl": f"https://sqs.us-east-1.amazonaws.com/123456789012/{QueueName}"}


class ScriptedSQSClient(_RecordingDeletes):
    """
    Returns receive batches of pre-scripted sizes, in call order across all
    threads, then empty batches forever. Calls whose index is in
    `receive_errors` raise a ClientError instead.
    """

    def __init__(
        self,
        batch_sizes: list[int] | None = None,
        receive_errors: set[int] | None = None,
        delete_errors: set[int] | None = None,
    ) -> None:
        super().__init__(delete_errors)
        self._batch_sizes = list(batch_sizes or [])
        self._receive_errors = receive_errors or set()
        self._counter = itertools.count()
        self.receive_calls: list[dict[str, Any]] = []
        self.batches_returned: list[int] = []

    def receive_message(self, **kwargs: Any) -> dict[str, Any]:
        with self._lock:
            call_index = len(self.receive_calls)
            self.receive_calls.append(kwargs)
            if call_index in self._receive_errors:
                raise client_error("ReceiveMessage")
            size = self._batch_sizes[call_index] if call_index < len(self._batch_sizes) else 0
            messages = [make_message(next(self._counter)) for _ in range(size)]
            self.batches_returned.append(len(messages))
        if not messages:
            return {}
        return {"Messages": messages}


class InMemorySQSClient(_RecordingDeletes):
    """
    A fixed-size queue that hands out up to MaxNumberOfMessages per call and
    never redelivers. `delay` seconds are slept outside the lock on every
    receive to widen the window for interleaving between workers.
    """

    def __init__(
        self,
        size: int,
        delay: float = 0.0,
        receive_errors: set[int] | None = None,
    ) -> None:
        super().__init__()
        self._pending = [make_message(n) for n in range(size)]
        self.all_ids = {m["MessageId"] for m in self._pending}
        self._delay = delay
        self._receive_errors = receive_errors or set()
        self.receive_count = 0
        self.delivered = 0

    def receive_message(self, **kwargs: Any) -> dict[str, Any]:
        if self._delay:
            time.sleep(self._delay)
        with self._lock:
            call_index = self.receive_count
            self.receive_count += 1
            if call_index in self._receive_errors:
                raise client_error("ReceiveMessage")
            count = min(kwargs["MaxNumberOfMessages"], len(self._pending))
            batch, self._pending = self._pending[:count], self._pending[count:]
            self.delivered += len(batch)
        return {"Messages": batch}
