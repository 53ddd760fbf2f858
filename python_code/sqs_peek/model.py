"""
Data models for the SQS drain tool.

This module defines the core data structures shared between the coordinator
and its workers. Using dataclasses and TypedDicts keeps the data contracts
explicit and statically checked by mypy.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from typing_extensions import NotRequired, TypedDict


class Message(TypedDict):
    """
    A single SQS message exactly as returned by `receive_message`.

    The drain never mutates a message once received; it is written to the
    snapshot in full and only its identifier and receipt handle are read back
    during the purge.
    """

    MessageId: str
    ReceiptHandle: str
    MD5OfBody: str
    Body: str
    Attributes: NotRequired[Dict[str, str]]
    MD5OfMessageAttributes: NotRequired[str]
    MessageAttributes: NotRequired[Dict[str, Any]]


class MessageCollection:
    """
    An ordered, append-only list of messages shared by all pollers.

    Each append holds the lock for the duration of a single `list.append`, so
    concurrent pollers never lose an update. The order reflects whichever
    poller reached the lock first, not the order of the queue.
    """

    def __init__(self) -> None:
        self._items: List[Message] = []
        self._lock = threading.Lock()

    def append(self, message: Message) -> None:
        with self._lock:
            self._items.append(message)

    def snapshot(self) -> List[Message]:
        """Returns a point-in-time copy of the collected messages."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())


@dataclass
class DrainSession:
    """
    The run state for one invocation of the tool.

    Attributes:
        queue: The target queue, given as a URL, an ARN or a bare queue name.
        file_name: Where the snapshot is written.
        region: AWS region of the queue.
        profile: Shared-credentials profile; None uses the default chain.
        purge: If True, every drained message is deleted after the snapshot.
        worker_count: Number of pollers (and purge consumers). Detected from
                      the host when the coordinator runs if left unset.
        endpoint_url: Optional endpoint override (e.g. LocalStack).
        environment: Dimension value attached to the emitted metrics.
        queue_url: The resolved queue URL, filled in by the coordinator.
        messages: The shared collection filled by the pollers.
        cancelled: Set by the coordinator after the first worker failure so
                   the remaining workers stop before their next remote call.
    """

    queue: str
    file_name: str = "queue_messages.json"
    region: Optional[str] = None
    profile: Optional[str] = None
    purge: bool = False
    worker_count: Optional[int] = None
    endpoint_url: Optional[str] = None
    environment: str = "dev"
    queue_url: Optional[str] = None
    messages: MessageCollection = field(default_factory=MessageCollection)
    cancelled: threading.Event = field(default_factory=threading.Event)


@dataclass
class PollerResult:
    """What a single poller observed before it stopped."""

    worker_id: int
    receive_calls: int = 0
    messages_received: int = 0


@dataclass
class ConsumerResult:
    """What a single purge consumer deleted."""

    worker_id: int
    delete_calls: int = 0
    entries_deleted: int = 0


@dataclass
class DrainReport:
    """
    The aggregated outcome of a run, returned by the coordinator.

    Attributes:
        queue_url: The resolved URL the run drained.
        file_name: The snapshot destination.
        worker_count: How many pollers (and consumers) ran.
        pollers: Per-poller results, in worker order.
        consumers: Per-consumer results; empty unless a purge ran.
    """

    queue_url: str
    file_name: str
    worker_count: int
    pollers: List[PollerResult] = field(default_factory=list)
    consumers: List[ConsumerResult] = field(default_factory=list)

    @property
    def messages_drained(self) -> int:
        return sum(p.messages_received for p in self.pollers)

    @property
    def receive_calls(self) -> int:
        return sum(p.receive_calls for p in self.pollers)

    @property
    def messages_purged(self) -> int:
        return sum(c.entries_deleted for c in self.consumers)

    @property
    def delete_calls(self) -> int:
        return sum(c.delete_calls for c in self.consumers)
