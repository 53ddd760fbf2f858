"""SQS Peek exception hierarchy. Every error here is fatal for the run."""


class DrainError(Exception):
    """Base exception for all drain failures."""

    stage = "drain"


class SessionError(DrainError):
    """Credentials could not be resolved or the queue could not be located."""

    stage = "session"


class ReceiveError(DrainError):
    """A receive_message call failed."""

    stage = "receive"


class DeleteError(DrainError):
    """A delete_message_batch call failed."""

    stage = "delete"


class SnapshotError(DrainError):
    """The collected messages could not be serialized or written."""

    stage = "snapshot"
