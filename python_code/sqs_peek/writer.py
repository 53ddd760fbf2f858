"""Writes the drained messages to a JSON snapshot file."""

import base64
import json
import os
import tempfile
from typing import Any, Sequence

from .exceptions import SnapshotError
from .model import Message

SNAPSHOT_FILE_MODE = 0o644


def _encode_default(value: Any) -> Any:
    # Binary message attributes come back from boto3 as bytes.
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_messages(messages: Sequence[Message]) -> str:
    """Renders the messages as an indented JSON array, with every field kept."""
    try:
        return json.dumps(list(messages), indent=1, default=_encode_default)
    except (TypeError, ValueError) as e:
        raise SnapshotError(f"Error in serializing messages: {e}") from e


def write_snapshot(messages: Sequence[Message], file_name: str) -> str:
    """
    Persists the snapshot to `file_name`.

    The content is written to a temporary file in the destination directory and
    renamed into place, so a failed write never leaves a partial snapshot.

    Returns:
        The absolute path of the written file.

    Raises:
        SnapshotError: If serialization or any filesystem operation fails.
    """
    content = serialize_messages(messages)
    path = os.path.abspath(file_name)
    directory = os.path.dirname(path)

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, prefix=".sqs-peek-", suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            tmp.write(content)
        os.chmod(tmp_path, SNAPSHOT_FILE_MODE)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise SnapshotError(f"Error in writing to file {file_name}: {e}") from e
    return path
