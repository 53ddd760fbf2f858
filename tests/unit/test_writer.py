"""Tests for the JSON snapshot writer."""

from __future__ import annotations

import base64
import json
import os
import stat

import pytest

from sqs_peek.exceptions import SnapshotError
from sqs_peek.writer import serialize_messages, write_snapshot
from tests.fakes import make_message


def test_writes_every_field_of_every_message(tmp_path):
    messages = [make_message(n) for n in range(3)]
    path = write_snapshot(messages, str(tmp_path / "queue_messages.json"))

    with open(path) as f:
        assert json.load(f) == messages


def test_returns_absolute_path_and_sets_mode(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = write_snapshot([make_message(1)], "snap.json")
    assert os.path.isabs(path)
    assert os.path.samefile(path, tmp_path / "snap.json")
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o644


def test_empty_collection_writes_empty_array(tmp_path):
    path = write_snapshot([], str(tmp_path / "empty.json"))
    with open(path) as f:
        assert json.load(f) == []


def test_overwrites_existing_file_and_leaves_no_temp_files(tmp_path):
    target = tmp_path / "out.json"
    target.write_text("stale")
    write_snapshot([make_message(2)], str(target))

    assert json.loads(target.read_text())[0]["MessageId"] == "msg-00002"
    assert sorted(os.listdir(tmp_path)) == ["out.json"]


def test_binary_attributes_are_base64_encoded():
    message = make_message(3)
    message["MessageAttributes"] = {"blob": {"DataType": "Binary", "BinaryValue": b"\x00\x01"}}
    rendered = json.loads(serialize_messages([message]))
    assert rendered[0]["MessageAttributes"]["blob"]["BinaryValue"] == base64.b64encode(b"\x00\x01").decode()


def test_unserializable_value_is_snapshot_error():
    message = make_message(4)
    message["Attributes"] = {"when": object()}
    with pytest.raises(SnapshotError):
        serialize_messages([message])


def test_missing_directory_is_snapshot_error(tmp_path):
    with pytest.raises(SnapshotError) as exc_info:
        write_snapshot([make_message(5)], str(tmp_path / "nope" / "out.json"))
    assert exc_info.value.stage == "snapshot"
