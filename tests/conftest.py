"""Shared fixtures: a quiet Powertools logger and fake AWS credentials for moto."""

from __future__ import annotations

import io

import pytest
from aws_lambda_powertools import Logger


@pytest.fixture
def logger() -> Logger:
    return Logger(service="sqs-peek-test", level="DEBUG", stream=io.StringIO())


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)
