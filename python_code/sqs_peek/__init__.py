"""Drain an SQS queue into a JSON snapshot and optionally purge it."""

__version__ = "0.1.0"
