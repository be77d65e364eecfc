"""boto3 clients shared by the DynamoDB and S3 adapters.

One cached client (or resource) per service and process. botocore's own
retry layer stays on in adaptive mode; the application retry wrapper in
``catalog.resilience`` sits above it and only re-drives signals it knows are
transient.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from ..settings import settings

_TIMEOUTS: dict[str, tuple[int, int]] = {
    # service: (connect_timeout, read_timeout) in seconds
    "dynamodb": (2, 10),
    "s3": (2, 12),
}


def _config(service: str) -> Config:
    connect, read = _TIMEOUTS[service]
    kwargs: dict[str, Any] = {
        "retries": {"max_attempts": 3, "mode": "adaptive"},
        "connect_timeout": connect,
        "read_timeout": read,
    }
    if service == "s3":
        # Presigned PUT URLs must be SigV4.
        kwargs["signature_version"] = "s3v4"
    return Config(**kwargs)


def _session_kwargs(service: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"region_name": settings.aws_region, "config": _config(service)}
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return kwargs


@lru_cache(maxsize=1)
def dynamodb_resource():
    return boto3.resource("dynamodb", **_session_kwargs("dynamodb"))


@lru_cache(maxsize=1)
def dynamodb_client():
    # TransactWriteItems and BatchWriteItem go through the low-level client.
    return boto3.client("dynamodb", **_session_kwargs("dynamodb"))


def table_resource(table_name: str):
    return dynamodb_resource().Table(table_name)


@lru_cache(maxsize=1)
def s3_client():
    return boto3.client("s3", **_session_kwargs("s3"))
