from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig

from .cli_shared import STORAGE_DOMAIN, OpError


def endpoint_for_account(account_id: str) -> str:
    return f"https://{account_id}.{STORAGE_DOMAIN}"


def account_for_endpoint(endpoint: str) -> str:
    text = str(endpoint or "").strip()
    if "//" not in text:
        text = f"https://{text}"
    host = urlparse(text).hostname or ""
    return host.split(".")[0]


def is_storage_endpoint(endpoint: str) -> bool:
    return str(endpoint or "").strip().rstrip("/").endswith(f".{STORAGE_DOMAIN}")


def make_client(*, account_id: str, access_key_id: str, secret_access_key: str) -> Any:
    session = boto3.session.Session()
    try:
        return session.client(
            "s3",
            region_name="auto",
            endpoint_url=endpoint_for_account(account_id),
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(signature_version="s3v4"),
        )
    except ValueError as e:
        raise OpError(f"cannot build a client for account {account_id!r}: {e}") from e
