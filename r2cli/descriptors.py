from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from botocore import xform_name

from .cli_shared import UsageError


@dataclass(frozen=True)
class Verb:
    name: str
    operation: str
    help: str
    returns_body: bool = False

    @property
    def method_name(self) -> str:
        return xform_name(self.operation)


VERBS: dict[str, Verb] = {
    v.name: v
    for v in (
        Verb("list-buckets", "ListBuckets", "List the buckets currently created on your account."),
        Verb("create-bucket", "CreateBucket", "Create a new R2 bucket."),
        Verb("delete-bucket", "DeleteBucket", "Delete an empty R2 bucket."),
        Verb("head-bucket", "HeadBucket", "Check if an R2 bucket exists."),
        Verb("get-bucket-encryption", "GetBucketEncryption", "Get the encryption currently set on the R2 bucket."),
        Verb("get-bucket-location", "GetBucketLocation", "Get the location of a R2 bucket."),
        Verb("get-bucket-cors", "GetBucketCors", "Get the CORS rules associated with this R2 bucket."),
        Verb("delete-bucket-cors", "DeleteBucketCors", "Delete the CORS rules for this R2 bucket."),
        Verb(
            "list-objects-v1",
            "ListObjects",
            "List objects using the deprecated S3 V1 API (useful for testing older S3 tools).",
        ),
        Verb("list-objects", "ListObjectsV2", "List objects on this R2 bucket using the recommended S3 API."),
        Verb("head-object", "HeadObject", "Check if the object exists in the R2 bucket."),
        Verb("get-object", "GetObject", "Retrieve the object from the R2 bucket.", returns_body=True),
        Verb("put-object", "PutObject", "Upload a local file as an object in the R2 bucket."),
        Verb("delete-object", "DeleteObject", "Delete the object from the R2 bucket."),
    )
}


def presign_method(operation: str) -> str:
    """HTTP method a presigned URL for `operation` is meant to be used with.

    Creation verbs presign as GET: the signed action is something to fetch.
    """
    if operation.startswith(("Put", "Create")):
        return "GET"
    if operation.startswith("Delete"):
        return "DELETE"
    if operation.startswith("Head"):
        return "HEAD"
    return "GET"


def parse_sign_headers(pairs: Iterable[str] | None) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for raw in pairs or []:
        key, sep, value = str(raw).partition("=")
        key = key.strip()
        if not sep or not key:
            raise UsageError(f"invalid --sign-header {raw!r} (expected key=value)")
        out.append((key, value))
    return out


def merge_headers(base: Mapping[str, str] | None, sign_headers: Iterable[str] | None) -> dict[str, str]:
    merged = dict(base or {})
    for key, value in parse_sign_headers(sign_headers):
        merged[key] = value
    return merged


def parse_timestamp(raw: str | None, *, option: str) -> datetime.datetime | None:
    if raw is None or not str(raw).strip():
        return None
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        ts = datetime.datetime.fromisoformat(text)
    except ValueError as e:
        raise UsageError(f"invalid {option} {raw!r} (expected an ISO-8601 date)") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


@dataclass(frozen=True)
class RequestDescriptor:
    verb: Verb
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    upload_path: Path | None = None

    @property
    def operation(self) -> str:
        return self.verb.operation

    @property
    def method_name(self) -> str:
        return self.verb.method_name

    @property
    def returns_body(self) -> bool:
        return self.verb.returns_body

    @property
    def key(self) -> str | None:
        val = self.params.get("Key")
        return str(val) if val is not None else None


class RequestBuilder:
    """Collects parameters and headers for one request.

    `build()` is the single finalization step; the descriptor it returns is
    immutable, so headers cannot change once dispatch begins.
    """

    def __init__(self, verb: str | Verb) -> None:
        if isinstance(verb, str):
            if verb not in VERBS:
                raise UsageError(f"unknown verb: {verb}")
            verb = VERBS[verb]
        self.verb = verb
        self._params: dict[str, Any] = {}
        self._headers: dict[str, str] = {}
        self._upload_path: Path | None = None

    def param(self, name: str, value: Any) -> "RequestBuilder":
        if value is not None:
            self._params[name] = value
        return self

    def params(self, **values: Any) -> "RequestBuilder":
        for name, value in values.items():
            self.param(name, value)
        return self

    def header(self, name: str, value: str | None) -> "RequestBuilder":
        if value is not None:
            self._headers[name] = str(value)
        return self

    def headers(self, values: Mapping[str, str] | None) -> "RequestBuilder":
        for name, value in (values or {}).items():
            self.header(name, value)
        return self

    def sign_headers(self, pairs: Sequence[str] | None) -> "RequestBuilder":
        self._headers = merge_headers(self._headers, pairs)
        return self

    def upload_from(self, path: Path | None) -> "RequestBuilder":
        self._upload_path = path
        return self

    def build(self) -> RequestDescriptor:
        return RequestDescriptor(
            verb=self.verb,
            params=MappingProxyType(dict(self._params)),
            headers=MappingProxyType(dict(self._headers)),
            upload_path=self._upload_path,
        )


def _conditional(
    builder: RequestBuilder,
    *,
    is_etag: str | None,
    not_etag: str | None,
    uploaded_before: str | None,
    uploaded_after: str | None,
    byte_range: str | None,
) -> RequestBuilder:
    return builder.params(
        Range=byte_range,
        IfMatch=is_etag,
        IfNoneMatch=not_etag,
        IfModifiedSince=parse_timestamp(uploaded_after, option="--uploaded-after"),
        IfUnmodifiedSince=parse_timestamp(uploaded_before, option="--uploaded-before"),
    )


def list_buckets_request(
    *,
    prefix: str | None = None,
    start_after: str | None = None,
    continuation_token: str | None = None,
    max_keys: int | None = None,
) -> RequestBuilder:
    # R2 takes bucket listing filters as headers rather than query parameters.
    return (
        RequestBuilder("list-buckets")
        .header("cf-prefix", prefix)
        .header("cf-start-after", start_after)
        .header("cf-continuation-token", continuation_token)
        .header("cf-max-keys", str(max_keys) if max_keys is not None else None)
    )


def bucket_request(verb: str, bucket: str) -> RequestBuilder:
    return RequestBuilder(verb).param("Bucket", bucket)


def create_bucket_request(bucket: str, *, location: str | None = None) -> RequestBuilder:
    builder = bucket_request("create-bucket", bucket)
    if location is not None:
        builder.param("CreateBucketConfiguration", {"LocationConstraint": location})
    return builder


def list_objects_v1_request(
    bucket: str,
    *,
    prefix: str | None = None,
    delimiter: str | None = None,
    url_encode: bool = False,
    max_keys: int | None = None,
    marker: str | None = None,
) -> RequestBuilder:
    return bucket_request("list-objects-v1", bucket).params(
        Prefix=prefix,
        Delimiter=delimiter,
        EncodingType="url" if url_encode else None,
        MaxKeys=max_keys,
        Marker=marker,
    )


def list_objects_request(
    bucket: str,
    *,
    prefix: str | None = None,
    delimiter: str | None = None,
    url_encode: bool = False,
    max_keys: int | None = None,
    start_after: str | None = None,
    continuation_token: str | None = None,
) -> RequestBuilder:
    return bucket_request("list-objects", bucket).params(
        Prefix=prefix,
        Delimiter=delimiter,
        EncodingType="url" if url_encode else None,
        MaxKeys=max_keys,
        StartAfter=start_after,
        ContinuationToken=continuation_token,
    )


def object_request(verb: str, bucket: str, key: str) -> RequestBuilder:
    return RequestBuilder(verb).params(Bucket=bucket, Key=key)


def head_object_request(
    bucket: str,
    key: str,
    *,
    is_etag: str | None = None,
    not_etag: str | None = None,
    uploaded_before: str | None = None,
    uploaded_after: str | None = None,
    byte_range: str | None = None,
) -> RequestBuilder:
    return _conditional(
        object_request("head-object", bucket, key),
        is_etag=is_etag,
        not_etag=not_etag,
        uploaded_before=uploaded_before,
        uploaded_after=uploaded_after,
        byte_range=byte_range,
    )


def get_object_request(
    bucket: str,
    key: str,
    *,
    is_etag: str | None = None,
    not_etag: str | None = None,
    uploaded_before: str | None = None,
    uploaded_after: str | None = None,
    byte_range: str | None = None,
    response_cache_control: str | None = None,
    response_content_disposition: str | None = None,
    response_content_encoding: str | None = None,
    response_content_language: str | None = None,
    response_content_type: str | None = None,
    response_expires: str | None = None,
) -> RequestBuilder:
    builder = _conditional(
        object_request("get-object", bucket, key),
        is_etag=is_etag,
        not_etag=not_etag,
        uploaded_before=uploaded_before,
        uploaded_after=uploaded_after,
        byte_range=byte_range,
    )
    return builder.params(
        ResponseCacheControl=response_cache_control,
        ResponseContentDisposition=response_content_disposition,
        ResponseContentEncoding=response_content_encoding,
        ResponseContentLanguage=response_content_language,
        ResponseContentType=response_content_type,
        ResponseExpires=parse_timestamp(response_expires, option="--response-expires"),
    )


def put_object_request(
    bucket: str,
    key: str,
    *,
    source: Path | None = None,
    content_type: str | None = None,
    cache_control: str | None = None,
    content_disposition: str | None = None,
) -> RequestBuilder:
    return (
        object_request("put-object", bucket, key)
        .params(
            ContentType=content_type,
            CacheControl=cache_control,
            ContentDisposition=content_disposition,
        )
        .upload_from(source)
    )
