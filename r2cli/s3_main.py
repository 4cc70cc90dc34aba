from __future__ import annotations

from pathlib import Path

import typer

from . import runtime_core
from .cli_shared import R2_PROFILE, _env_or_none
from .descriptors import (
    VERBS,
    RequestBuilder,
    bucket_request,
    create_bucket_request,
    get_object_request,
    head_object_request,
    list_buckets_request,
    list_objects_request,
    list_objects_v1_request,
    object_request,
    put_object_request,
)
from .engine import DEFAULT_EXPIRES_IN, EngineOptions

s3_app = typer.Typer(
    name="s3",
    help="Perform an action against the S3 endpoint.",
    no_args_is_help=True,
)


def _account_opt():
    return typer.Option(
        None,
        "--account",
        "-a",
        help=(
            "Account ID or profile name to use when more than one is configured "
            f"(env override: {R2_PROFILE})"
        ),
    )


def _presign_opt():
    return typer.Option(False, "--presign", help="Generate a pre-signed URL for this command.")


def _expires_in_opt():
    return typer.Option(
        DEFAULT_EXPIRES_IN,
        "--expires-in",
        help="Seconds until the signed URL stops working. Default is 1 day, maximum is 7 days.",
    )


def _sign_header_opt():
    return typer.Option(
        None,
        "--sign-header",
        help=(
            "key=value header the signed URL requires; repeat for more headers. "
            "Requests without these exact headers and values will fail."
        ),
    )


def _verbose_opt():
    return typer.Option(
        False,
        "--verbose",
        "-v",
        help="Print the outgoing request as an equivalent curl command on stderr.",
    )


def _bucket_arg():
    return typer.Argument(..., metavar="BUCKET", help="The name of the bucket.")


def _object_arg():
    return typer.Argument(..., metavar="OBJECT", help="The name of the object.")


def _run(
    builder: RequestBuilder,
    *,
    account: str | None,
    presign: bool,
    expires_in: int,
    sign_header: list[str] | None,
    verbose: bool,
    destination: str | None = None,
) -> None:
    request = builder.sign_headers(sign_header).build()
    resolver = runtime_core.make_resolver()
    credential = resolver.resolve(account or _env_or_none(R2_PROFILE))
    engine = runtime_core.make_engine(credential)
    engine.run(
        request,
        EngineOptions(
            presign=presign,
            expires_in=expires_in,
            verbose=verbose,
            destination=destination,
        ),
    )


@s3_app.command("list-buckets", help=VERBS["list-buckets"].help)
def list_buckets(
    prefix: str | None = typer.Option(None, "--prefix", "-p", help="Only return buckets with the matching prefix."),
    start_after: str | None = typer.Option(
        None, "--start-after", help="Only return buckets lexicographically after this string."
    ),
    continuation_token: str | None = typer.Option(
        None, "--continuation-token", help="Resume listing from a previous continuation token."
    ),
    max_keys: int | None = typer.Option(None, "--max-keys", help="Limit the results to this many buckets."),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        list_buckets_request(
            prefix=prefix,
            start_after=start_after,
            continuation_token=continuation_token,
            max_keys=max_keys,
        ),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )


@s3_app.command("create-bucket", help=VERBS["create-bucket"].help)
def create_bucket(
    bucket: str = _bucket_arg(),
    location: str | None = typer.Option(
        None, "--location", "-l", help="The location where to create the bucket."
    ),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        create_bucket_request(bucket, location=location),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )


def _register_bucket_verb(verb: str) -> None:
    def command(
        bucket: str = _bucket_arg(),
        account: str | None = _account_opt(),
        presign: bool = _presign_opt(),
        expires_in: int = _expires_in_opt(),
        sign_header: list[str] | None = _sign_header_opt(),
        verbose: bool = _verbose_opt(),
    ) -> None:
        _run(
            bucket_request(verb, bucket),
            account=account,
            presign=presign,
            expires_in=expires_in,
            sign_header=sign_header,
            verbose=verbose,
        )

    command.__name__ = verb.replace("-", "_")
    s3_app.command(verb, help=VERBS[verb].help)(command)


for _verb in (
    "delete-bucket",
    "head-bucket",
    "get-bucket-encryption",
    "get-bucket-location",
    "get-bucket-cors",
    "delete-bucket-cors",
):
    _register_bucket_verb(_verb)


_URL_ENCODE_HELP = (
    "Render strings in the response URL-encoded, for XML 1.0 parsers processing unicode values."
)


@s3_app.command("list-objects-v1", help=VERBS["list-objects-v1"].help)
def list_objects_v1(
    bucket: str = _bucket_arg(),
    prefix: str | None = typer.Option(None, "--prefix", help="Only match keys that start with this value."),
    delimiter: str | None = typer.Option(
        None, "--delimiter", help="Group keys by this value (use / for a hierarchical view)."
    ),
    url_encode: bool = typer.Option(False, "--url-encode", help=_URL_ENCODE_HELP),
    max_keys: int | None = typer.Option(None, "--max-keys", help="Return fewer than 1000 objects."),
    marker: str | None = typer.Option(
        None, "--marker", help="Only return keys lexicographically larger than this value."
    ),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        list_objects_v1_request(
            bucket,
            prefix=prefix,
            delimiter=delimiter,
            url_encode=url_encode,
            max_keys=max_keys,
            marker=marker,
        ),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )


@s3_app.command("list-objects", help=VERBS["list-objects"].help)
def list_objects(
    bucket: str = _bucket_arg(),
    prefix: str | None = typer.Option(None, "--prefix", help="Only match keys that start with this value."),
    delimiter: str | None = typer.Option(
        None, "--delimiter", help="Group keys by this value (use / for a hierarchical view)."
    ),
    url_encode: bool = typer.Option(False, "--url-encode", help=_URL_ENCODE_HELP),
    max_keys: int | None = typer.Option(None, "--max-keys", help="Return fewer than 1000 objects."),
    start_after: str | None = typer.Option(
        None, "--start-after", help="Only return keys lexicographically larger than this value."
    ),
    continuation_token: str | None = typer.Option(
        None, "--continuation-token", help="Continue where the last listing left off."
    ),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        list_objects_request(
            bucket,
            prefix=prefix,
            delimiter=delimiter,
            url_encode=url_encode,
            max_keys=max_keys,
            start_after=start_after,
            continuation_token=continuation_token,
        ),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )


def _is_etag_opt():
    return typer.Option(None, "--is-etag", help="Only succeed if the ETag matches (If-Match).")


def _not_etag_opt():
    return typer.Option(None, "--not-etag", help="Only succeed if the ETag does not match (If-None-Match).")


def _uploaded_before_opt():
    return typer.Option(
        None,
        "--uploaded-before",
        help="Only succeed if the object was uploaded before this date (If-Unmodified-Since).",
    )


def _uploaded_after_opt():
    return typer.Option(
        None,
        "--uploaded-after",
        help="Only succeed if the object was uploaded after this date (If-Modified-Since).",
    )


def _range_opt():
    return typer.Option(None, "--range", help="The range of the body to retrieve, in HTTP Range syntax.")


@s3_app.command("head-object", help=VERBS["head-object"].help)
def head_object(
    bucket: str = _bucket_arg(),
    key: str = _object_arg(),
    is_etag: str | None = _is_etag_opt(),
    not_etag: str | None = _not_etag_opt(),
    uploaded_before: str | None = _uploaded_before_opt(),
    uploaded_after: str | None = _uploaded_after_opt(),
    byte_range: str | None = _range_opt(),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        head_object_request(
            bucket,
            key,
            is_etag=is_etag,
            not_etag=not_etag,
            uploaded_before=uploaded_before,
            uploaded_after=uploaded_after,
            byte_range=byte_range,
        ),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )


@s3_app.command("get-object", help=VERBS["get-object"].help)
def get_object(
    bucket: str = _bucket_arg(),
    key: str = _object_arg(),
    is_etag: str | None = _is_etag_opt(),
    not_etag: str | None = _not_etag_opt(),
    uploaded_before: str | None = _uploaded_before_opt(),
    uploaded_after: str | None = _uploaded_after_opt(),
    byte_range: str | None = _range_opt(),
    response_cache_control: str | None = typer.Option(
        None, "--response-cache-control", help="Override the cache-control header of the response."
    ),
    response_content_disposition: str | None = typer.Option(
        None, "--response-content-disposition", help="Override the content-disposition header of the response."
    ),
    response_content_encoding: str | None = typer.Option(
        None, "--response-content-encoding", help="Override the content-encoding header of the response."
    ),
    response_content_language: str | None = typer.Option(
        None, "--response-content-language", help="Override the content-language header of the response."
    ),
    response_content_type: str | None = typer.Option(
        None, "--response-content-type", help="Override the content-type header of the response."
    ),
    response_expires: str | None = typer.Option(
        None, "--response-expires", help="Override the expires header of the response."
    ),
    file: str | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Where to save the object; '-' writes to stdout. Defaults to the last segment of the key.",
    ),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        get_object_request(
            bucket,
            key,
            is_etag=is_etag,
            not_etag=not_etag,
            uploaded_before=uploaded_before,
            uploaded_after=uploaded_after,
            byte_range=byte_range,
            response_cache_control=response_cache_control,
            response_content_disposition=response_content_disposition,
            response_content_encoding=response_content_encoding,
            response_content_language=response_content_language,
            response_content_type=response_content_type,
            response_expires=response_expires,
        ),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
        destination=file,
    )


@s3_app.command("put-object", help=VERBS["put-object"].help)
def put_object(
    bucket: str = _bucket_arg(),
    key: str = _object_arg(),
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        readable=True,
        help="The local file to upload.",
    ),
    content_type: str | None = typer.Option(None, "--content-type", help="Content-Type to store with the object."),
    cache_control: str | None = typer.Option(
        None, "--cache-control", help="Cache-Control to store with the object."
    ),
    content_disposition: str | None = typer.Option(
        None, "--content-disposition", help="Content-Disposition to store with the object."
    ),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        put_object_request(
            bucket,
            key,
            source=file,
            content_type=content_type,
            cache_control=cache_control,
            content_disposition=content_disposition,
        ),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )


@s3_app.command("delete-object", help=VERBS["delete-object"].help)
def delete_object(
    bucket: str = _bucket_arg(),
    key: str = _object_arg(),
    account: str | None = _account_opt(),
    presign: bool = _presign_opt(),
    expires_in: int = _expires_in_opt(),
    sign_header: list[str] | None = _sign_header_opt(),
    verbose: bool = _verbose_opt(),
) -> None:
    _run(
        object_request("delete-object", bucket, key),
        account=account,
        presign=presign,
        expires_in=expires_in,
        sign_header=sign_header,
        verbose=verbose,
    )
