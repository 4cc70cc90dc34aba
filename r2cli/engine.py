from __future__ import annotations

import datetime
import shlex
import sys
from dataclasses import dataclass
from email.utils import format_datetime
from pathlib import Path
from typing import Any, Callable, Mapping

from botocore.exceptions import BotoCoreError, ClientError

from .cli_shared import OpError, TransportFailed, UsageError, _eprint, _print_json
from .descriptors import RequestDescriptor, presign_method
from .resolver import ResolvedCredential
from .s3_client import make_client
from .transfer import TransferOutcome, TransferProgress, _confirm_overwrite, save_body

DEFAULT_EXPIRES_IN = 86400
MAX_EXPIRES_IN = 7 * 86400


@dataclass(frozen=True)
class EngineOptions:
    presign: bool = False
    expires_in: int = DEFAULT_EXPIRES_IN
    verbose: bool = False
    destination: str | None = None


@dataclass(frozen=True)
class PresignedRequest:
    method: str
    url: str
    headers: Mapping[str, str]
    expires_at: datetime.datetime

    def curl(self) -> str:
        return render_curl(self.method, self.url, self.headers)


def _header_text(val: Any) -> str:
    if isinstance(val, bytes):
        return val.decode("utf-8", errors="replace")
    return str(val)


def render_curl(method: str, url: str, headers: Mapping[str, Any]) -> str:
    parts = ["curl", "-X", method]
    for name, value in headers.items():
        parts.append("-H")
        parts.append(shlex.quote(f"{name}: {_header_text(value)}"))
    parts.append(shlex.quote(url))
    return " ".join(parts)


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class RequestEngine:
    """Runs one request descriptor against the credential's endpoint.

    A request is either presigned (nothing is sent) or executed, in which case
    a body-bearing response is streamed to its destination.
    """

    def __init__(
        self,
        credential: ResolvedCredential,
        *,
        client_factory: Callable[..., Any] = make_client,
        clock: Callable[[], datetime.datetime] = _utc_now,
        confirm: Callable[[Path], bool] = _confirm_overwrite,
        progress_factory: Callable[..., TransferProgress] = TransferProgress,
    ) -> None:
        self.credential = credential
        self.client = client_factory(
            account_id=credential.account_id,
            access_key_id=credential.access_key_id,
            secret_access_key=credential.secret_access_key,
        )
        self._clock = clock
        self._confirm = confirm
        self._progress_factory = progress_factory

    def _attach_headers(self, request: RequestDescriptor) -> None:
        headers = dict(request.headers)
        if not headers:
            return

        def _apply(request: Any, **kwargs: Any) -> None:
            for name, value in headers.items():
                # botocore headers append on assignment.
                if name in request.headers:
                    del request.headers[name]
                request.headers[name] = value

        self.client.meta.events.register(
            f"before-sign.s3.{request.operation}",
            _apply,
            unique_id=f"r2cli-extra-headers-{request.operation}",
        )

    def _attach_verbose(self, request: RequestDescriptor) -> None:
        def _render(request: Any, **kwargs: Any) -> None:
            _eprint(render_curl(request.method, request.url, dict(request.headers.items())))

        self.client.meta.events.register(
            f"before-send.s3.{request.operation}",
            _render,
            unique_id=f"r2cli-verbose-{request.operation}",
        )

    def presign(self, request: RequestDescriptor, *, expires_in: int = DEFAULT_EXPIRES_IN) -> PresignedRequest:
        if expires_in <= 0 or expires_in > MAX_EXPIRES_IN:
            raise UsageError(f"--expires-in must be between 1 and {MAX_EXPIRES_IN} seconds")
        now = self._clock()
        expires_at = now + datetime.timedelta(seconds=expires_in)
        method = presign_method(request.operation)
        self._attach_headers(request)
        try:
            url = self.client.generate_presigned_url(
                ClientMethod=request.method_name,
                Params=dict(request.params),
                ExpiresIn=expires_in,
                HttpMethod=method,
            )
        except BotoCoreError as e:
            raise OpError(f"failed to presign {request.verb.name}: {e}") from e
        return PresignedRequest(method=method, url=url, headers=dict(request.headers), expires_at=expires_at)

    def execute(self, request: RequestDescriptor, *, verbose: bool = False) -> dict[str, Any]:
        self._attach_headers(request)
        if verbose:
            self._attach_verbose(request)
        call = getattr(self.client, request.method_name)
        params = dict(request.params)
        try:
            if request.upload_path is not None:
                try:
                    body = open(request.upload_path, "rb")
                except OSError as e:
                    raise OpError(f"failed to open upload source {request.upload_path}: {e}") from e
                with body:
                    return call(Body=body, **params)
            return call(**params)
        except ClientError as e:
            meta = e.response.get("ResponseMetadata") or {}
            err = e.response.get("Error") or {}
            message = str(err.get("Message") or err.get("Code") or e)
            raise TransportFailed(meta.get("HTTPStatusCode"), message) from e
        except BotoCoreError as e:
            raise TransportFailed(None, str(e)) from e

    def run(self, request: RequestDescriptor, options: EngineOptions) -> TransferOutcome | None:
        if options.presign:
            presigned = self.presign(request, expires_in=options.expires_in)
            sys.stdout.write("\n")
            sys.stdout.write(f"URL expires {format_datetime(presigned.expires_at, usegmt=True)}\n")
            sys.stdout.write("\n")
            sys.stdout.write(presigned.curl() + "\n")
            return None

        if request.operation == "PutObject" and request.upload_path is None:
            raise UsageError("put-object needs --file with the local file to upload")

        response = self.execute(request, verbose=options.verbose)
        if request.returns_body:
            length = response.get("ContentLength")
            try:
                return save_body(
                    response["Body"],
                    destination=options.destination,
                    object_key=request.key,
                    length=int(length) if length is not None else None,
                    confirm=self._confirm,
                    progress_factory=self._progress_factory,
                )
            except BotoCoreError as e:
                raise TransportFailed(None, str(e)) from e

        _print_json({k: v for k, v in response.items() if k != "ResponseMetadata"})
        return None
