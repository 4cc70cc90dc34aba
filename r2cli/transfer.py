from __future__ import annotations

import shutil
import sys
import time
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable

from rich.console import Console
from rich.filesize import decimal
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TimeRemainingColumn
from rich.prompt import Confirm

from .cli_shared import OpError, _info, _warn

STDOUT_MARKER = "-"
CHUNK_SIZE = 1024 * 1024


class TransferOutcome(str, Enum):
    COMPLETED = "completed"
    DECLINED = "declined"
    NO_DESTINATION = "no-destination"


def resolve_destination(explicit: str | None, object_key: str | None) -> str | None:
    inferred = (object_key or "").rsplit("/", 1)[-1]
    if explicit:
        if explicit != STDOUT_MARKER and Path(explicit).is_dir():
            return str(Path(explicit) / inferred) if inferred else None
        return explicit
    return inferred or None


def _confirm_overwrite(path: Path) -> bool:
    return Confirm.ask(
        f"{path} already exists. Overwrite?",
        default=False,
        console=Console(stderr=True, highlight=False),
    )


class TransferProgress:
    """Byte counter with instantaneous throughput and a rich progress bar.

    Throughput is the size of the latest chunk over the time since the
    previous one, not an average over the whole transfer.
    """

    def __init__(
        self,
        total: int,
        *,
        description: str = "",
        clock: Callable[[], float] = time.perf_counter,
        progress: Progress | None = None,
    ) -> None:
        self.total = max(0, int(total))
        self.transferred = 0
        self.rate = 0.0
        self._clock = clock
        self._last = clock()
        self._progress = progress or Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TextColumn("{task.fields[rate]}"),
            TimeRemainingColumn(),
            console=Console(stderr=True),
        )
        self._task = self._progress.add_task(description, total=self.total, rate="")

    def __enter__(self) -> "TransferProgress":
        self._progress.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._progress.stop()

    def advance(self, n: int) -> None:
        if n <= 0:
            return
        now = self._clock()
        elapsed = now - self._last
        self._last = now
        self.transferred += n
        self.rate = (n / elapsed) if elapsed > 0 else 0.0
        self._progress.update(
            self._task,
            completed=self.transferred,
            rate=f"{decimal(int(self.rate))}/s",
        )


def stream_body(
    body: Any,
    sink: BinaryIO,
    *,
    length: int | None,
    description: str = "",
    chunk_size: int = CHUNK_SIZE,
    progress_factory: Callable[..., TransferProgress] = TransferProgress,
) -> int:
    if length is None:
        shutil.copyfileobj(body, sink, chunk_size)
        sink.flush()
        return -1

    written = 0
    with progress_factory(length, description=description) as progress:
        for chunk in iter(lambda: body.read(chunk_size), b""):
            sink.write(chunk)
            written += len(chunk)
            progress.advance(len(chunk))
    sink.flush()
    return written


def save_body(
    body: Any,
    *,
    destination: str | None,
    object_key: str | None,
    length: int | None,
    confirm: Callable[[Path], bool] = _confirm_overwrite,
    progress_factory: Callable[..., TransferProgress] = TransferProgress,
) -> TransferOutcome:
    try:
        target = resolve_destination(destination, object_key)
        if target is None:
            _warn(f"cannot infer a file name from object key {object_key!r}; pass --file to save it")
            return TransferOutcome.NO_DESTINATION

        if target == STDOUT_MARKER:
            stream_body(
                body,
                sys.stdout.buffer,
                length=length,
                description=object_key or "",
                progress_factory=progress_factory,
            )
            return TransferOutcome.COMPLETED

        path = Path(target)
        if path.exists() and not confirm(path):
            return TransferOutcome.DECLINED

        try:
            sink = open(path, "wb")
        except OSError as e:
            raise OpError(f"failed to open {path} for writing: {e}") from e
        with sink:
            stream_body(
                body,
                sink,
                length=length,
                description=path.name,
                progress_factory=progress_factory,
            )
        _info(f"Saved {object_key} to {path}")
        return TransferOutcome.COMPLETED
    finally:
        close = getattr(body, "close", None)
        if callable(close):
            close()
