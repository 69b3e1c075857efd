"""Resolve a model name to a local ggml file, downloading it when missing.

WHY: whisper.cpp models range from 75 MB to almost 3 GB. Users should be
able to say ``--model small`` and have the file appear, but a download
that is interrupted or fails must never leave a truncated file where a
later run would mistake it for a complete model.

HOW: The file is streamed with httpx into ``ggml-<name>.bin.part`` next
to its final location, with a rich progress bar sized from
Content-Length. Only after the last chunk is written is the ``.part``
file renamed (os.replace, atomic on one filesystem) to its final name.
The copy loop polls a CancellationToken after every network read, and a
SIGINT/SIGTERM aborts a read that is stalled. Signals are wired to the
token when the caller did not supply one.

RULES:
- Invalid names raise InvalidModelError before touching disk or network
- An existing final file is returned immediately (no network access)
- On any failure or cancellation the ``.part`` file is deleted
- Network/HTTP failures raise NetworkError and are never retried here
- Cancellation raises DownloadCancelledError (a quiet exit, not an error)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from blisper.cancel import CancellationToken, cancel_on_signals
from blisper.config import MODEL_BASE_URL, PARTIAL_SUFFIX, VALID_MODELS, get_data_dir
from blisper.errors import DownloadCancelledError, InvalidModelError, NetworkError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TIMEOUT = httpx.Timeout(300.0, connect=30.0)


def model_filename(name: str) -> str:
    return "ggml-{}.bin".format(name)


def model_path(name: str, data_dir: Optional[Path] = None) -> Path:
    """Return the path where the model called ``name`` lives (or will live)."""
    return Path(data_dir or get_data_dir()) / model_filename(name)


def model_url(name: str) -> str:
    return "{}-{}.bin".format(MODEL_BASE_URL, name)


def validate_model_name(name: str) -> str:
    if name not in VALID_MODELS:
        raise InvalidModelError(name, VALID_MODELS)
    return name


def list_installed(data_dir: Optional[Path] = None) -> List[str]:
    """Return the names of fully downloaded models, in VALID_MODELS order."""
    return [name for name in VALID_MODELS if model_path(name, data_dir).is_file()]


def resolve(
    name: str,
    data_dir: Optional[Path] = None,
    client: Optional[httpx.Client] = None,
    token: Optional[CancellationToken] = None,
    show_progress: bool = True,
    on_status: Callable[[str], None] | None = None,
) -> Path:
    """Return the local path of a model, downloading it first if needed.

    Args:
        name: One of VALID_MODELS.
        data_dir: Directory holding model files (default: get_data_dir()).
        client: httpx client to download with. One is created (and closed)
            when omitted.
        token: Cancellation token polled during the copy. When omitted, a
            token wired to SIGINT/SIGTERM is used for the download.
        show_progress: Whether to draw the download progress bar.
        on_status: Optional callback for status updates.

    Returns:
        Path of the complete model file.

    Raises:
        InvalidModelError: ``name`` is not a known model.
        NetworkError: The download failed.
        DownloadCancelledError: The download was interrupted.
    """
    validate_model_name(name)

    target = model_path(name, data_dir)
    if target.is_file():
        logger.debug("Model %s already present at %s", name, target)
        return target

    target.parent.mkdir(parents=True, exist_ok=True)

    if on_status:
        on_status("Downloading {} model...".format(name))

    if token is None:
        with cancel_on_signals(CancellationToken()) as signal_token:
            _download(model_url(name), target, client, signal_token, show_progress, name)
    else:
        _download(model_url(name), target, client, token, show_progress, name)

    if on_status:
        on_status("Download complete.")
    logger.info("Downloaded model %s to %s", name, target)
    return target


def _download(
    url: str,
    target: Path,
    client: Optional[httpx.Client],
    token: CancellationToken,
    show_progress: bool,
    label: str,
) -> None:
    """Stream ``url`` into ``target`` via a ``.part`` file."""
    partial = target.with_name(target.name + PARTIAL_SUFFIX)
    owns_client = client is None
    http = client or httpx.Client(follow_redirects=True, timeout=_TIMEOUT)

    try:
        with token.interruptible():
            with http.stream("GET", url) as resp:
                if resp.status_code != 200:
                    raise NetworkError(
                        "GET {} returned HTTP {}".format(url, resp.status_code)
                    )
                total = _content_length(resp)
                with open(partial, "wb") as out, _progress_bar(label, total, show_progress) as advance:
                    # No chunk size: each network read is handed over as it arrives
                    for chunk in resp.iter_bytes():
                        token.raise_if_cancelled()
                        out.write(chunk)
                        advance(len(chunk))
                    token.raise_if_cancelled()
        os.replace(partial, target)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        if token.cancelled:
            raise DownloadCancelledError("cancelled by user") from exc
        raise NetworkError("downloading {} failed: {}".format(url, exc)) from exc
    finally:
        if partial.exists():
            logger.debug("Removing partial download %s", partial)
            partial.unlink()
        if owns_client:
            http.close()


def _content_length(resp: httpx.Response) -> Optional[int]:
    value = resp.headers.get("Content-Length")
    try:
        return int(value) if value else None
    except ValueError:
        return None


@contextmanager
def _progress_bar(
    label: str,
    total: Optional[int],
    enabled: bool,
) -> Iterator[Callable[[int], None]]:
    """Draw a download bar on stderr; yields a function that advances it."""
    progress = Progress(
        TextColumn("downloading [yellow]{task.description}[/yellow] model"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=Console(stderr=True),
        disable=not enabled,
        transient=False,
    )
    with progress:
        task = progress.add_task(label, total=total)
        yield lambda n: progress.update(task, advance=n)
