"""Name the exported image and hand it to a download target."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote_to_bytes

from canvasshot.request import ImageFormat

UNTITLED = "Untitled"


class Downloader(Protocol):
    def download(self, data_uri: str, filename: str) -> object: ...


def export_filename(
    document_name: str | None,
    fmt: ImageFormat,
    selection_size: int | None = None,
) -> str:
    """``<document>[ - Selection of N].<ext>``.

    Args:
        document_name: Base name of the canvas file, without extension
        fmt: Output format, decides the extension
        selection_size: Number of exported nodes for a partial export,
            None for the whole canvas
    """
    base = document_name or UNTITLED
    if selection_size is not None:
        base += f" - Selection of {selection_size}"
    return f"{base}.{fmt.extension}"


def decode_data_uri(data_uri: str) -> bytes:
    """Decode a ``data:`` URI in either base64 or percent-encoded form."""
    if not data_uri.startswith("data:"):
        raise ValueError("Not a data URI")
    header, sep, payload = data_uri.partition(",")
    if not sep:
        raise ValueError("Malformed data URI: missing ','")
    if header.endswith(";base64"):
        return base64.b64decode(payload)
    return unquote_to_bytes(payload)


def deliver(downloader: Downloader, data_uri: str, filename: str) -> object:
    return downloader.download(data_uri, filename)


class DirectoryDownloader:
    """Writes downloads into a directory, creating it if needed."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def download(self, data_uri: str, filename: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        path.write_bytes(decode_data_uri(data_uri))
        return path
