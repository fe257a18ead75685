import io
import time
import zipfile
from typing import Optional, Protocol


class ArchiveWriter(Protocol):
    def write(self, filename: str, data: bytes) -> None:
        ...

    def finalize(self) -> bytes:
        ...

    def discard(self) -> None:
        ...


class ZipArchiveWriter:
    """
    In-memory zip archive with stored (uncompressed) entries.

    Entries are appended in call order; finalize() may be called once.
    """

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._zip: Optional[zipfile.ZipFile] = zipfile.ZipFile(
            self._buffer, mode="w", compression=zipfile.ZIP_STORED
        )

    def write(self, filename: str, data: bytes) -> None:
        self._require_open().writestr(filename, data)

    def finalize(self) -> bytes:
        self._require_open().close()
        self._zip = None
        payload = self._buffer.getvalue()
        self._buffer.close()
        return payload

    def discard(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        self._buffer.close()

    def _require_open(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise RuntimeError("Archive has already been finalized or discarded.")
        return self._zip


def archive_filename(now: Optional[float] = None) -> str:
    ts = time.time() if now is None else now
    return f"branded_bulk_{int(ts * 1000)}.zip"
