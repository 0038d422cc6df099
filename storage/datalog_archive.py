from __future__ import annotations
import io
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator, List, Optional, TextIO

from settings import get_settings


class DatalogArchive:
    """Raw datalog uploads, kept in memory and mirrored to disk when rooted."""

    def __init__(self, name: str, root_path: Optional[Path] = None) -> None:
        self.name = name
        self.root_path = root_path
        self._blobs: Dict[str, bytes] = {}
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def key_for(file_id: str, filename: str) -> str:
        return f"{file_id}/{Path(filename).name}"

    def store(self, file_id: str, filename: str, data: bytes) -> str:
        key = self.key_for(file_id, filename)
        with self._lock:
            self._blobs[key] = data
            if self.root_path:
                path = self.root_path / key
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
        return key

    def load(self, key: str) -> bytes:
        with self._lock:
            data = self._blobs.get(key)
        if data is not None:
            return data

        path = self._disk_path(key)
        if path is None:
            raise self._missing(key)
        data = path.read_bytes()
        with self._lock:
            self._blobs[key] = data
        return data

    @contextmanager
    def open_text(self, key: str, encoding: str = "utf-8") -> Iterator[TextIO]:
        """Yield a text stream over an archived datalog, streaming from disk when possible."""

        path = self._disk_path(key)
        if path is not None:
            with path.open("r", encoding=encoding) as handle:
                yield handle
            return

        with self._lock:
            data = self._blobs.get(key)
        if data is None:
            raise self._missing(key)
        buffer = io.StringIO(data.decode(encoding))
        try:
            yield buffer
        finally:
            buffer.close()

    def keys(self) -> List[str]:
        with self._lock:
            found = set(self._blobs)
        if self.root_path:
            for path in self.root_path.rglob("*"):
                if path.is_file():
                    found.add(path.relative_to(self.root_path).as_posix())
        return sorted(found)

    def _disk_path(self, key: str) -> Optional[Path]:
        if not self.root_path:
            return None
        path = self.root_path / key
        return path if path.is_file() else None

    def _missing(self, key: str) -> KeyError:
        return KeyError(f"Datalog {key!r} not found in archive {self.name!r}.")


@lru_cache
def build_default_archive(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> DatalogArchive:
    settings = get_settings()
    archive_name = settings.archive_name if name is None else name
    archive_root = settings.archive_root_path if root_path is None else root_path
    path = Path(archive_root) if archive_root else None
    return DatalogArchive(name=archive_name, root_path=path)
