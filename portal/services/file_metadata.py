from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from threading import Lock

from portal.models.common import utcnow

_LOG = logging.getLogger("portal.files")


class FilenameTakenError(Exception):
    def __init__(self, filename: str):
        super().__init__(f"Filename already registered: {filename}")
        self.filename = filename


@dataclass(frozen=True)
class FileMetadata:
    filename: str
    original_filename: str | None = None
    content_type: str | None = None
    size: int = 0
    uploaded_at: datetime = field(default_factory=utcnow)
    url: str | None = None
    entity_type: str | None = None
    entity_id: int | None = None
    user_id: int | None = None
    project_id: int | None = None
    id: int | None = None


class InMemoryFileMetadataStore:
    """Metadata indexed by filename and by id.

    One lock covers id assignment and both index writes, so readers never see
    an entry present in one index and missing from the other.
    """

    def __init__(self):
        self._by_filename: dict[str, FileMetadata] = {}
        self._by_id: dict[int, FileMetadata] = {}
        self._next_id = 1
        self._lock = Lock()

    def _put(self, metadata: FileMetadata) -> FileMetadata:
        # caller holds self._lock
        if metadata.id is None:
            metadata = replace(metadata, id=self._next_id)
            self._next_id += 1
        else:
            self._next_id = max(self._next_id, metadata.id + 1)
        previous = self._by_filename.get(metadata.filename)
        if previous is not None and previous.id != metadata.id:
            self._by_id.pop(previous.id, None)
        stale = self._by_id.get(metadata.id)
        if stale is not None and stale.filename != metadata.filename:
            self._by_filename.pop(stale.filename, None)
        self._by_filename[metadata.filename] = metadata
        self._by_id[metadata.id] = metadata
        return metadata

    def save(self, metadata: FileMetadata) -> FileMetadata:
        with self._lock:
            metadata = self._put(metadata)
        _LOG.debug("file metadata saved id=%s filename=%s", metadata.id, metadata.filename)
        return metadata

    def save_if_owned(self, metadata: FileMetadata) -> FileMetadata:
        """Save unless the filename is registered to a user other than ``metadata.user_id``.

        The ownership check and the write happen under one lock. Re-registering
        one's own filename keeps its id. Raises ``FilenameTakenError``.
        """
        with self._lock:
            existing = self._by_filename.get(metadata.filename)
            if existing is not None:
                if existing.user_id != metadata.user_id:
                    raise FilenameTakenError(metadata.filename)
                metadata = replace(metadata, id=existing.id)
            metadata = self._put(metadata)
        _LOG.debug("file metadata saved id=%s filename=%s", metadata.id, metadata.filename)
        return metadata

    def find_by_filename(self, filename: str) -> FileMetadata | None:
        with self._lock:
            return self._by_filename.get(filename)

    def find_by_id(self, metadata_id: int) -> FileMetadata | None:
        with self._lock:
            return self._by_id.get(metadata_id)

    def find_all_by_project_id(self, project_id: int) -> list[FileMetadata]:
        with self._lock:
            return [m for m in self._by_id.values() if m.project_id == project_id]

    def find_all_by_user_id(self, user_id: int) -> list[FileMetadata]:
        with self._lock:
            return [m for m in self._by_id.values() if m.user_id == user_id]

    def find_by_entity(self, entity_type: str, entity_id: int) -> list[FileMetadata]:
        with self._lock:
            return [m for m in self._by_id.values() if m.entity_type == entity_type and m.entity_id == entity_id]

    def delete_by_filename(self, filename: str) -> None:
        with self._lock:
            metadata = self._by_filename.pop(filename, None)
            if metadata is not None:
                self._by_id.pop(metadata.id, None)

    def delete(self, metadata: FileMetadata | None) -> None:
        if metadata is None:
            return
        with self._lock:
            if metadata.filename is not None:
                self._by_filename.pop(metadata.filename, None)
            if metadata.id is not None:
                self._by_id.pop(metadata.id, None)


_cached_store: InMemoryFileMetadataStore | None = None
_cached_store_lock = Lock()


def get_file_metadata_store() -> InMemoryFileMetadataStore:
    global _cached_store
    if _cached_store is None:
        with _cached_store_lock:
            if _cached_store is None:
                _cached_store = InMemoryFileMetadataStore()
    return _cached_store


def reset_file_metadata_store_for_tests() -> None:
    global _cached_store
    _cached_store = None
