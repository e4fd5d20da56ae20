"""JSON-on-disk store implementations used by the CLI.

Layout under the state directory::

    <state_dir>/
        buckets/<bucket>/<config_key>   local metadata store
        records.json                    record store (keys, payloads, tags)
        permissions.json                permission store (identifiers, public set)

Thread-safety within one process is provided by a ``threading.Lock`` per
store instance.  Concurrent processes are not coordinated.
"""
from __future__ import annotations

import base64
import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import (
    MetadataStoreError,
    PermissionStoreError,
    RecordStoreError,
)
from bucket_policy_sync.stores.base import (
    Absent,
    Found,
    RecordLookup,
    TransportError,
    UpdateStatus,
    record_key,
)


def _load_json(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh) or {}


def _dump_json(path: Path, data: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, sort_keys=True)
    tmp_path.replace(path)


class FileMetadataStore:
    """Local metadata store writing one file per bucket configuration entry.

    Parameters
    ----------
    root:
        State directory; bucket entries live under ``root/buckets``.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root) / "buckets"
        self._lock = threading.Lock()

    def _path(self, bucket: str, config_key: str) -> Path:
        if not bucket or "/" in bucket or bucket in {".", ".."}:
            raise MetadataStoreError(f"invalid bucket name '{bucket}'")
        return self._root / bucket / config_key

    def write(self, ctx: RequestContext, bucket: str, config_key: str, data: bytes) -> datetime:
        ctx.check()
        path = self._path(bucket, config_key)
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_suffix(path.suffix + ".tmp")
                tmp_path.write_bytes(data)
                tmp_path.replace(path)
        except OSError as exc:
            raise MetadataStoreError(f"cannot write {path}: {exc}") from exc
        return datetime.now(tz=timezone.utc)

    def read(self, ctx: RequestContext, bucket: str, config_key: str) -> bytes | None:
        ctx.check()
        path = self._path(bucket, config_key)
        try:
            with self._lock:
                return path.read_bytes() if path.exists() else None
        except OSError as exc:
            raise MetadataStoreError(f"cannot read {path}: {exc}") from exc

    def delete(self, ctx: RequestContext, bucket: str, config_key: str) -> datetime:
        ctx.check()
        path = self._path(bucket, config_key)
        try:
            with self._lock:
                path.unlink(missing_ok=True)
        except OSError as exc:
            raise MetadataStoreError(f"cannot delete {path}: {exc}") from exc
        return datetime.now(tz=timezone.utc)


class FileRecordStore:
    """Record store persisted to a single JSON file.

    Payloads are stored base64-encoded so arbitrary bytes round-trip.
    """

    def __init__(self, root: Path) -> None:
        self._path = Path(root) / "records.json"
        self._lock = threading.Lock()

    def lookup(self, ctx: RequestContext, key: str) -> RecordLookup:
        ctx.check()
        try:
            with self._lock:
                state = self._read_state()
        except RecordStoreError as exc:
            return TransportError(detail=str(exc), unreachable=exc.unreachable)
        ref = state["keys"].get(key)
        return Found(ref) if ref is not None else Absent()

    def load(self, ctx: RequestContext, ref: str) -> bytes:
        ctx.check()
        with self._lock:
            state = self._read_state()
        encoded = state["payloads"].get(ref)
        if encoded is None:
            raise RecordStoreError(f"payload '{ref}' not found")
        return base64.b64decode(encoded)

    def create(self, ctx: RequestContext, payload: bytes, tags: dict[str, str]) -> str:
        ctx.check()
        ref = str(uuid.uuid4())
        with self._lock:
            state = self._read_state()
            state["payloads"][ref] = base64.b64encode(payload).decode("ascii")
            state["tags"][ref] = dict(tags)
            if "key" in tags:
                state["keys"][tags["key"]] = ref
            self._write_state(state)
        return ref

    def update(self, ctx: RequestContext, ref: str, payload: bytes) -> UpdateStatus:
        ctx.check()
        encoded = base64.b64encode(payload).decode("ascii")
        with self._lock:
            state = self._read_state()
            if ref not in state["payloads"]:
                raise RecordStoreError(f"payload '{ref}' not found")
            if state["payloads"][ref] == encoded:
                return UpdateStatus.NO_DIFFERENCES
            state["payloads"][ref] = encoded
            self._write_state(state)
        return UpdateStatus.UPDATED

    def _read_state(self) -> dict[str, dict]:
        try:
            raw = _load_json(self._path)
        except (OSError, ValueError) as exc:
            raise RecordStoreError(f"cannot read {self._path}: {exc}") from exc
        return {
            "keys": dict(raw.get("keys", {})),  # type: ignore[arg-type]
            "payloads": dict(raw.get("payloads", {})),  # type: ignore[arg-type]
            "tags": dict(raw.get("tags", {})),  # type: ignore[arg-type]
        }

    def _write_state(self, state: dict[str, dict]) -> None:
        try:
            _dump_json(self._path, state)  # type: ignore[arg-type]
        except OSError as exc:
            raise RecordStoreError(f"cannot write {self._path}: {exc}") from exc


class FilePermissionStore:
    """Permission store persisted to a single JSON file.

    ``identifiers`` maps ``"<owner>-<suffix>-<bucket>"`` keys to resource
    identifiers; ``public`` lists identifiers that are publicly readable.
    """

    def __init__(self, root: Path) -> None:
        self._path = Path(root) / "permissions.json"
        self._lock = threading.Lock()

    def register(self, owner_id: str, suffix: str, bucket: str) -> str:
        """Register a backing resource for ``suffix`` and return its identifier."""
        with self._lock:
            state = self._read_state()
            key = record_key(owner_id, suffix, bucket)
            identifier = state["identifiers"].setdefault(key, str(uuid.uuid4()))
            self._write_state(state)
        return identifier

    def is_public(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._read_state()["public"]

    def resolve(self, ctx: RequestContext, owner_id: str, suffix: str, bucket: str) -> str | None:
        ctx.check()
        with self._lock:
            return self._read_state()["identifiers"].get(record_key(owner_id, suffix, bucket))

    def grant_public_read(self, ctx: RequestContext, identifier: str) -> None:
        ctx.check()
        with self._lock:
            state = self._read_state()
            if identifier not in state["public"]:
                state["public"].append(identifier)
                self._write_state(state)

    def clear_principals(self, ctx: RequestContext, identifier: str) -> None:
        ctx.check()
        with self._lock:
            state = self._read_state()
            if identifier in state["public"]:
                state["public"].remove(identifier)
                self._write_state(state)

    def _read_state(self) -> dict[str, object]:
        try:
            raw = _load_json(self._path)
        except (OSError, ValueError) as exc:
            raise PermissionStoreError(f"cannot read {self._path}: {exc}") from exc
        return {
            "identifiers": dict(raw.get("identifiers", {})),  # type: ignore[arg-type]
            "public": list(raw.get("public", [])),  # type: ignore[arg-type]
        }

    def _write_state(self, state: dict[str, object]) -> None:
        try:
            _dump_json(self._path, state)
        except OSError as exc:
            raise PermissionStoreError(f"cannot write {self._path}: {exc}") from exc
