"""In-memory object store for images, texts and generic values.

The store is one flat mapping keyed by ``"<namespace>:<id>"``.  Namespaces
are only a naming convention: images live under ``image``, texts under
``text``, and generic key/value entries use the empty namespace so their key
is the bare caller-supplied string.  A generic key that happens to spell an
image or text key therefore overwrites that record.  This last-writer-wins
behaviour is kept on purpose; :meth:`ObjectStore._compose_key` is the single
place to change if namespaces ever need separate maps.

Nothing is evicted and nothing survives a restart.  The store instance is
created by the application lifespan and lives exactly as long as the
process.

Record lifecycle
----------------
- ``id`` and ``namespace`` are fixed at creation.
- ``analysis`` is the only field written after creation, and only along
  ``None -> ANALYSIS_PENDING -> settled``.  Settlement is a flag on the
  record, not a property of the value.  Once settled, further patches are
  ignored.
- Texts and generic values are never patched; writing the same key again
  replaces the whole record.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

IMAGE_NAMESPACE = "image"
TEXT_NAMESPACE = "text"
GENERIC_NAMESPACE = ""

ANALYSIS_PENDING = "Analyzing image..."

PATCHABLE_FIELDS = frozenset({"analysis"})

# Name of the payload key when a record is rendered as a flat dictionary.
_PAYLOAD_KEYS = {
    IMAGE_NAMESPACE: "data",
    TEXT_NAMESPACE: "text",
}


@dataclass
class Record:
    """A stored object.

    Attributes:
        id: Identity within the namespace, assigned by the store.
        namespace: ``image``, ``text`` or the generic (empty) namespace.
        payload: Normalized data URL, text content or arbitrary value.
        metadata: Free-form details (dimensions, detected format, title).
        created_at: Creation instant in seconds since the epoch.
        analysis: ``None``, :data:`ANALYSIS_PENDING` or the settled value.
        settled: Whether ``analysis`` holds its final value.
    """

    id: str
    namespace: str
    payload: Any
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: float = 0.0
    analysis: str | None = None
    settled: bool = False

    @property
    def analysis_status(self) -> str:
        """Return ``absent``, ``in-progress`` or ``settled``."""
        if self.settled:
            return "settled"
        if self.analysis is None:
            return "absent"
        return "in-progress"

    @property
    def timestamp(self) -> str:
        """ISO-8601 rendering of ``created_at`` in UTC."""
        return datetime.fromtimestamp(self.created_at, tz=timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Render the record as the flat JSON object returned by the API."""
        body: dict[str, Any] = {"id": self.id, **self.metadata}
        body[_PAYLOAD_KEYS.get(self.namespace, "value")] = self.payload
        body["timestamp"] = self.timestamp
        if self.analysis is not None:
            body["analysis"] = self.analysis
        return body


class ObjectStore:
    """Namespaced, process-scoped, in-memory store of :class:`Record` objects.

    Every mutation holds an internal lock, so ``put`` and ``patch`` are atomic
    whether they are called from the event loop or from FastAPI's threadpool.

    Args:
        clock: Returns the current instant in nanoseconds.  Ids are minted
            from it, so two writes within the same tick in one namespace
            collide and the later one wins.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._objects: dict[str, Record] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _compose_key(namespace: str, record_id: str) -> str:
        if not namespace:
            return record_id
        return f"{namespace}:{record_id}"

    def __len__(self) -> int:
        return len(self._objects)

    def put(
        self,
        namespace: str,
        payload: Any,
        *,
        record_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        analysis: str | None = None,
    ) -> str:
        """Store a new record and return its id.

        Args:
            namespace: Target namespace.
            payload: Value to store.
            record_id: Explicit id.  When omitted one is minted from the
                creation instant.
            metadata: Free-form metadata copied onto the record.
            analysis: Initial analysis state, normally ``None`` or
                :data:`ANALYSIS_PENDING`.

        Returns:
            The id of the stored record.  An existing record under the same
            key is replaced silently.
        """
        now_ns = self._clock()
        if record_id is None:
            record_id = str(now_ns)

        record = Record(
            id=record_id,
            namespace=namespace,
            payload=payload,
            metadata=dict(metadata or {}),
            created_at=now_ns / 1_000_000_000,
            analysis=analysis,
        )
        key = self._compose_key(namespace, record_id)
        with self._lock:
            replaced = key in self._objects
            self._objects[key] = record

        if replaced:
            logger.debug(f"Overwrote existing record {key!r}")
        else:
            logger.debug(f"Stored record {key!r}")
        return record_id

    def get(self, namespace: str, record_id: str) -> Record | None:
        """Return the record stored under ``(namespace, record_id)`` or ``None``."""
        return self._objects.get(self._compose_key(namespace, record_id))

    def list_namespace(self, namespace: str) -> list[Record]:
        """Return every record whose key carries the namespace prefix.

        This scans all keys, so the cost grows with the total number of
        stored objects rather than the size of the namespace.  Generic
        entries have no prefix and are selected by the namespace they were
        written with instead.
        """
        with self._lock:
            items = list(self._objects.items())

        if not namespace:
            return [record for _, record in items if not record.namespace]

        prefix = self._compose_key(namespace, "")
        return [record for key, record in items if key.startswith(prefix)]

    def patch(
        self,
        namespace: str,
        record_id: str,
        field_name: str,
        value: Any,
        *,
        settle: bool = True,
    ) -> bool:
        """Write a single field of an existing record.

        Only ``analysis`` can be patched.  A patch with *settle* marks the
        analysis final whatever its value; pass ``settle=False`` to move a
        record to :data:`ANALYSIS_PENDING`.  Once settled, the call is
        ignored.

        Returns:
            ``True`` if the field was written, ``False`` if the record does
            not exist or its analysis has already settled.

        Raises:
            ValueError: If *field_name* is not patchable.
        """
        if field_name not in PATCHABLE_FIELDS:
            raise ValueError(f"Field {field_name!r} cannot be patched")

        key = self._compose_key(namespace, record_id)
        with self._lock:
            record = self._objects.get(key)
            if record is None:
                return False
            if record.analysis_status == "settled":
                logger.debug(f"Ignoring patch of settled record {key!r}")
                return False
            setattr(record, field_name, value)
            record.settled = settle
        return True
