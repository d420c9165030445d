"""Gallery and text listing helpers.

Listings read one namespace from the :class:`~imagedrop.core.store.ObjectStore`
and return it in reverse-chronological order (newest first).  The sort is
stable and keyed only on ``created_at``, so records created within the same
clock tick keep whatever order the store yielded them in.
"""

from __future__ import annotations

from imagedrop.core.store import IMAGE_NAMESPACE, TEXT_NAMESPACE, ObjectStore, Record


def newest_first(records: list[Record]) -> list[Record]:
    """Sort records by creation time, newest first."""
    return sorted(records, key=lambda record: record.created_at, reverse=True)


def list_images(store: ObjectStore) -> list[Record]:
    """Return all image records, newest first."""
    return newest_first(store.list_namespace(IMAGE_NAMESPACE))


def list_texts(store: ObjectStore) -> list[Record]:
    """Return all text records, newest first."""
    return newest_first(store.list_namespace(TEXT_NAMESPACE))
