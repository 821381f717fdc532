"""In-memory DBClient that answers queries with preset responses."""

from __future__ import annotations

import copy
import hashlib
import json
from typing import Any

from .db import DBClient, _as_document


def _default(value: Any) -> Any:
    to_document = getattr(value, "to_document", None)
    if callable(to_document):
        return to_document()
    raise TypeError(f"cannot serialise {type(value).__name__}")


def hash_json(data: str | bytes) -> str:
    """Hash a JSON object independently of its key order and number spelling."""
    obj = json.loads(data, parse_int=float)
    canonical = json.dumps(obj, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def generate_key(collection_name, filter, projection, sort, page_number, page_size) -> str:
    data = json.dumps(
        {
            "collectionName": collection_name,
            "filter": filter,
            "projection": projection,
            "sort": sort,
            "pageNumber": page_number,
            "pageSize": page_size,
        },
        default=_default,
    )
    return hash_json(data)


class MockDBClient(DBClient):
    def __init__(self) -> None:
        self._responses: dict[str, list[Any]] = {}

    def disconnect(self) -> None:
        pass

    def create_collection(self, collection_name) -> None:
        pass

    def save_or_replace_document(self, collection_name, document, filter) -> None:
        self.set_response(collection_name, filter, None, None, 0, 0, [_as_document(document)])

    def create_index(self, collection_name, field, sort) -> None:
        pass

    def create_2dsphere_index(self, collection_name, field) -> None:
        pass

    def find(self, collection_name, filter, projection, sort, page_number, page_size):
        return self.get_response(collection_name, filter, projection, sort, page_number, page_size)

    def set_response(self, collection_name, filter, projection, sort, page_number, page_size, result):
        key = generate_key(collection_name, filter, projection, sort, page_number, page_size)
        self._responses[key] = [copy.deepcopy(_as_document(r)) for r in result]

    def get_response(self, collection_name, filter, projection, sort, page_number, page_size):
        key = generate_key(collection_name, filter, projection, sort, page_number, page_size)
        return copy.deepcopy(self._responses.get(key, []))