"""Document database access."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

import pymongo


@dataclass
class ClientInfo:
    auth_source: str = ""
    username: str = ""
    password: str = ""
    uri: str = ""
    default_database: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClientInfo":
        env = os.environ if environ is None else environ
        return cls(
            auth_source=env.get("MONGODB_AUTH_DB", ""),
            username=env.get("MONGODB_USERNAME", ""),
            password=env.get("MONGODB_PASSWORD", ""),
            uri=env.get("MONGODB_URI", ""),
            default_database=env.get("MONGODB_DEFAULT_DB", ""),
        )


def _as_document(document: Any) -> Any:
    to_document = getattr(document, "to_document", None)
    return to_document() if callable(to_document) else document


class DBClient(ABC):
    """Operations the services need from a document store."""

    @abstractmethod
    def disconnect(self) -> None: ...

    @abstractmethod
    def create_collection(self, collection_name: str) -> None: ...

    @abstractmethod
    def save_or_replace_document(self, collection_name: str, document: Any, filter: dict) -> None: ...

    @abstractmethod
    def create_index(self, collection_name: str, field: str, sort: int) -> None: ...

    @abstractmethod
    def create_2dsphere_index(self, collection_name: str, field: str) -> None: ...

    @abstractmethod
    def find(
        self,
        collection_name: str,
        filter: dict,
        projection: dict | None,
        sort: dict | None,
        page_number: int,
        page_size: int,
    ) -> list[dict]: ...


class MongoClient(DBClient):
    """DBClient backed by a pymongo client."""

    def __init__(self, client: Any, default_database: str) -> None:
        self._client = client
        self._db = client[default_database]

    def disconnect(self) -> None:
        self._client.close()

    def create_collection(self, collection_name: str) -> None:
        self._db.create_collection(collection_name)

    def save_or_replace_document(self, collection_name, document, filter) -> None:
        self._db[collection_name].replace_one(filter, _as_document(document), upsert=True)

    def create_index(self, collection_name, field, sort) -> None:
        self._db[collection_name].create_index([(field, sort)])

    def create_2dsphere_index(self, collection_name, field) -> None:
        self._db[collection_name].create_index([(field, "2dsphere")])

    def find(self, collection_name, filter, projection, sort, page_number, page_size):
        """Return one page of matching documents; page numbers start at 1."""
        kwargs: dict[str, Any] = {
            "limit": page_size,
            "skip": page_size * (page_number - 1),
        }
        if sort is not None:
            kwargs["sort"] = list(sort.items())
        if projection is not None:
            kwargs["projection"] = projection
        return list(self._db[collection_name].find(filter, **kwargs))


def create_client(client_info: ClientInfo) -> MongoClient:
    kwargs: dict[str, Any] = {}
    if client_info.username:
        kwargs["username"] = client_info.username
        kwargs["password"] = client_info.password
        if client_info.auth_source:
            kwargs["authSource"] = client_info.auth_source
    client = pymongo.MongoClient(client_info.uri or None, **kwargs)
    return MongoClient(client, client_info.default_database)