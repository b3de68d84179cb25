"""
Storage backends for the play timer dataset.

Every backend exposes the same two operations, ``load_dataset`` and
``save_dataset``, over the whole Dataset aggregate. Writes are last write
wins. Backend failures surface as StoreError.
"""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as SchemaError
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings
from errors import StoreError
from schemas import Dataset

logger = logging.getLogger(__name__)


def parse_dataset(raw: Optional[Dict[str, Any]]) -> Dataset:
    """Build a Dataset from a stored document, filling absent keys with defaults."""
    raw = raw or {}
    try:
        return Dataset(
            children=raw.get("children") or [],
            games=raw.get("games") or [],
            sessions=raw.get("sessions") or [],
            nextChildId=raw.get("nextChildId") or 1,
            nextGameId=raw.get("nextGameId") or 1,
            nextSessionId=raw.get("nextSessionId") or 1,
        )
    except SchemaError as exc:
        raise StoreError(f"Stored dataset is malformed: {exc}") from exc


class Store(ABC):
    name = "abstract"

    @abstractmethod
    def load_dataset(self) -> Dataset:
        ...

    @abstractmethod
    def save_dataset(self, dataset: Dataset) -> None:
        ...


class MemoryStore(Store):
    name = "memory"

    def __init__(self, dataset: Optional[Dataset] = None):
        self._dataset = dataset.model_copy(deep=True) if dataset else Dataset()

    def load_dataset(self) -> Dataset:
        return self._dataset.model_copy(deep=True)

    def save_dataset(self, dataset: Dataset) -> None:
        self._dataset = dataset.model_copy(deep=True)


class JsonFileStore(Store):
    """Keeps the dataset as one JSON document on disk."""

    name = "file"

    def __init__(self, path):
        self.path = Path(path)

    def load_dataset(self) -> Dataset:
        if not self.path.exists():
            return Dataset()
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            raise StoreError(f"Could not read {self.path}: {exc}") from exc
        return parse_dataset(raw)

    def save_dataset(self, dataset: Dataset) -> None:
        payload = dataset.model_dump()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"Could not write {self.path}: {exc}") from exc
        logger.debug("Dataset written to %s", self.path)


class MongoStore(Store):
    """One collection per record type plus a counters document."""

    name = "mongo"
    COUNTERS_ID = "dataset"

    def __init__(self, db):
        self.db = db

    @classmethod
    def from_url(cls, url: str, name: str) -> "MongoStore":
        return cls(MongoClient(url)[name])

    def load_dataset(self) -> Dataset:
        try:
            raw: Dict[str, Any] = {
                "children": list(self.db["child"].find({}, {"_id": 0})),
                "games": list(self.db["game"].find({}, {"_id": 0})),
                "sessions": list(self.db["session"].find({}, {"_id": 0})),
            }
            counters = self.db["counter"].find_one({"_id": self.COUNTERS_ID}) or {}
        except PyMongoError as exc:
            raise StoreError(f"Could not load dataset from MongoDB: {exc}") from exc
        raw.update({k: v for k, v in counters.items() if k != "_id"})
        return parse_dataset(raw)

    def save_dataset(self, dataset: Dataset) -> None:
        collections = (
            ("child", dataset.children),
            ("game", dataset.games),
            ("session", dataset.sessions),
        )
        try:
            for collection, records in collections:
                for record in records:
                    self.db[collection].replace_one({"id": record.id}, record.model_dump(), upsert=True)
                ids = [r.id for r in records]
                self.db[collection].delete_many({"id": {"$nin": ids}})
            self.db["counter"].update_one(
                {"_id": self.COUNTERS_ID},
                {"$set": {
                    "nextChildId": dataset.nextChildId,
                    "nextGameId": dataset.nextGameId,
                    "nextSessionId": dataset.nextSessionId,
                }},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StoreError(f"Could not save dataset to MongoDB: {exc}") from exc


class JsonBinStore(Store):
    """Remote JSON blob API: the whole dataset lives in a single bin."""

    name = "jsonbin"

    def __init__(self, api_key: str, bin_id: str, base_url: str = "https://api.jsonbin.io/v3/b",
                 client: Optional[httpx.Client] = None):
        self.bin_url = f"{base_url.rstrip('/')}/{bin_id}"
        self.client = client or httpx.Client(timeout=15)
        self.headers = {"X-Master-Key": api_key, "Content-Type": "application/json"}

    def load_dataset(self) -> Dataset:
        try:
            r = self.client.get(f"{self.bin_url}/latest", headers=self.headers)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise StoreError(f"Could not load dataset from JSON bin: {exc}") from exc
        return parse_dataset(data.get("record"))

    def save_dataset(self, dataset: Dataset) -> None:
        try:
            r = self.client.put(self.bin_url, headers=self.headers, json=dataset.model_dump())
            r.raise_for_status()
        except httpx.HTTPError as exc:
            raise StoreError(f"Could not save dataset to JSON bin: {exc}") from exc


def make_store(settings: Settings) -> Store:
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryStore()
    if backend == "file":
        return JsonFileStore(settings.data_file)
    if backend == "mongo":
        if not settings.database_url:
            raise ValueError("DATABASE_URL is required for the mongo backend")
        return MongoStore.from_url(settings.database_url, settings.database_name)
    if backend == "jsonbin":
        if not settings.jsonbin_api_key or not settings.jsonbin_bin_id:
            raise ValueError("JSONBIN_API_KEY and JSONBIN_BIN_ID are required for the jsonbin backend")
        return JsonBinStore(settings.jsonbin_api_key, settings.jsonbin_bin_id, settings.jsonbin_base_url)
    raise ValueError(f"Unknown storage backend: {backend}")
