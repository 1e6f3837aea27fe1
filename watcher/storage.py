"""
Key/value property stores used to remember the last-seen fingerprint of
each source.

Two backends are provided: MongoDB (through motor) and a local JSON file.
Both expose the same get_property/set_property interface and report any
backend failure as StoreError.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
import structlog

from .errors import StoreError

logger = structlog.get_logger(__name__)


class PropertyStore:
    """Interface for string key/value stores. No transactions, no expiry."""

    async def connect(self) -> None:
        """Open the backend. Default is a no-op."""

    async def disconnect(self) -> None:
        """Release the backend. Default is a no-op."""

    async def get_property(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_property(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def get_properties(self, prefix: str = "") -> Dict[str, str]:
        """Return all properties whose key starts with prefix."""
        raise NotImplementedError


class MongoPropertyStore(PropertyStore):
    """
    Property store backed by a MongoDB collection.
    Each property is one document: {key, value, updated_at}.
    """

    def __init__(self, connection_url: str, database_name: str, collection_name: str = "properties"):
        """
        Initialize MongoDB property store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the properties collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None
        self.logger = logger.bind(component="mongo_property_store")

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]

            # Test connection
            await self.client.admin.command('ping')
            await self.collection.create_index("key", unique=True)

            self.logger.info(
                "Successfully connected to MongoDB",
                database=self.database_name,
                collection=self.collection_name
            )

        except PyMongoError as e:
            self.logger.error("Failed to connect to MongoDB", error=str(e))
            raise StoreError(f"cannot connect to MongoDB: {e}") from e

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            self.logger.info("Disconnected from MongoDB")

    def _require_collection(self) -> AsyncIOMotorCollection:
        if self.collection is None:
            raise StoreError("property store is not connected")
        return self.collection

    async def get_property(self, key: str) -> Optional[str]:
        collection = self._require_collection()
        try:
            document = await collection.find_one({"key": key})
        except PyMongoError as e:
            self.logger.error("Failed to read property", key=key, error=str(e))
            raise StoreError(f"cannot read {key}: {e}") from e
        return document["value"] if document else None

    async def set_property(self, key: str, value: str) -> None:
        collection = self._require_collection()
        try:
            await collection.update_one(
                {"key": key},
                {"$set": {"value": value, "updated_at": datetime.utcnow()}},
                upsert=True
            )
        except PyMongoError as e:
            self.logger.error("Failed to write property", key=key, error=str(e))
            raise StoreError(f"cannot write {key}: {e}") from e

    async def get_properties(self, prefix: str = "") -> Dict[str, str]:
        collection = self._require_collection()
        properties = {}
        try:
            query = {"key": {"$regex": f"^{re.escape(prefix)}"}} if prefix else {}
            async for document in collection.find(query):
                properties[document["key"]] = document["value"]
        except PyMongoError as e:
            self.logger.error("Failed to list properties", prefix=prefix, error=str(e))
            raise StoreError(f"cannot list properties: {e}") from e
        return properties


class JsonFilePropertyStore(PropertyStore):
    """
    Property store backed by a single JSON file.
    Intended for single-host deployments without MongoDB.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.properties: Dict[str, str] = {}
        self.logger = logger.bind(component="json_property_store")

    async def connect(self) -> None:
        """Load the state file, starting empty when it does not exist yet."""
        if not self.path.exists():
            self.properties = {}
            self.logger.info("State file not found, starting empty", path=str(self.path))
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error("Failed to load state file", path=str(self.path), error=str(e))
            raise StoreError(f"cannot load {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"{self.path} does not contain a JSON object")
        invalid = [k for k, v in data.items() if not isinstance(v, str)]
        if invalid:
            raise StoreError(f"{self.path} has non-string values for: {', '.join(invalid)}")
        self.properties = dict(data)
        self.logger.info("Loaded state file", path=str(self.path), properties=len(self.properties))

    async def get_property(self, key: str) -> Optional[str]:
        return self.properties.get(key)

    async def set_property(self, key: str, value: str) -> None:
        self.properties[key] = value
        self._save()

    async def get_properties(self, prefix: str = "") -> Dict[str, str]:
        return {k: v for k, v in self.properties.items() if k.startswith(prefix)}

    def _save(self) -> None:
        """Write all properties atomically (write to a sibling file, then rename)."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self.properties, f, indent=2, ensure_ascii=False, sort_keys=True)
            tmp_path.replace(self.path)
        except OSError as e:
            self.logger.error("Failed to save state file", path=str(self.path), error=str(e))
            raise StoreError(f"cannot save {self.path}: {e}") from e
