import asyncio
import logging
import os
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from .models import PreResolvedArtwork

logger = logging.getLogger(__name__)


class Database:
    """Async MongoDB reader for the backend artwork cache and settings."""

    def __init__(self, uri: Optional[str] = None, name: str = "prize_art"):
        self.uri = uri
        self.name = name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None
        self.artwork = None
        self.settings = None
        self.connected = False

    async def connect(self, retries: int = 5, initial_delay: float = 1.0) -> bool:
        """Initialize connection to MongoDB with retry logic.

        Args:
            retries: Number of connection attempts (default 5)
            initial_delay: Initial delay between retries in seconds (doubles each retry)
        """
        if self.connected:
            return True

        delay = initial_delay
        uri = self.uri or os.getenv("MONGO_URI", "mongodb://localhost:27017")

        for attempt in range(1, retries + 1):
            try:
                self.client = AsyncIOMotorClient(uri, serverSelectionTimeoutMS=3000)

                # Verify connection (fails fast)
                await self.client.admin.command("ping")

                self.db = self.client[self.name]
                self.artwork = self.db["artwork"]
                self.settings = self.db["settings"]

                self.connected = True
                logger.info(f"MongoDB connected on attempt {attempt}")
                return True

            except Exception as e:
                logger.warning(f"MongoDB connection attempt {attempt}/{retries} failed: {e}")
                if attempt < retries:
                    await asyncio.sleep(delay)
                    delay *= 2
                else:
                    logger.error(f"MongoDB connection failed after {retries} attempts: {e}")
                    self.connected = False

        return False

    async def close(self):
        if self.client:
            self.client.close()
        self.connected = False

    async def get_collection_artwork(
        self, collection_address: str, token_id: Optional[int] = None
    ) -> Optional[PreResolvedArtwork]:
        """Pre-resolved artwork for a collection, token-specific entry first."""
        if not self.connected or not collection_address:
            return None
        address = collection_address.lower()
        try:
            doc = None
            if token_id is not None:
                doc = await self.artwork.find_one({"collection": address, "tokenId": token_id})
            if doc is None:
                doc = await self.artwork.find_one({"collection": address, "tokenId": None})
            if doc is None:
                return None
            return PreResolvedArtwork.from_document(doc)
        except Exception as e:
            logger.error(f"Get Collection Artwork Error: {e}")
            return None

    async def get_setting(self, key: str, default: Any = None) -> Any:
        if not self.connected:
            return default
        try:
            doc = await self.settings.find_one({"key": key})
            if not doc:
                return default
            return doc.get("value", default)
        except Exception as e:
            logger.error(f"Get Setting Error: {e}")
            return default
