import json
import logging
import os
from typing import Dict, Optional

from .helpers import compute_uri_hash, is_bytes32_hash, is_zero_hash

logger = logging.getLogger(__name__)


class UriRegistry:
    """
    Resolves bytes32 URI hashes stored on-chain back to URI strings.

    Backed by a JSON file of the form
    {"hashes": {hash: uri}, "collections": {address: {uri_type: uri}}}.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.hashes: Dict[str, str] = {}
        self.collections: Dict[str, Dict[str, str]] = {}
        if path:
            self.load()

    def load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read URI registry {self.path}: {e}")
            return
        self.hashes = {k.lower(): v for k, v in data.get("hashes", {}).items()}
        self.collections = {k.lower(): v for k, v in data.get("collections", {}).items()}

    def save(self) -> None:
        if not self.path:
            return
        with open(self.path, "w") as f:
            json.dump({"hashes": self.hashes, "collections": self.collections}, f, indent=2)

    def register(self, uri: str) -> str:
        """Store uri under its keccak256 hash and return the hash."""
        uri_hash = compute_uri_hash(uri)
        self.hashes[uri_hash.lower()] = uri
        self.save()
        return uri_hash

    def register_collection(self, collection_address: str, uri_type: str, uri: str) -> None:
        self.collections.setdefault(collection_address.lower(), {})[uri_type] = uri
        self.save()

    async def resolve_uri_or_hash(
        self,
        value: Optional[str],
        collection_address: Optional[str] = None,
        uri_type: Optional[str] = None,
    ) -> Optional[str]:
        """Return a URI for value, which may already be a URI or a bytes32 hash."""
        if not value or is_zero_hash(value):
            return None
        if not is_bytes32_hash(value):
            return value

        key = value.lower()
        if key in self.hashes:
            return self.hashes[key]

        if collection_address and uri_type:
            uri = self.collections.get(collection_address.lower(), {}).get(uri_type)
            if uri and compute_uri_hash(uri).lower() == key:
                return uri

        logger.debug(f"Unresolved URI hash {value}")
        return None
