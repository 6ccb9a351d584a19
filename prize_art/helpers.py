import os
import re
from typing import Dict, Optional

from eth_utils import keccak

ENV_FILE = ".env"

ZERO_HASH = "0x" + "0" * 64
_BYTES32_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")


# --- Env Helpers ---
def load_env(path: str = ENV_FILE) -> Dict[str, str]:
    """Load env vars from .env file."""
    env = {}
    if os.path.exists(path):
        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, val = line.split("=", 1)
                    env[key.strip()] = val.strip()
    return env


def get_env_var(key: str) -> Optional[str]:
    """Get a specific env var, process environment first, then .env file."""
    value = os.getenv(key)
    if value:
        return value
    return load_env().get(key)


# --- Hash Helpers ---
def is_bytes32_hash(value: Optional[str]) -> bool:
    """True for a 0x-prefixed 32-byte hex string (a stored URI hash, not a URI)."""
    if not value or not isinstance(value, str):
        return False
    return _BYTES32_RE.match(value) is not None


def is_zero_hash(value: Optional[str]) -> bool:
    return bool(value) and value.lower() == ZERO_HASH


def compute_uri_hash(uri: str) -> str:
    """keccak256 of the UTF-8 URI, as stored on-chain."""
    if not uri or not uri.strip():
        return ZERO_HASH
    return "0x" + keccak(text=uri).hex()


def is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def token_id_hex(token_id: int) -> str:
    """Token id as an unsigned integer zero-padded to 64 lowercase hex chars."""
    if token_id < 0:
        raise ValueError(f"token id must be non-negative, got {token_id}")
    return format(token_id, "064x")


def classify_uri(uri: Optional[str]) -> str:
    """Rough classification of a metadata URI, used for logging."""
    if not uri:
        return "empty"
    if uri.startswith("data:"):
        return "data_uri"
    if uri.startswith("ipfs://"):
        return "ipfs"
    if uri.startswith("ipns://"):
        return "ipns"
    if uri.startswith("ar://"):
        return "arweave"
    if "/ipfs/" in uri or "/ipns/" in uri:
        return "gateway_url"
    if re.search(r"/\d+$", uri):
        return "numeric_endpoint"
    if "{id}" in uri:
        return "template_format"
    if uri.endswith("/"):
        return "base_directory"
    return "unknown_format"
