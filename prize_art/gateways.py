from typing import List, Optional
from urllib.parse import urlsplit

from .config import GatewayConfig, config


def _strip_prefix(value: str, prefix: str) -> str:
    if value.startswith(prefix):
        return value[len(prefix):]
    return value


def _join(gateways, path: str) -> List[str]:
    return [f"{gateway}{path}" for gateway in gateways]


def expand_to_http(uri: str, gateways: Optional[GatewayConfig] = None) -> List[str]:
    """
    Convert a decentralized-storage URI into HTTP(S) URLs, one per gateway.

    Handles ipfs://, ipns://, ar://, and HTTP URLs that already point at an
    /ipfs/ or /ipns/ path or an Arweave host. Anything else comes back as
    [uri] so the result is never empty.
    """
    gateways = gateways or config.gateways
    if not uri:
        return [uri]

    if uri.startswith("ipfs://"):
        path = _strip_prefix(uri[len("ipfs://"):], "ipfs/")
        return _join(gateways.ipfs, path)

    if uri.startswith("ipns://"):
        path = _strip_prefix(uri[len("ipns://"):], "ipns/")
        return _join(gateways.ipns, path)

    if uri.startswith("ar://"):
        return _join(gateways.arweave, uri[len("ar://"):])

    try:
        parts = urlsplit(uri)
    except ValueError:
        return [uri]
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return [uri]

    pathname = parts.path.replace("/ipfs/ipfs/", "/ipfs/")
    segments = [s for s in pathname.split("/") if s]

    if "ipfs" in segments:
        idx = segments.index("ipfs")
        if idx + 1 < len(segments):
            return _join(gateways.ipfs, "/".join(segments[idx + 1:]))

    if "ipns" in segments:
        idx = segments.index("ipns")
        if idx + 1 < len(segments):
            return _join(gateways.ipns, "/".join(segments[idx + 1:]))

    host = (parts.hostname or "").lower()
    if host == "arweave.net" or host.endswith(".arweave.net"):
        return _join(gateways.arweave, "/".join(segments))

    return [uri]


def expand_all(uris, gateways: Optional[GatewayConfig] = None) -> List[str]:
    """Expand every variant in order and drop repeated URLs."""
    seen = set()
    out = []
    for uri in uris:
        for url in expand_to_http(uri, gateways):
            if url not in seen:
                seen.add(url)
                out.append(url)
    return out
