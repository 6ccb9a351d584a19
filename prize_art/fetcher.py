import asyncio
import base64
import json
import logging
import re
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar
from urllib.parse import unquote

import httpx

from .config import GatewayConfig
from .errors import NoMetadataFound
from .gateways import expand_to_http
from .models import ResolvedMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEDIA_FIELDS = (
    "image",
    "image_url",
    "imageUrl",
    "animation_url",
    "animationUrl",
    "media",
    "artwork",
)
MEDIA_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|gif|svg|webp|mp4|webm|ogg)$", re.IGNORECASE)
DEFAULT_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "User-Agent": "Mozilla/5.0",
}


async def first_successful(
    attempts: Sequence[Tuple[str, Callable[[], Awaitable[Optional[T]]]]],
) -> T:
    """
    Run labelled attempts one after another and return the first non-None result.

    Exceptions from an attempt count as a miss and the next attempt runs.
    Cancellation is never swallowed. Raises NoMetadataFound with every label
    once all attempts have missed.
    """
    attempted: List[str] = []
    for label, attempt in attempts:
        attempted.append(label)
        try:
            result = await attempt()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Attempt failed for {label}: {type(e).__name__}: {e}")
            continue
        if result is not None:
            return result
        logger.debug(f"No artwork at {label}")
    raise NoMetadataFound(attempted)


def extract_image_candidates(
    metadata: Any, gateways: Optional[GatewayConfig] = None
) -> Optional[Tuple[str, List[str]]]:
    """Return (raw field value, gateway-expanded URLs) for the first media field set."""
    if not isinstance(metadata, dict):
        return None
    for name in MEDIA_FIELDS:
        value = metadata.get(name)
        if not value or not isinstance(value, str):
            continue
        raw = value.strip()
        if raw:
            return raw, expand_to_http(raw, gateways)
    return None


def decode_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split a data: URI into (mime type, decoded payload)."""
    header, sep, payload = uri[len("data:"):].partition(",")
    if not sep:
        raise ValueError("data URI has no payload separator")
    params = header.split(";")
    mime = params[0].strip().lower() or "text/plain"
    if "base64" in (p.strip().lower() for p in params[1:]):
        return mime, base64.b64decode(payload)
    return mime, unquote(payload).encode("utf-8")


def is_media_mime(mime: Optional[str]) -> bool:
    if not mime:
        return False
    mime = mime.lower()
    return mime.startswith("image/") or mime.startswith("video/")


def _media_result(uri: str) -> ResolvedMetadata:
    return ResolvedMetadata(source_uri=uri, raw_image_field=uri, image_candidates=(uri,))


async def fetch_with_timeout(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
    """GET url, cancelling the request if it has not completed within timeout seconds."""
    return await asyncio.wait_for(
        client.get(url, headers=DEFAULT_HEADERS, timeout=timeout),
        timeout=timeout,
    )


class MetadataFetcher:
    """Tries metadata locations in priority order until one yields artwork."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, gateways: Optional[GatewayConfig] = None):
        self.client = client
        self.gateways = gateways

    def _from_metadata(self, uri: str, metadata: Any) -> Optional[ResolvedMetadata]:
        found = extract_image_candidates(metadata, self.gateways)
        if not found:
            return None
        raw, candidates = found
        return ResolvedMetadata(source_uri=uri, raw_image_field=raw, image_candidates=tuple(candidates))

    def _from_data_uri(self, uri: str) -> Optional[ResolvedMetadata]:
        mime, payload = decode_data_uri(uri)
        if "application/json" in mime:
            return self._from_metadata(uri, json.loads(payload))
        if is_media_mime(mime):
            return _media_result(uri)
        return None

    async def _attempt(self, client: httpx.AsyncClient, uri: str, timeout: float) -> Optional[ResolvedMetadata]:
        if uri.startswith("data:"):
            return self._from_data_uri(uri)

        response = await fetch_with_timeout(client, uri, timeout)
        if not response.is_success:
            logger.debug(f"HTTP {response.status_code} for {uri}")
            return None

        try:
            metadata = json.loads(response.content)
        except ValueError:
            content_type = response.headers.get("content-type", "")
            if is_media_mime(content_type) or MEDIA_EXTENSION_RE.search(uri):
                return _media_result(uri)
            return None
        return self._from_metadata(uri, metadata)

    async def resolve(self, variants: Sequence[str], timeout: float) -> ResolvedMetadata:
        """
        Resolve metadata by trying each variant in order.

        Args:
            variants: HTTP/data URIs, already expanded across gateways
            timeout: Per-attempt timeout in seconds

        Returns:
            ResolvedMetadata from the first variant that yields artwork

        Raises:
            NoMetadataFound: every variant was tried without success
        """
        if self.client is not None:
            return await self._resolve_with(self.client, variants, timeout)
        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await self._resolve_with(client, variants, timeout)

    async def _resolve_with(self, client: httpx.AsyncClient, variants: Sequence[str], timeout: float) -> ResolvedMetadata:
        attempts = [
            (uri, lambda uri=uri: self._attempt(client, uri, timeout))
            for uri in variants
        ]
        result = await first_successful(attempts)
        logger.info(f"Resolved artwork from {result.source_uri}")
        return result
