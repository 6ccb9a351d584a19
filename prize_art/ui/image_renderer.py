import io
import re
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from ..errors import LoadFailed
from ..fetcher import decode_data_uri

VIDEO_RE = re.compile(r"\.(mp4|webm|ogg)$", re.IGNORECASE)


def is_video(url: Optional[str]) -> bool:
    if not url:
        return False
    if url.startswith("data:"):
        return url[len("data:"):].lower().startswith("video/")
    return VIDEO_RE.search(url) is not None


def image_to_ansi(img_data: bytes, width: int = 30) -> str:
    """
    Converts image bytes to a string of block characters with ANSI colors.
    Uses the upper-half block char '▀' to fit two vertical pixels into one terminal line.
    """
    img = Image.open(io.BytesIO(img_data))
    img = img.convert("RGB")

    # One character cell is about two pixels tall, so equal pixel counts look square
    height = width
    if height % 2 != 0:
        height += 1

    img = img.resize((width, height), Image.Resampling.LANCZOS)

    pixels = img.load()
    result = []

    for y in range(0, height, 2):
        line = []
        for x in range(width):
            r1, g1, b1 = pixels[x, y]
            r2, g2, b2 = pixels[x, y + 1] if y + 1 < height else (0, 0, 0)

            # Upper half block: Foreground = Top pixel, Background = Bottom pixel
            line.append(f"\x1b[38;2;{r1};{g1};{b1};48;2;{r2};{g2};{b2}m▀")

        result.append("".join(line) + "\x1b[0m")

    return "\n".join(result)


async def download_image(url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """Fetch one candidate's bytes. Raises LoadFailed on any error."""
    if url.startswith("data:"):
        try:
            return decode_data_uri(url)[1]
        except ValueError as e:
            raise LoadFailed(url, str(e)) from e

    headers = {"User-Agent": "Mozilla/5.0"}
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout, follow_redirects=True, headers=headers)
        else:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.get(url, timeout=timeout, follow_redirects=True, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        # ValueError covers IDNA errors for malformed hosts
        raise LoadFailed(url, str(e)) from e

    if response.status_code != 200:
        raise LoadFailed(url, f"HTTP {response.status_code}")
    return response.content


async def render_image_to_ansi(url: str, width: int = 30, timeout: float = 10.0,
                               client: Optional[httpx.AsyncClient] = None) -> str:
    """Download one image candidate and rasterise it. Raises LoadFailed."""
    if not url:
        raise LoadFailed(url, "empty URL")
    img_data = await download_image(url, timeout=timeout, client=client)
    try:
        return image_to_ansi(img_data, width=width)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise LoadFailed(url, f"not a decodable image: {e}") from e
