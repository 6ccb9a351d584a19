import re
from typing import List, Union

from .helpers import token_id_hex
from .models import TokenStandard

# Trailing token-id segment: decimal digits or a 64-char hex id, optionally .json
TERMINAL_ID_RE = re.compile(r"/(?:[0-9]+|[a-fA-F0-9]{64})(?:\.json)?$")
ROOT_STRIP_RE = re.compile(r"/?(?:[0-9]+|[a-fA-F0-9]{64})(?:\.json)?$")

ID_TEMPLATE = "{id}"


def _root_candidates(uri: str) -> List[str]:
    root = ROOT_STRIP_RE.sub("", uri, count=1)
    if not root or root == uri:
        return []
    return [root, f"{root}/", f"{root}/index.json", f"{root}/metadata.json"]


def _hex_substitutions(uri: str, id_str: str, hex_lower: str, hex_upper: str) -> List[str]:
    out = []
    escaped = re.escape(id_str)
    for pattern, prefix in ((rf"/{escaped}(?:\.json)?$", "/"), (rf"{escaped}(?:\.json)?$", "")):
        if re.search(pattern, uri) is None:
            continue
        for hex_id in (hex_lower, hex_upper):
            out.append(re.sub(pattern, prefix + hex_id, uri, count=1))
            out.append(re.sub(pattern, prefix + hex_id + ".json", uri, count=1))
    return out


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def build_variants(
    base_uri: str,
    token_id: Union[int, str],
    standard: TokenStandard,
    prioritize_root: bool = False,
) -> List[str]:
    """
    Build every plausible location of a token's metadata JSON.

    The order is priority order and is fully determined by the inputs:
    more specific locations come first, duplicates keep their first position.

    Args:
        base_uri: URI returned by the contract (tokenURI, uri, unrevealed URI...)
        token_id: Token id, a non-negative integer
        standard: ERC721 or ERC1155; only ERC1155 gets hex-encoded id variants
        prioritize_root: Try the collection root before the token URI (ERC721)

    Returns:
        De-duplicated list of URI strings, not yet expanded across gateways
    """
    if not base_uri or not base_uri.strip():
        return []

    token_id = int(token_id)
    id_str = str(token_id)
    hex_lower = token_id_hex(token_id)
    hex_upper = hex_lower.upper()
    is_1155 = standard == TokenStandard.ERC1155
    is_721 = standard == TokenStandard.ERC721

    variants: List[str] = []

    if TERMINAL_ID_RE.search(base_uri):
        if is_1155 or prioritize_root:
            variants.extend(_root_candidates(base_uri))
        variants.append(base_uri)
        if not base_uri.endswith(".json"):
            variants.append(f"{base_uri}.json")
        if is_721:
            variants.extend(_root_candidates(base_uri))
        if is_1155:
            variants.extend(_hex_substitutions(base_uri, id_str, hex_lower, hex_upper))
    else:
        had_trailing_slash = base_uri.endswith("/")
        clean = base_uri[:-1] if had_trailing_slash else base_uri

        variants.append(base_uri)
        if had_trailing_slash:
            variants.append(f"{clean}/")
        variants.append(f"{clean}.json")
        variants.append(f"{clean}/index.json")
        variants.append(f"{clean}/metadata.json")

        encodings = [hex_lower, hex_upper, id_str] if is_1155 else [id_str]
        for encoded in encodings:
            variants.append(f"{clean}/{encoded}")
            variants.append(f"{clean}{encoded}")
            variants.append(f"{clean}/{encoded}.json")
            variants.append(f"{clean}{encoded}.json")

    if ID_TEMPLATE in base_uri:
        # ERC-1155 clients substitute lowercase 64-char hex first
        for encoded in (hex_lower, id_str, hex_upper):
            variants.append(base_uri.replace(ID_TEMPLATE, encoded))

    return _dedupe(variants)
