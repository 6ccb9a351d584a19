from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class TokenStandard(IntEnum):
    """Prize token standard as encoded by the pool contract."""
    ERC721 = 0
    ERC1155 = 1


@dataclass(frozen=True)
class PrizeReference:
    """Identifies which artwork to resolve. Never mutated after creation."""
    collection_address: Optional[str]
    token_id: Optional[int]
    standard: Optional[TokenStandard]
    is_escrowed: bool = False

    @property
    def key(self) -> Tuple[str, Optional[int], Optional[int]]:
        # is_escrowed is left out on purpose: it flips on unrelated live updates
        address = (self.collection_address or "").lower()
        standard = int(self.standard) if self.standard is not None else None
        return (address, self.token_id, standard)

    @property
    def should_fetch(self) -> bool:
        if not self.collection_address or self.collection_address.lower() == ZERO_ADDRESS:
            return False
        if self.standard is None:
            return False
        return self.token_id is not None and self.token_id >= 0

    @property
    def is_mintable(self) -> bool:
        return not self.is_escrowed


@dataclass(frozen=True)
class PreResolvedArtwork:
    """Values served by the backend artwork cache for one collection."""
    drop_uri: Optional[str] = None
    unrevealed_uri: Optional[str] = None
    base_uri: Optional[str] = None
    artwork_url: Optional[str] = None

    @classmethod
    def from_document(cls, doc: dict) -> "PreResolvedArtwork":
        return cls(
            drop_uri=doc.get("dropUri"),
            unrevealed_uri=doc.get("unrevealedUri"),
            base_uri=doc.get("baseUri"),
            artwork_url=doc.get("artworkUrl"),
        )


@dataclass(frozen=True)
class ResolvedMetadata:
    source_uri: str
    raw_image_field: str
    image_candidates: Tuple[str, ...]


@dataclass
class RenderState:
    """Fallback bookkeeping for one prize card."""
    image_candidates: List[str] = field(default_factory=list)
    current_index: int = 0

    @property
    def current(self) -> Optional[str]:
        if self.exhausted:
            return None
        return self.image_candidates[self.current_index]

    @property
    def exhausted(self) -> bool:
        return self.current_index >= len(self.image_candidates)

    def advance(self) -> Optional[str]:
        """Move past a candidate that failed to load and return the next one."""
        if not self.exhausted:
            self.current_index += 1
        return self.current


@dataclass
class ResolutionOutcome:
    """Definite result of resolving one prize: resolved, unavailable or failed."""
    status: str
    metadata: Optional[ResolvedMetadata] = None
    reason: Optional[str] = None
    source: Optional[str] = None

    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"

    @property
    def image_candidates(self) -> List[str]:
        if self.metadata is None:
            return []
        return list(self.metadata.image_candidates)

    def render_state(self) -> RenderState:
        return RenderState(image_candidates=self.image_candidates)
