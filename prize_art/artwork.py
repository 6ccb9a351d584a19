import asyncio
import logging
from typing import Dict, Hashable, Optional, Tuple

from .config import Config, GatewayConfig, config
from .errors import NotAvailable, ResolutionFailed
from .fetcher import MetadataFetcher
from .gateways import expand_all
from .models import PreResolvedArtwork, PrizeReference, RenderState, ResolutionOutcome, ResolvedMetadata
from .resolver import BaseUriResolver
from .variants import build_variants

logger = logging.getLogger(__name__)

PrizeKey = Tuple[str, Optional[int], Optional[int]]


class ArtworkPipeline:
    """Base URI -> variants -> gateway URLs -> metadata -> image candidates."""

    def __init__(
        self,
        resolver: Optional[BaseUriResolver] = None,
        fetcher: Optional[MetadataFetcher] = None,
        db=None,
        gateways: Optional[GatewayConfig] = None,
        settings: Optional[Config] = None,
    ):
        self.settings = settings or config
        self._gateways = gateways
        self.resolver = resolver or BaseUriResolver()
        self.fetcher = fetcher or MetadataFetcher(gateways=gateways)
        self.db = db

    @property
    def gateways(self) -> GatewayConfig:
        return self._gateways or self.settings.gateways

    async def _hint_for(self, prize: PrizeReference) -> Optional[PreResolvedArtwork]:
        if self.db is None:
            return None
        return await self.db.get_collection_artwork(prize.collection_address, prize.token_id)

    def metadata_urls(self, base_uri: str, prize: PrizeReference):
        variants = build_variants(base_uri, prize.token_id, prize.standard)
        return expand_all(variants, self.gateways)

    async def resolve(self, prize: PrizeReference, hint: Optional[PreResolvedArtwork] = None) -> ResolutionOutcome:
        """Resolve artwork for prize. Always returns an outcome, never raises (except on cancel)."""
        if not prize.should_fetch:
            return ResolutionOutcome(ResolutionOutcome.UNAVAILABLE, reason="prize not eligible")

        try:
            if hint is None:
                hint = await self._hint_for(prize)

            if hint is not None and hint.artwork_url:
                url = hint.artwork_url
                metadata = ResolvedMetadata(source_uri=url, raw_image_field=url, image_candidates=(url,))
                return ResolutionOutcome(ResolutionOutcome.RESOLVED, metadata=metadata, source="backend")

            base_uri = await self.resolver.resolve_base_uri(prize, hint)
            urls = self.metadata_urls(base_uri, prize)
            timeout = self.settings.timeout_for(prize)
            logger.debug(f"Trying {len(urls)} metadata URLs for {prize.key} (timeout {timeout}s)")
            metadata = await self.fetcher.resolve(urls, timeout)
            return ResolutionOutcome(ResolutionOutcome.RESOLVED, metadata=metadata, source=metadata.source_uri)

        except NotAvailable as e:
            logger.info(f"Artwork not available for {prize.key}: {e.reason}")
            return ResolutionOutcome(ResolutionOutcome.UNAVAILABLE, reason=e.reason)
        except ResolutionFailed as e:
            logger.warning(f"Artwork resolution failed for {prize.key}: {e}")
            return ResolutionOutcome(ResolutionOutcome.FAILED, reason=str(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error resolving artwork for {prize.key}")
            return ResolutionOutcome(ResolutionOutcome.FAILED, reason=f"{type(e).__name__}: {e}")


class ArtworkCache:
    """
    Identity-keyed render state for prize cards.

    Keys are (collection, token id, standard). A card slot switching to a new
    key drops the old state and cancels work still running for it; toggling
    only is_escrowed keeps the same key and so keeps the resolved artwork.
    """

    def __init__(self, pipeline: Optional[ArtworkPipeline] = None):
        self.pipeline = pipeline or ArtworkPipeline()
        self.states: Dict[PrizeKey, RenderState] = {}
        self.outcomes: Dict[PrizeKey, ResolutionOutcome] = {}
        self._tasks: Dict[PrizeKey, asyncio.Task] = {}
        self._generation: Dict[PrizeKey, int] = {}
        self._slots: Dict[Hashable, PrizeKey] = {}

    def track(self, slot: Hashable, prize: PrizeReference) -> bool:
        """Point a card slot at prize. Returns True if the identity changed."""
        key = prize.key
        previous = self._slots.get(slot)
        self._slots[slot] = key
        if previous is None:
            return True
        if previous == key:
            return False
        if previous not in self._slots.values():
            self.invalidate(previous)
        return True

    def release(self, slot: Hashable) -> None:
        """Forget a slot (card unmounted); cancel its work if nothing else shows it."""
        key = self._slots.pop(slot, None)
        if key is not None and key not in self._slots.values():
            self.invalidate(key)

    def invalidate(self, key: PrizeKey) -> None:
        self._generation[key] = self._generation.get(key, 0) + 1
        self.states.pop(key, None)
        self.outcomes.pop(key, None)
        task = self._tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    def state(self, prize: PrizeReference) -> Optional[RenderState]:
        return self.states.get(prize.key)

    def load_failed(self, prize: PrizeReference) -> Optional[str]:
        """Advance past the candidate that failed to load; None once exhausted."""
        state = self.states.get(prize.key)
        if state is None:
            return None
        return state.advance()

    async def get_or_resolve(self, prize: PrizeReference, hint: Optional[PreResolvedArtwork] = None) -> ResolutionOutcome:
        key = prize.key
        cached = self.outcomes.get(key)
        if cached is not None:
            return cached

        generation = self._generation.get(key, 0)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self.pipeline.resolve(prize, hint))
            self._tasks[key] = task

        await asyncio.wait({task})

        if task.cancelled() or self._generation.get(key, 0) != generation:
            # Superseded by an identity change while in flight; drop the result
            return ResolutionOutcome(ResolutionOutcome.UNAVAILABLE, reason="superseded")

        if self._tasks.get(key) is task:
            del self._tasks[key]
        outcome = task.result()
        if outcome.status == ResolutionOutcome.RESOLVED:
            self.outcomes[key] = outcome
            self.states[key] = outcome.render_state()
        return outcome
