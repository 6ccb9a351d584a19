import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from prize_art.artwork import ArtworkCache, ArtworkPipeline
from prize_art.config import Config
from prize_art.fetcher import MetadataFetcher
from prize_art.models import (
    PreResolvedArtwork,
    PrizeReference,
    ResolutionOutcome,
    ResolvedMetadata,
    TokenStandard,
)
from prize_art.resolver import BaseUriResolver

from test_resolver import COLLECTION, make_contract

JSON = {"content-type": "application/json"}


def pipeline_with(contract, client, gateways, db=None) -> ArtworkPipeline:
    resolver = BaseUriResolver(contract_factory=lambda address, standard: contract)
    return ArtworkPipeline(
        resolver=resolver,
        fetcher=MetadataFetcher(client=client, gateways=gateways),
        db=db,
        gateways=gateways,
    )


async def test_erc1155_escrowed_prize_resolves_image(scripted_client, fake_gateways):
    client, transport = scripted_client({
        "https://x.test/meta/42.json": (200, JSON, json.dumps({"image": "https://x.test/img/42.png"}).encode()),
    })
    contract = make_contract(uri="https://x.test/meta/42.json")
    pipeline = pipeline_with(contract, client, fake_gateways)

    outcome = await pipeline.resolve(PrizeReference(COLLECTION, 42, TokenStandard.ERC1155, is_escrowed=True))

    assert outcome.status == ResolutionOutcome.RESOLVED
    assert outcome.image_candidates == ["https://x.test/img/42.png"]
    assert outcome.source == "https://x.test/meta/42.json"
    assert transport.requested[-1] == "https://x.test/meta/42.json"


async def test_ipfs_metadata_expands_across_gateways(scripted_client, fake_gateways):
    client, transport = scripted_client({
        "https://gw2.test/ipfs/QmDir/7": (200, JSON, json.dumps({"image": "ipfs://QmImg/7.png"}).encode()),
    })
    contract = make_contract(token_uri="ipfs://QmDir/7")
    pipeline = pipeline_with(contract, client, fake_gateways)

    outcome = await pipeline.resolve(PrizeReference(COLLECTION, 7, TokenStandard.ERC721, is_escrowed=True))

    assert transport.requested[:2] == ["https://gw1.test/ipfs/QmDir/7", "https://gw2.test/ipfs/QmDir/7"]
    assert outcome.image_candidates == [
        "https://gw1.test/ipfs/QmImg/7.png",
        "https://gw2.test/ipfs/QmImg/7.png",
        "https://gw3.test/ipfs/QmImg/7.png",
    ]


async def test_unrevealed_erc721_mintable_is_unavailable(scripted_client, fake_gateways):
    client, transport = scripted_client({})
    contract = make_contract(unrevealed_base_uri="")
    pipeline = pipeline_with(contract, client, fake_gateways)

    outcome = await pipeline.resolve(PrizeReference(COLLECTION, 1, TokenStandard.ERC721))

    assert outcome.status == ResolutionOutcome.UNAVAILABLE
    assert outcome.image_candidates == []
    assert transport.requested == []


async def test_exhausted_variants_fail(scripted_client, fake_gateways):
    client, transport = scripted_client({})
    contract = make_contract(token_uri="https://x.test/meta/3")
    pipeline = pipeline_with(contract, client, fake_gateways)

    outcome = await pipeline.resolve(PrizeReference(COLLECTION, 3, TokenStandard.ERC721, is_escrowed=True))

    assert outcome.status == ResolutionOutcome.FAILED
    assert transport.requested[0] == "https://x.test/meta/3"
    assert len(transport.requested) == 6


async def test_backend_artwork_url_short_circuits(fake_gateways):
    db = MagicMock()
    db.get_collection_artwork = AsyncMock(return_value=PreResolvedArtwork(artwork_url="https://cdn.test/a.png"))
    resolver = MagicMock()
    resolver.resolve_base_uri = AsyncMock()
    pipeline = ArtworkPipeline(resolver=resolver, db=db, gateways=fake_gateways)

    outcome = await pipeline.resolve(PrizeReference(COLLECTION, 5, TokenStandard.ERC721))

    assert outcome.image_candidates == ["https://cdn.test/a.png"]
    assert outcome.source == "backend"
    resolver.resolve_base_uri.assert_not_called()
    db.get_collection_artwork.assert_awaited_once_with(COLLECTION, 5)


async def test_unexpected_error_becomes_failed_outcome(fake_gateways):
    resolver = MagicMock()
    resolver.resolve_base_uri = AsyncMock(side_effect=RuntimeError("rpc exploded"))
    pipeline = ArtworkPipeline(resolver=resolver, gateways=fake_gateways)

    outcome = await pipeline.resolve(PrizeReference(COLLECTION, 5, TokenStandard.ERC1155))

    assert outcome.status == ResolutionOutcome.FAILED
    assert "rpc exploded" in outcome.reason


def test_timeout_policy(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MINTABLE_TIMEOUT", raising=False)
    monkeypatch.delenv("ESCROWED_TIMEOUT", raising=False)
    settings = Config()
    assert Config.MINTABLE_TIMEOUT == 5.0
    assert Config.ESCROWED_TIMEOUT == 10.0
    assert settings.mintable_timeout == 5.0
    assert settings.escrowed_timeout == 10.0
    assert settings.timeout_for(PrizeReference(COLLECTION, 1, TokenStandard.ERC721)) == settings.mintable_timeout
    assert settings.timeout_for(PrizeReference(COLLECTION, 1, TokenStandard.ERC721, is_escrowed=True)) == settings.escrowed_timeout
    assert settings.timeout_for(PrizeReference(COLLECTION, 1, TokenStandard.ERC1155)) == settings.escrowed_timeout


# --- ArtworkCache ---

def resolved(*urls) -> ResolutionOutcome:
    metadata = ResolvedMetadata(source_uri="https://src.test", raw_image_field=urls[0], image_candidates=tuple(urls))
    return ResolutionOutcome(ResolutionOutcome.RESOLVED, metadata=metadata)


class StubPipeline:
    def __init__(self, outcome=None, gate: asyncio.Event = None):
        self.outcome = outcome or resolved("https://a.test/0.png", "https://b.test/0.png")
        self.gate = gate
        self.calls = []

    async def resolve(self, prize, hint=None):
        self.calls.append(prize)
        if self.gate is not None:
            await self.gate.wait()
        return self.outcome


async def test_resolved_outcome_is_cached_by_identity():
    pipeline = StubPipeline()
    cache = ArtworkCache(pipeline)
    prize = PrizeReference(COLLECTION, 1, TokenStandard.ERC721)

    first = await cache.get_or_resolve(prize)
    second = await cache.get_or_resolve(prize)

    assert first is second
    assert len(pipeline.calls) == 1
    assert cache.state(prize).current == "https://a.test/0.png"


async def test_unavailable_outcome_is_not_cached():
    pipeline = StubPipeline(outcome=ResolutionOutcome(ResolutionOutcome.UNAVAILABLE, reason="not revealed"))
    cache = ArtworkCache(pipeline)
    prize = PrizeReference(COLLECTION, 1, TokenStandard.ERC721)

    await cache.get_or_resolve(prize)
    await cache.get_or_resolve(prize)

    assert len(pipeline.calls) == 2
    assert cache.state(prize) is None


async def test_load_failure_advances_then_exhausts():
    cache = ArtworkCache(StubPipeline())
    prize = PrizeReference(COLLECTION, 1, TokenStandard.ERC721)
    await cache.get_or_resolve(prize)

    assert cache.load_failed(prize) == "https://b.test/0.png"
    assert cache.state(prize).current_index == 1
    assert cache.load_failed(prize) is None
    assert cache.state(prize).exhausted


async def test_token_change_resets_but_escrow_toggle_does_not():
    pipeline = StubPipeline()
    cache = ArtworkCache(pipeline)
    prize = PrizeReference(COLLECTION, 1, TokenStandard.ERC721)

    cache.track("card", prize)
    await cache.get_or_resolve(prize)
    cache.load_failed(prize)

    toggled = PrizeReference(COLLECTION, 1, TokenStandard.ERC721, is_escrowed=True)
    assert cache.track("card", toggled) is False
    assert cache.state(toggled).current_index == 1
    await cache.get_or_resolve(toggled)
    assert len(pipeline.calls) == 1

    other = PrizeReference(COLLECTION, 2, TokenStandard.ERC721)
    assert cache.track("card", other) is True
    assert cache.state(prize) is None
    await cache.get_or_resolve(other)
    assert len(pipeline.calls) == 2
    assert cache.state(other).current_index == 0


async def test_in_flight_result_for_stale_identity_is_discarded():
    gate = asyncio.Event()
    pipeline = StubPipeline(gate=gate)
    cache = ArtworkCache(pipeline)
    old = PrizeReference(COLLECTION, 1, TokenStandard.ERC721)
    new = PrizeReference(COLLECTION, 2, TokenStandard.ERC721)

    cache.track("card", old)
    pending = asyncio.create_task(cache.get_or_resolve(old))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    cache.track("card", new)
    gate.set()
    outcome = await pending

    assert outcome.status == ResolutionOutcome.UNAVAILABLE
    assert outcome.reason == "superseded"
    assert cache.state(old) is None


async def test_release_cancels_in_flight_work():
    gate = asyncio.Event()
    cache = ArtworkCache(StubPipeline(gate=gate))
    prize = PrizeReference(COLLECTION, 1, TokenStandard.ERC721)

    cache.track("card", prize)
    pending = asyncio.create_task(cache.get_or_resolve(prize))
    await asyncio.sleep(0)
    cache.release("card")

    outcome = await pending
    assert outcome.reason == "superseded"
    assert cache.state(prize) is None
