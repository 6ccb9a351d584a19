import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from .config import config
from .contracts import PrizeContract
from .errors import NotAvailable
from .helpers import is_blank, is_bytes32_hash, is_zero_hash
from .models import PreResolvedArtwork, PrizeReference, TokenStandard

logger = logging.getLogger(__name__)


async def safe_call(call: Callable[[], Awaitable[Any]]) -> Any:
    """Run a contract read, mapping any failure to None (value absent)."""
    try:
        return await call()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(f"Contract read failed: {e}")
        return None


def _first_present(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if not is_blank(value):
            return value
    return None


class BaseUriResolver:
    """Decides which base URI feeds the variant constructor for a prize."""

    def __init__(
        self,
        registry=None,
        contract_factory: Optional[Callable[[str, TokenStandard], Any]] = None,
        rpc_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.registry = registry
        self.rpc_url = rpc_url or config.rpc_url
        self.client = client
        self.contract_factory = contract_factory or self._default_contract

    def _default_contract(self, address: str, standard: TokenStandard) -> PrizeContract:
        return PrizeContract(address, standard, self.rpc_url, client=self.client)

    async def _resolve_hash(self, value: str, prize: PrizeReference, uri_type: str) -> Optional[str]:
        if self.registry is None:
            logger.debug(f"No URI registry configured to resolve {value}")
            return None
        resolved = await safe_call(
            lambda: self.registry.resolve_uri_or_hash(
                value, collection_address=prize.collection_address, uri_type=uri_type
            )
        )
        return None if is_blank(resolved) else resolved

    async def _hashed_unrevealed_uri(self, contract, prize: PrizeReference) -> Optional[str]:
        uri_hash = await safe_call(contract.unrevealed_uri_hash)
        if not isinstance(uri_hash, str) or not is_bytes32_hash(uri_hash) or is_zero_hash(uri_hash):
            return None
        return await self._resolve_hash(uri_hash, prize, "unrevealedURI")

    def _from_hint(self, hint: Optional[PreResolvedArtwork]) -> Optional[str]:
        if hint is None:
            return None
        return _first_present(hint.drop_uri, hint.unrevealed_uri, hint.base_uri)

    async def resolve_base_uri(
        self, prize: PrizeReference, hint: Optional[PreResolvedArtwork] = None
    ) -> str:
        """
        Return the base URI for prize.

        Raises:
            NotAvailable: the prize is not eligible, not yet revealed, or no
                source produced a usable URI
        """
        if not prize.should_fetch:
            raise NotAvailable("prize has no collection or token standard")

        hinted = self._from_hint(hint)
        if hinted and not is_bytes32_hash(hinted):
            logger.debug(f"Using backend URI for {prize.collection_address}")
            return hinted
        if hinted:
            uri_type = "dropURI" if hinted == hint.drop_uri else "unrevealedURI"
            resolved = await self._resolve_hash(hinted, prize, uri_type)
            if resolved:
                return resolved

        contract = self.contract_factory(prize.collection_address, prize.standard)
        if contract is None:
            raise NotAvailable("no contract for collection")

        if prize.standard == TokenStandard.ERC721:
            if prize.is_mintable:
                base_uri = await self._erc721_mintable(contract, prize)
            else:
                base_uri = await self._erc721_escrowed(contract, prize)
        else:
            if prize.is_mintable:
                base_uri = await self._erc1155_mintable(contract, prize)
            else:
                base_uri = await self._erc1155_escrowed(contract, prize)

        if is_bytes32_hash(base_uri):
            base_uri = await self._resolve_hash(base_uri, prize, "unrevealedURI")

        if is_blank(base_uri):
            raise NotAvailable("no metadata URI available")
        return base_uri

    async def _erc721_mintable(self, contract, prize: PrizeReference) -> Optional[str]:
        base_uri = await safe_call(contract.unrevealed_base_uri)
        if is_blank(base_uri) or is_bytes32_hash(base_uri):
            hashed = await self._hashed_unrevealed_uri(contract, prize)
            if hashed:
                return hashed
        if is_blank(base_uri):
            raise NotAvailable("collection not yet revealed")
        return base_uri

    async def _erc721_escrowed(self, contract, prize: PrizeReference) -> Optional[str]:
        base_uri = await safe_call(lambda: contract.token_uri(prize.token_id))
        if base_uri is None:
            raise NotAvailable("tokenURI read failed")
        return base_uri

    async def _erc1155_mintable(self, contract, prize: PrizeReference) -> Optional[str]:
        unrevealed_uri, token_uri, revealed = await asyncio.gather(
            safe_call(contract.unrevealed_uri),
            safe_call(lambda: contract.token_uri(prize.token_id)),
            safe_call(contract.is_revealed),
        )
        if revealed is not None:
            revealed = bool(revealed)

        async def generic_uri() -> Optional[str]:
            return _first_present(await safe_call(lambda: contract.uri(prize.token_id)))

        if revealed is False:
            base_uri = _first_present(unrevealed_uri, token_uri) or await generic_uri()
        elif revealed is True:
            base_uri = _first_present(token_uri) or await generic_uri() or _first_present(unrevealed_uri)
        else:
            # Reveal state unknown: tokenURI is preferred, same as a revealed collection
            base_uri = _first_present(token_uri, unrevealed_uri) or await generic_uri()

        if base_uri is None:
            hashed = await self._hashed_unrevealed_uri(contract, prize)
            if hashed:
                return hashed
        return base_uri

    async def _erc1155_escrowed(self, contract, prize: PrizeReference) -> Optional[str]:
        base_uri = await safe_call(lambda: contract.uri(prize.token_id))
        if base_uri is None:
            raise NotAvailable("uri() read failed")
        return base_uri
