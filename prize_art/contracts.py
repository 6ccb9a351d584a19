import logging
from typing import Any, Optional, Sequence

import httpx
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from .errors import ContractCallError
from .models import TokenStandard

logger = logging.getLogger(__name__)

ERC721_INTERFACE_ID = bytes.fromhex("80ac58cd")
ERC1155_INTERFACE_ID = bytes.fromhex("d9b67a26")


class PrizeContract:
    """Read-only view of a prize collection contract over JSON-RPC eth_call."""

    def __init__(
        self,
        address: str,
        standard: Optional[TokenStandard],
        rpc_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            address: Collection contract address
            standard: ERC721 or ERC1155, None when not yet detected
            rpc_url: EVM JSON-RPC endpoint
            client: Shared HTTP client, a short-lived one is created per call otherwise
            timeout: Per-call timeout in seconds
        """
        self.address = address
        self.standard = standard
        self.rpc_url = rpc_url
        self.client = client
        self.timeout = timeout

    async def _post(self, payload: dict) -> dict:
        if self.client is not None:
            response = await self.client.post(self.rpc_url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.rpc_url, json=payload)
        if response.status_code != 200:
            raise ContractCallError(f"RPC HTTP error: {response.status_code}")
        return response.json()

    async def call(
        self,
        signature: str,
        arg_types: Sequence[str] = (),
        args: Sequence[Any] = (),
        return_types: Sequence[str] = ("string",),
    ) -> Any:
        """Execute a view function and decode its single return value."""
        data = function_signature_to_4byte_selector(signature)
        if arg_types:
            data += encode(list(arg_types), list(args))

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [{"to": self.address, "data": "0x" + data.hex()}, "latest"],
        }
        try:
            result = await self._post(payload)
        except httpx.HTTPError as e:
            raise ContractCallError(f"{signature} request failed: {e}") from e

        if "error" in result:
            message = result["error"].get("message", "") if isinstance(result["error"], dict) else result["error"]
            raise ContractCallError(f"{signature} reverted: {message}")

        raw = result.get("result")
        if not raw or raw == "0x":
            raise ContractCallError(f"{signature} returned no data")

        try:
            return decode(list(return_types), bytes.fromhex(raw[2:]))[0]
        except Exception as e:
            raise ContractCallError(f"{signature} returned undecodable data: {e}") from e

    # --- Collection info ---

    async def name(self) -> str:
        return await self.call("name()")

    async def symbol(self) -> str:
        return await self.call("symbol()")

    async def owner(self) -> str:
        return await self.call("owner()", return_types=("address",))

    async def supports_interface(self, interface_id: bytes) -> bool:
        return await self.call("supportsInterface(bytes4)", ("bytes4",), (interface_id,), ("bool",))

    # --- Metadata locations ---

    async def unrevealed_base_uri(self) -> str:
        return await self.call("unrevealedBaseURI()")

    async def unrevealed_uri(self) -> str:
        return await self.call("unrevealedURI()")

    async def token_uri(self, token_id: int) -> str:
        return await self.call("tokenURI(uint256)", ("uint256",), (token_id,))

    async def uri(self, token_id: int) -> str:
        return await self.call("uri(uint256)", ("uint256",), (token_id,))

    async def is_revealed(self) -> bool:
        return await self.call("isRevealed()", return_types=("bool",))

    async def unrevealed_uri_hash(self) -> str:
        value = await self.call("unrevealedURIHash()", return_types=("bytes32",))
        return "0x" + value.hex()

    async def detect_standard(self) -> Optional[TokenStandard]:
        """ERC-165 probe. Returns None when neither interface is reported."""
        try:
            if await self.supports_interface(ERC721_INTERFACE_ID):
                return TokenStandard.ERC721
            if await self.supports_interface(ERC1155_INTERFACE_ID):
                return TokenStandard.ERC1155
        except ContractCallError as e:
            logger.debug(f"supportsInterface failed for {self.address}: {e}")
        return None
