import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from .helpers import get_env_var
from .models import PrizeReference, TokenStandard

logger = logging.getLogger(__name__)

DEFAULT_IPFS_GATEWAYS = (
    "https://ipfs.io/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://dweb.link/ipfs/",
)
DEFAULT_ARWEAVE_GATEWAYS = ("https://arweave.net/",)


def _split_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class GatewayConfig:
    """Ordered public gateway bases. First entry is the most preferred."""
    ipfs: Tuple[str, ...] = DEFAULT_IPFS_GATEWAYS
    arweave: Tuple[str, ...] = DEFAULT_ARWEAVE_GATEWAYS
    ipns: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        # Tuples keep the order fixed; lists passed in are frozen here
        object.__setattr__(self, "ipfs", tuple(self.ipfs))
        object.__setattr__(self, "arweave", tuple(self.arweave))
        if not self.ipns:
            object.__setattr__(self, "ipns", tuple(g.replace("/ipfs/", "/ipns/") for g in self.ipfs))
        else:
            object.__setattr__(self, "ipns", tuple(self.ipns))

    @classmethod
    def from_lists(cls, ipfs: Sequence[str], arweave: Optional[Sequence[str]] = None) -> "GatewayConfig":
        return cls(ipfs=tuple(ipfs), arweave=tuple(arweave or DEFAULT_ARWEAVE_GATEWAYS))


class Config:
    """Manages application configuration."""

    MINTABLE_TIMEOUT = 5.0
    ESCROWED_TIMEOUT = 10.0

    def __init__(self):
        self.rpc_url = get_env_var("RPC_URL") or "https://mainnet.base.org"
        self.mongo_uri = get_env_var("MONGO_URI") or "mongodb://localhost:27017"
        self.registry_file = get_env_var("URI_REGISTRY_FILE") or "uri_registry.json"
        self.mintable_timeout = float(get_env_var("MINTABLE_TIMEOUT") or self.MINTABLE_TIMEOUT)
        self.escrowed_timeout = float(get_env_var("ESCROWED_TIMEOUT") or self.ESCROWED_TIMEOUT)
        self.gateways = GatewayConfig(
            ipfs=_split_list(get_env_var("IPFS_GATEWAYS")) or DEFAULT_IPFS_GATEWAYS,
            arweave=_split_list(get_env_var("ARWEAVE_GATEWAYS")) or DEFAULT_ARWEAVE_GATEWAYS,
        )

    def timeout_for(self, prize: PrizeReference) -> float:
        """Per-attempt fetch timeout in seconds for this prize."""
        if prize.standard == TokenStandard.ERC721 and not prize.is_escrowed:
            return self.mintable_timeout
        return self.escrowed_timeout

    async def load_from_db(self, db) -> None:
        """Override gateway lists and timeouts from the settings collection."""
        if not db.connected:
            return

        try:
            ipfs = await db.get_setting("ipfs_gateways")
            arweave = await db.get_setting("arweave_gateways")
            if ipfs or arweave:
                self.gateways = GatewayConfig(
                    ipfs=tuple(ipfs or self.gateways.ipfs),
                    arweave=tuple(arweave or self.gateways.arweave),
                )

            mintable = await db.get_setting("mintable_timeout")
            if mintable:
                self.mintable_timeout = float(mintable)

            escrowed = await db.get_setting("escrowed_timeout")
            if escrowed:
                self.escrowed_timeout = float(escrowed)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid settings from database: {e}")


# Global config instance
config = Config()
