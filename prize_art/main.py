import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

from .artwork import ArtworkPipeline
from .config import config
from .contracts import PrizeContract
from .database import Database
from .gateways import expand_to_http
from .helpers import classify_uri
from .models import PrizeReference, ResolutionOutcome, TokenStandard
from .registry import UriRegistry
from .resolver import BaseUriResolver, safe_call
from .variants import build_variants

console = Console()

STANDARDS = {"721": TokenStandard.ERC721, "1155": TokenStandard.ERC1155}


def parse_standard(value: Optional[str]) -> Optional[TokenStandard]:
    if value is None:
        return None
    return STANDARDS[value]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="prize-art", description="Resolve NFT prize artwork.")
    parser.add_argument("--log-file", default="prize_art.log")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_prize_args(p):
        p.add_argument("collection", help="Prize collection contract address")
        p.add_argument("token_id", type=int)
        p.add_argument("--standard", choices=sorted(STANDARDS), help="Detected via ERC-165 when omitted")
        p.add_argument("--escrowed", action="store_true", help="Prize is a specific escrowed token")
        p.add_argument("--rpc-url", default=None)
        p.add_argument("--registry", default=None, help="URI hash registry JSON file")
        p.add_argument("--use-cache", action="store_true", help="Read pre-resolved artwork from MongoDB")

    add_prize_args(sub.add_parser("resolve", help="Print image candidates for a prize"))
    add_prize_args(sub.add_parser("view", help="Show prize artwork in the terminal"))

    variants = sub.add_parser("variants", help="List metadata locations for a base URI")
    variants.add_argument("base_uri")
    variants.add_argument("token_id", type=int)
    variants.add_argument("--standard", choices=sorted(STANDARDS), default="721")
    variants.add_argument("--expand", action="store_true", help="Expand across gateways")

    info = sub.add_parser("info", help="Show collection name, symbol, owner and standard")
    info.add_argument("collection")
    info.add_argument("--rpc-url", default=None)
    return parser


async def prepare_prize(args) -> PrizeReference:
    standard = parse_standard(args.standard)
    if standard is None:
        contract = PrizeContract(args.collection, None, args.rpc_url or config.rpc_url)
        standard = await contract.detect_standard()
    return PrizeReference(args.collection, args.token_id, standard, is_escrowed=args.escrowed)


def build_pipeline(args, db: Optional[Database] = None) -> ArtworkPipeline:
    registry = UriRegistry(args.registry or config.registry_file)
    resolver = BaseUriResolver(registry=registry, rpc_url=args.rpc_url)
    return ArtworkPipeline(resolver=resolver, db=db)


async def connect_cache(args) -> Optional[Database]:
    db = None
    if args.use_cache:
        db = Database(config.mongo_uri)
        if await db.connect(retries=2):
            await config.load_from_db(db)
        else:
            console.print("[yellow]Artwork cache unavailable, using on-chain reads only.[/]")
            db = None
    return db


async def cmd_resolve(args) -> int:
    prize = await prepare_prize(args)
    pipeline = build_pipeline(args, db=await connect_cache(args))
    try:
        outcome = await pipeline.resolve(prize)
    finally:
        if pipeline.db is not None:
            await pipeline.db.close()

    if outcome.status == ResolutionOutcome.UNAVAILABLE:
        console.print(f"[dim]No artwork to show ({outcome.reason}).[/]")
        return 0
    if outcome.status == ResolutionOutcome.FAILED:
        console.print(f"[red]Artwork unavailable:[/] {outcome.reason}")
        return 1

    console.print(f"[bold]Source:[/] {outcome.source}")
    for i, url in enumerate(outcome.image_candidates):
        console.print(f"  {i}: {url}")
    return 0


def cmd_variants(args) -> int:
    standard = parse_standard(args.standard)
    table = Table("#", "Variant", "Kind")
    for i, variant in enumerate(build_variants(args.base_uri, args.token_id, standard)):
        if args.expand:
            for url in expand_to_http(variant):
                table.add_row(str(i), url, classify_uri(variant))
        else:
            table.add_row(str(i), variant, classify_uri(variant))
    console.print(table)
    return 0


async def cmd_info(args) -> int:
    contract = PrizeContract(args.collection, None, args.rpc_url or config.rpc_url)
    name, symbol, owner, standard = await asyncio.gather(
        safe_call(contract.name),
        safe_call(contract.symbol),
        safe_call(contract.owner),
        contract.detect_standard(),
    )
    table = Table("Field", "Value")
    table.add_row("Name", name or "-")
    table.add_row("Symbol", symbol or "-")
    table.add_row("Owner", owner or "-")
    table.add_row("Standard", standard.name if standard is not None else "unknown")
    console.print(table)
    return 0


def cmd_view(args) -> int:
    from .artwork import ArtworkCache
    from .ui.app import PrizeViewerApp

    prize = asyncio.run(prepare_prize(args))
    # The database client must live on the app event loop, so it connects on mount
    db = Database(config.mongo_uri) if args.use_cache else None
    pipeline = build_pipeline(args, db=db)
    PrizeViewerApp(prize, cache=ArtworkCache(pipeline)).run()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        filename=args.log_file,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "variants":
        return cmd_variants(args)
    if args.command == "view":
        return cmd_view(args)
    if args.command == "info":
        return asyncio.run(cmd_info(args))
    return asyncio.run(cmd_resolve(args))


if __name__ == "__main__":
    sys.exit(main())
