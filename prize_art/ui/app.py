from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Footer, Header, Label

from ..artwork import ArtworkCache
from ..config import config
from ..models import PreResolvedArtwork, PrizeReference
from .widgets import PrizeImageCard


class PrizeViewerApp(App):
    """A Textual app showing the artwork of one raffle prize."""

    TITLE = "Prize Art Viewer"
    CSS = """
    #prize_card {
        width: auto;
        height: auto;
        border: round #89b4fa;
        padding: 1;
    }
    .image-container {
        width: auto;
        height: auto;
    }
    #prize_title {
        color: #a6adc8;
        margin-bottom: 1;
    }
    """
    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "reload", "Reload"),
    ]

    def __init__(self, prize: PrizeReference, cache: Optional[ArtworkCache] = None,
                 hint: Optional[PreResolvedArtwork] = None, image_width: int = 40):
        super().__init__()
        self.prize = prize
        self.hint = hint
        self.cache = cache or ArtworkCache()
        self.image_width = image_width

    def compose(self) -> ComposeResult:
        yield Header()
        with Container():
            yield Label(self._title(), id="prize_title")
            yield PrizeImageCard(self.cache, image_width=self.image_width, id="prize_card")
        yield Footer()

    def _title(self) -> str:
        standard = self.prize.standard.name if self.prize.standard is not None else "unknown"
        kind = "escrowed" if self.prize.is_escrowed else "mintable"
        return f"{self.prize.collection_address} #{self.prize.token_id} ({standard}, {kind})"

    async def on_mount(self) -> None:
        db = self.cache.pipeline.db
        if db is not None and not db.connected:
            if await db.connect(retries=2):
                await config.load_from_db(db)
            else:
                self.cache.pipeline.db = None
                self.notify("Artwork cache unavailable, using on-chain reads only.", severity="warning")
        self.query_one(PrizeImageCard).update_prize(self.prize, self.hint)

    def action_reload(self) -> None:
        """Drop cached artwork for this prize and resolve it again."""
        self.query_one(PrizeImageCard).reload(self.hint)
        self.notify("Reloading artwork...")
