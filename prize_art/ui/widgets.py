import asyncio
import logging
from typing import Optional

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

from ..artwork import ArtworkCache
from ..errors import LoadFailed
from ..models import PreResolvedArtwork, PrizeReference, ResolutionOutcome
from .image_renderer import is_video, render_image_to_ansi

logger = logging.getLogger(__name__)


class PrizeImageCard(Static):
    """Shows prize artwork, stepping through fallback candidates as they fail to load."""

    LOADING = "loading"
    SHOWING = "showing"
    UNAVAILABLE = "unavailable"
    HIDDEN = "hidden"

    def __init__(self, cache: ArtworkCache, image_width: int = 30, id: str = None):
        super().__init__(id=id)
        self.cache = cache
        self.image_width = image_width
        self.prize: Optional[PrizeReference] = None
        self.status = self.HIDDEN
        self.current_url: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def slot(self):
        return self.id or id(self)

    def compose(self) -> ComposeResult:
        yield Vertical(
            Static("", id="prize_image", classes="image-container"),
            Static("", id="prize_caption"),
        )

    def update_prize(self, prize: PrizeReference, hint: Optional[PreResolvedArtwork] = None) -> None:
        """Point the card at prize; only an identity change restarts resolution."""
        self.prize = prize
        changed = self.cache.track(self.slot, prize)
        if not changed and (self.status != self.HIDDEN or self._task is not None):
            return

        self._start(prize, hint)

    def reload(self, hint: Optional[PreResolvedArtwork] = None) -> None:
        """Drop cached artwork for the current prize and resolve it again."""
        if self.prize is None:
            return
        self.cache.invalidate(self.prize.key)
        self._start(self.prize, hint)

    def _start(self, prize: PrizeReference, hint: Optional[PreResolvedArtwork]) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._set_status(self.LOADING)
        self._task = asyncio.create_task(self.load_artwork(prize, hint))

    async def load_artwork(self, prize: PrizeReference, hint: Optional[PreResolvedArtwork] = None) -> None:
        outcome = await self.cache.get_or_resolve(prize, hint)
        if self.prize is None or self.prize.key != prize.key:
            return

        if outcome.status == ResolutionOutcome.UNAVAILABLE:
            # Not eligible or not revealed yet: render nothing
            self._set_status(self.HIDDEN)
            return
        if outcome.status == ResolutionOutcome.FAILED:
            self._set_status(self.UNAVAILABLE)
            return

        await self.show_candidates(prize)

    async def show_candidates(self, prize: PrizeReference) -> None:
        state = self.cache.state(prize)
        url = state.current if state else None

        while url is not None:
            if self.prize is None or self.prize.key != prize.key:
                return
            self.current_url = url
            if is_video(url):
                self._set_status(self.SHOWING, caption=Text("Video: ", style="bold") + Text(url, style=f"link {url}"))
                return
            try:
                ansi = await render_image_to_ansi(url, width=self.image_width)
            except LoadFailed as e:
                logger.debug(f"Candidate {state.current_index} failed: {e}")
                url = self.cache.load_failed(prize)
                continue
            except Exception as e:
                logger.warning(f"Candidate {state.current_index} raised {type(e).__name__}: {e}")
                url = self.cache.load_failed(prize)
                continue
            self._set_status(self.SHOWING, image=Text.from_ansi(ansi), caption=Text(url, style=f"link {url}"))
            return

        self.current_url = None
        self._set_status(self.UNAVAILABLE)

    def _set_status(self, status: str, image: Optional[Text] = None, caption: Optional[Text] = None) -> None:
        self.status = status
        if not self.is_mounted:
            return
        image_widget = self.query_one("#prize_image", Static)
        caption_widget = self.query_one("#prize_caption", Static)

        self.display = status != self.HIDDEN
        if status == self.LOADING:
            image_widget.update("")
            caption_widget.update(Text("Loading prize media...", style="italic"))
        elif status == self.UNAVAILABLE:
            image_widget.update("")
            caption_widget.update(Text("Artwork unavailable", style="dim"))
        elif status == self.SHOWING:
            image_widget.update(image or "")
            caption_widget.update(caption or "")

    def on_unmount(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.cache.release(self.slot)
