from typing import List, Optional


class ArtworkError(Exception):
    """Base class for prize artwork resolution errors."""


class NotAvailable(ArtworkError):
    """The prize is not eligible or not yet revealed. Render nothing."""

    def __init__(self, reason: str = "not available"):
        super().__init__(reason)
        self.reason = reason


class ResolutionFailed(ArtworkError):
    """Every metadata location was tried and none produced artwork."""


class NoMetadataFound(ResolutionFailed):
    def __init__(self, attempted: Optional[List[str]] = None):
        self.attempted = list(attempted or [])
        super().__init__(f"All metadata fetch attempts failed ({len(self.attempted)} tried)")


class LoadFailed(ArtworkError):
    """A specific image or video URL could not be loaded."""

    def __init__(self, url: str, detail: str = ""):
        message = f"Failed to load {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.url = url


class ContractCallError(ArtworkError):
    """A read-only contract call reverted or the RPC request failed."""
