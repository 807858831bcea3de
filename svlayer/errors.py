"""
Exceptions raised by the tile pipeline.

`FetchError` and `InvalidTileError` are reported to the host as tile-load
failures. `TileCancelled` never reaches the host: the layer reports a
cancelled tile as a blank success.
"""


class SvLayerError(Exception):
    """Base class for every svlayer error."""


class FetchError(SvLayerError):
    """A single source tile could not be downloaded or decoded."""

    def __init__(self, address, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Failed to load tile {address.url}: {reason}")


class TileCancelled(SvLayerError):
    """The tile request's cancellation token was signalled."""


class InvalidTileError(SvLayerError, ValueError):
    """The requested host tile maps outside the source resolution table."""
