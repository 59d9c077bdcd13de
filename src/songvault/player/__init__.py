"""Terminal player: state machine, catalog client and mpv output."""

from songvault.player.client import CatalogClient, ServerError, fetch_state
from songvault.player.session import PlayerSession
from songvault.player.state import Effect, PlaybackResult, PlayerState, Track, filter_songs

__all__ = [
    "CatalogClient",
    "Effect",
    "PlaybackResult",
    "PlayerSession",
    "PlayerState",
    "ServerError",
    "Track",
    "fetch_state",
    "filter_songs",
]
