"""Player state machine.

The player is a pure function of its state: every transition returns a new
:class:`PlayerState` plus the :class:`Effect` the audio output has to carry
out.  Songs are always addressed by id, and next/previous move within the
list currently visible through the search filter.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, replace


class PlaybackResult(enum.Enum):
    """What the audio output reported after being asked to play."""

    OK = "ok"
    BLOCKED = "playback_blocked"


class Effect(enum.Enum):
    """Side effect requested from the audio output by a transition."""

    NONE = "none"
    LOAD = "load"  # load the current song's URL and start playing
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


@dataclass(frozen=True)
class Track:
    """A song as the player sees it."""

    id: str
    title: str
    url: str

    @classmethod
    def from_api(cls, data: dict) -> Track:
        return cls(id=str(data["_id"]), title=data["title"], url=data["url"])


@dataclass(frozen=True)
class PlayerState:
    songs: tuple[Track, ...] = ()
    current_id: str | None = None
    is_playing: bool = False
    search_query: str = ""
    loaded: bool = False
    error: str | None = None
    ended: bool = False  # current song played to its end and the output is idle

    @property
    def status(self) -> str:
        if not self.loaded:
            return "idle"
        if self.current is None:
            return "loaded"
        return "playing" if self.is_playing else "paused"

    @property
    def current(self) -> Track | None:
        if self.current_id is None:
            return None
        return next((s for s in self.songs if s.id == self.current_id), None)

    @property
    def visible(self) -> tuple[Track, ...]:
        return filter_songs(self.songs, self.search_query)


def filter_songs(songs: Iterable[Track], query: str) -> tuple[Track, ...]:
    """Songs whose title contains *query*, ignoring case.  An empty query matches all."""
    needle = query.casefold()
    if not needle:
        return tuple(songs)
    return tuple(s for s in songs if needle in s.title.casefold())


# ---------------------------------------------------------------------------
# Catalog fetch
# ---------------------------------------------------------------------------


def loaded(state: PlayerState, songs: Iterable[Track]) -> PlayerState:
    songs = tuple(songs)
    current_id = state.current_id if any(s.id == state.current_id for s in songs) else None
    return replace(
        state,
        songs=songs,
        loaded=True,
        error=None,
        current_id=current_id,
        is_playing=state.is_playing and current_id is not None,
        ended=state.ended and current_id is not None,
    )


def failed(state: PlayerState, message: str) -> PlayerState:
    return replace(state, songs=(), loaded=True, error=message, current_id=None, is_playing=False, ended=False)


# ---------------------------------------------------------------------------
# Playback transitions
# ---------------------------------------------------------------------------


def select(state: PlayerState, song_id: str) -> tuple[PlayerState, Effect]:
    """Select a song: toggle if it is already current, otherwise start it.

    A current song that already ended is started again from the beginning.
    """
    if song_id == state.current_id and state.current is not None and not state.ended:
        if state.is_playing:
            return replace(state, is_playing=False), Effect.PAUSE
        return replace(state, is_playing=True), Effect.RESUME
    if not any(s.id == song_id for s in state.songs):
        return state, Effect.NONE
    return replace(state, current_id=song_id, is_playing=True, ended=False), Effect.LOAD


def _step(state: PlayerState, offset: int) -> tuple[PlayerState, Effect] | None:
    view = state.visible
    ids = [s.id for s in view]
    if state.current_id not in ids:
        return None
    index = ids.index(state.current_id) + offset
    if not 0 <= index < len(view):
        return None
    return replace(state, current_id=view[index].id, is_playing=True, ended=False), Effect.LOAD


def next_song(state: PlayerState) -> tuple[PlayerState, Effect]:
    return _step(state, 1) or (state, Effect.NONE)


def previous_song(state: PlayerState) -> tuple[PlayerState, Effect]:
    return _step(state, -1) or (state, Effect.NONE)


def on_ended(state: PlayerState) -> tuple[PlayerState, Effect]:
    """The current song reached its end: advance, or stop after the last one."""
    step = _step(state, 1)
    if step is not None:
        return step
    if state.is_playing:
        return replace(state, is_playing=False, ended=True), Effect.STOP
    return state, Effect.NONE


def search(state: PlayerState, query: str) -> PlayerState:
    return replace(state, search_query=query)


def apply_playback(state: PlayerState, result: PlaybackResult) -> PlayerState:
    """Fold the audio output's answer back in; a blocked start is not retried."""
    if result is PlaybackResult.BLOCKED:
        return replace(state, is_playing=False)
    return state
