"""Glue between the player state machine and an audio output."""

from __future__ import annotations

from typing import Protocol

import structlog

from songvault.player import state as sm
from songvault.player.state import Effect, PlaybackResult, PlayerState

log = structlog.get_logger(__name__)


class AudioOutput(Protocol):
    def play(self, url: str) -> PlaybackResult: ...

    def resume(self) -> PlaybackResult: ...

    def pause(self) -> None: ...

    def halt(self) -> None: ...

    def has_ended(self) -> bool: ...


class PlayerSession:
    """Holds the current state and carries out each transition's effect."""

    def __init__(self, output: AudioOutput, state: PlayerState | None = None) -> None:
        self.output = output
        self.state = state or PlayerState()

    def _apply(self, transition: tuple[PlayerState, Effect]) -> PlayerState:
        self.state, effect = transition
        result = PlaybackResult.OK
        if effect is Effect.LOAD and self.state.current is not None:
            result = self.output.play(self.state.current.url)
        elif effect is Effect.RESUME:
            result = self.output.resume()
        elif effect is Effect.PAUSE:
            self.output.pause()
        elif effect is Effect.STOP:
            self.output.halt()
        if result is PlaybackResult.BLOCKED:
            log.warning("playback_blocked", song_id=self.state.current_id)
        self.state = sm.apply_playback(self.state, result)
        return self.state

    def select(self, song_id: str) -> PlayerState:
        return self._apply(sm.select(self.state, song_id))

    def select_visible(self, position: int) -> PlayerState:
        """Select by 1-based position in the visible list."""
        view = self.state.visible
        if not 1 <= position <= len(view):
            return self.state
        return self.select(view[position - 1].id)

    def next(self) -> PlayerState:
        return self._apply(sm.next_song(self.state))

    def previous(self) -> PlayerState:
        return self._apply(sm.previous_song(self.state))

    def search(self, query: str) -> PlayerState:
        self.state = sm.search(self.state, query)
        return self.state

    def poll(self) -> PlayerState:
        """Advance to the next song if the output finished the current one."""
        if self.state.is_playing and self.output.has_ended():
            return self._apply(sm.on_ended(self.state))
        return self.state
