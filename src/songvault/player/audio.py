"""Audio output backed by an ``mpv`` subprocess controlled over JSON IPC."""

from __future__ import annotations

import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any

import structlog

from songvault.player.state import PlaybackResult

log = structlog.get_logger(__name__)

_SOCKET_TIMEOUT = 5.0


def mpv_available() -> bool:
    """Check if mpv is installed."""
    try:
        result = subprocess.run(["mpv", "--version"], capture_output=True, text=True, timeout=5)
    except (subprocess.SubprocessError, OSError):
        return False
    return result.returncode == 0


class MpvOutput:
    """Drives one idle mpv process; every call reports instead of raising."""

    def __init__(self, socket_path: Path | None = None) -> None:
        self.socket_path = socket_path or Path(tempfile.gettempdir()) / f"songvault-mpv-{os.getpid()}"
        self._process: subprocess.Popen | None = None

    def start(self) -> bool:
        self.socket_path.unlink(missing_ok=True)
        try:
            self._process = subprocess.Popen(
                [
                    "mpv",
                    "--idle=yes",
                    "--no-video",
                    "--no-terminal",
                    f"--input-ipc-server={self.socket_path}",
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as exc:
            log.error("mpv_start_failed", error=str(exc))
            return False

        deadline = time.monotonic() + _SOCKET_TIMEOUT
        while not self.socket_path.exists():
            if time.monotonic() > deadline:
                log.error("mpv_socket_timeout", path=str(self.socket_path))
                self.stop()
                return False
            time.sleep(0.1)
        return True

    def stop(self) -> None:
        if self._process is not None:
            self._process.kill()
            try:
                self._process.wait(timeout=2.0)
            except subprocess.TimeoutExpired:
                log.warning("mpv_did_not_exit", pid=self._process.pid)
            self._process = None
        self.socket_path.unlink(missing_ok=True)

    def _command(self, *args: Any) -> dict | None:
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(2.0)
                sock.connect(str(self.socket_path))
                sock.sendall((json.dumps({"command": list(args)}) + "\n").encode("utf-8"))
                raw = sock.recv(4096).decode("utf-8")
        except OSError as exc:
            log.debug("mpv_command_failed", command=args[0], error=str(exc))
            return None
        # mpv may interleave event lines with the reply
        for line in raw.splitlines():
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if "error" in data:
                return data
        return None

    def _ok(self, *args: Any) -> bool:
        reply = self._command(*args)
        return reply is not None and reply.get("error") == "success"

    # -- output operations --

    def play(self, url: str) -> PlaybackResult:
        if self._ok("loadfile", url, "replace") and self._ok("set_property", "pause", False):
            return PlaybackResult.OK
        return PlaybackResult.BLOCKED

    def resume(self) -> PlaybackResult:
        return PlaybackResult.OK if self._ok("set_property", "pause", False) else PlaybackResult.BLOCKED

    def pause(self) -> None:
        self._ok("set_property", "pause", True)

    def halt(self) -> None:
        self._ok("stop")

    def has_ended(self) -> bool:
        """True once mpv went idle after playing a file to its end."""
        reply = self._command("get_property", "idle-active")
        return bool(reply and reply.get("error") == "success" and reply.get("data") is True)
