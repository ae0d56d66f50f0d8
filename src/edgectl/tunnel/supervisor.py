"""Start, stop, and inspect the ``cloudflared`` tunnel daemon.

The daemon is an external binary run as
``<binary> tunnel run --token <token>``. In background mode it is detached
into its own session with its output discarded, and a
:class:`~edgectl.models.TunnelState` record is written atomically to the
state file so later invocations can report on it or stop it.

Process control uses POSIX signals.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
import signal
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from edgectl.config import atomic_write
from edgectl.exceptions import TunnelError
from edgectl.models import TunnelState, TunnelStatus

logger = logging.getLogger(__name__)

BINARY_NAME = "cloudflared"

COMMON_LOCATIONS = (
    Path("/usr/local/bin"),
    Path("/usr/bin"),
    Path("/opt/homebrew/bin"),
    Path("~/.local/bin"),
)

RELEASES_URL = "https://github.com/cloudflare/cloudflared/releases"

_LINUX_DOWNLOADS = {
    "x86_64": f"{RELEASES_URL}/latest/download/cloudflared-linux-amd64",
    "amd64": f"{RELEASES_URL}/latest/download/cloudflared-linux-amd64",
    "aarch64": f"{RELEASES_URL}/latest/download/cloudflared-linux-arm64",
    "arm64": f"{RELEASES_URL}/latest/download/cloudflared-linux-arm64",
}


def find_binary(configured: Optional[str] = None) -> Optional[Path]:
    """Locate the daemon binary.

    Checks *configured* first, then ``PATH``, then common install
    locations.
    """
    if configured:
        path = Path(configured).expanduser()
        return path if path.is_file() else None

    on_path = shutil.which(BINARY_NAME)
    if on_path:
        return Path(on_path)

    for directory in COMMON_LOCATIONS:
        candidate = directory.expanduser() / BINARY_NAME
        if candidate.is_file():
            return candidate
    return None


def install_hint(system: Optional[str] = None, machine: Optional[str] = None) -> list[str]:
    """Return shell instructions for installing the daemon on this platform."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    if system == "darwin":
        return [
            "brew install cloudflared",
            f"# or download from {RELEASES_URL}",
        ]
    if system == "linux" and machine in _LINUX_DOWNLOADS:
        return [
            f"curl -L {_LINUX_DOWNLOADS[machine]} -o cloudflared",
            "chmod +x cloudflared && sudo mv cloudflared /usr/local/bin/",
        ]
    return [f"# download a build for {system}/{machine} from {RELEASES_URL}"]


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class TunnelSupervisor:
    """Manage one background tunnel daemon per state file.

    Args:
        state_path: Where the :class:`~edgectl.models.TunnelState` JSON lives.
        binary: Configured binary path; searched for when ``None``.
    """

    def __init__(self, state_path: Path, binary: Optional[str] = None) -> None:
        self.state_path = state_path
        self._configured = binary

    @property
    def binary(self) -> Optional[Path]:
        return find_binary(self._configured)

    def _require_binary(self) -> Path:
        binary = self.binary
        if binary is None:
            raise TunnelError(
                f"{BINARY_NAME} not found. Run 'edgectl tunnel install-hint' for install instructions."
            )
        return binary

    # ------------------------------------------------------------------ #
    # State file
    # ------------------------------------------------------------------ #

    def load_state(self) -> Optional[TunnelState]:
        """Read the state file, or ``None`` if absent or unreadable."""
        if not self.state_path.exists():
            return None
        try:
            return TunnelState.model_validate_json(self.state_path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as exc:
            logger.warning("Ignoring unreadable tunnel state %s: %s", self.state_path, exc)
            return None

    def _clear_state(self) -> None:
        self.state_path.unlink(missing_ok=True)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def start(self, token: str, background: bool = True) -> Optional[TunnelState]:
        """Run the daemon with *token*.

        In background mode the process is detached and its state recorded;
        the new state is returned. In foreground mode this blocks until the
        daemon exits and returns ``None``.

        Raises:
            TunnelError: The binary is missing, a tunnel is already running,
                the process cannot be spawned, or (foreground) it exits
                non-zero.
        """
        binary = self._require_binary()
        existing = self.load_state()
        if existing is not None and _pid_alive(existing.pid):
            raise TunnelError(f"A tunnel is already running (PID {existing.pid}); stop it first")

        command = [str(binary), "tunnel", "run", "--token", token]
        logger.debug("Starting %s tunnel run (background=%s)", binary, background)

        if not background:
            try:
                returncode = subprocess.call(command)
            except OSError as exc:
                raise TunnelError(f"Cannot run {binary}: {exc}") from exc
            if returncode != 0:
                raise TunnelError(f"Tunnel exited with status {returncode}")
            return None

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise TunnelError(f"Cannot run {binary}: {exc}") from exc

        state = TunnelState(
            pid=process.pid,
            started_at=datetime.now(timezone.utc),
            binary=str(binary),
        )
        atomic_write(self.state_path, state.model_dump_json(indent=2))
        logger.info("Tunnel started with PID %d", process.pid)
        return state

    def stop(self) -> bool:
        """Send ``SIGTERM`` to the recorded daemon and forget it.

        Returns:
            ``True`` if a process was signalled, ``False`` if none was
            recorded or it had already exited.

        Raises:
            TunnelError: The process exists but may not be signalled.
        """
        state = self.load_state()
        if state is None:
            self._clear_state()
            return False

        try:
            os.kill(state.pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("Tunnel PID %d already gone", state.pid)
            self._clear_state()
            return False
        except PermissionError as exc:
            raise TunnelError(f"Not allowed to stop PID {state.pid}: {exc}") from exc

        self._clear_state()
        return True

    def status(self) -> TunnelStatus:
        """Report installation and run state. Stale state files are removed."""
        binary = self.binary
        status = TunnelStatus(
            installed=binary is not None,
            binary=str(binary) if binary else None,
            version=self._version(binary) if binary else None,
        )

        state = self.load_state()
        if state is None:
            return status
        if not _pid_alive(state.pid):
            logger.debug("Removing stale tunnel state for PID %d", state.pid)
            self._clear_state()
            return status

        uptime = datetime.now(timezone.utc) - state.started_at
        return status.model_copy(
            update={
                "running": True,
                "pid": state.pid,
                "started_at": state.started_at,
                "uptime_seconds": max(int(uptime.total_seconds()), 0),
            }
        )

    @staticmethod
    def _version(binary: Path) -> Optional[str]:
        try:
            result = subprocess.run(
                [str(binary), "--version"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired):
            return None
        return result.stdout.strip() or None
