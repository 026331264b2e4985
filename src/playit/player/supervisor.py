"""
Player process lifecycle.

The PID file is the single record of "a player is running". start claims it
with an exclusive create before spawning, so two concurrent starts cannot
both succeed. stop signals the recorded PID and removes the record
best-effort; the player removes it itself on a clean exit.

Two supervisors share that logic:
- SubprocessSupervisor spawns `python -m playit run-music` detached
- InProcessSupervisor runs the player loop on a thread (tests, embedding)
"""

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..config import Config
from ..errors import (
    AlreadyRunningError,
    NotRunningError,
    PlaylistEmptyError,
    SupervisorError,
)
from ..library.playlist import PlaylistStore
from .sequencer import CancellationToken

logger = logging.getLogger(__name__)

# How long start waits for a player whose record vanished to finish exiting
START_GRACE_SECONDS = 1.0


@dataclass
class DaemonStatus:
    running: bool
    pid: Optional[int] = None


class DaemonRecord:
    """The PID file shared by the controller and the player process."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read_pid(self) -> Optional[int]:
        """
        Return the recorded PID.

        Returns:
            The PID, or None if the record is absent or claimed but not yet
            written.

        Raises:
            SupervisorError: If the record holds something other than a PID.
        """
        try:
            text = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise SupervisorError(f"Error reading PID file: {e}")
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            raise SupervisorError(f"Error parsing PID file {self.path}: {text!r}")

    def claim(self) -> None:
        """
        Create an empty record, failing if one already exists.

        Raises:
            AlreadyRunningError: If another record exists.
        """
        if self.path.parent != Path("."):
            self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise AlreadyRunningError(self.read_pid_quietly())
        os.close(fd)
        logger.debug(f"Claimed PID file {self.path}")

    def write(self, pid: int) -> bool:
        """
        Fill a claimed record with the player PID.

        Both the controller (after spawning) and the player itself (on
        startup) write the same PID; a record already naming another PID is
        left untouched.

        Returns:
            True if the record now names pid. False if it vanished meanwhile
            or belongs to another player.
        """
        try:
            with open(self.path, "r+") as f:
                text = f.read().strip()
                if text and text != str(pid):
                    logger.warning(f"PID file names {text}, not {pid}; leaving it in place")
                    return False
                f.seek(0)
                f.truncate()
                f.write(str(pid))
        except FileNotFoundError:
            logger.debug(f"PID file {self.path} removed before PID {pid} was written")
            return False
        return True

    def release(self, owner_pid: Optional[int] = None) -> bool:
        """
        Delete the record.

        Args:
            owner_pid: If given, only delete when the record names this PID.
                An unwritten claim belongs to a starting player and is kept.

        Returns:
            True if a record was deleted. An already-absent record is not an
            error.
        """
        if owner_pid is not None:
            try:
                recorded = self.read_pid()
            except SupervisorError as e:
                logger.warning(f"Leaving unreadable PID file in place: {e}")
                return False
            if recorded != owner_pid:
                if recorded is not None:
                    logger.warning(
                        f"PID file names {recorded}, not {owner_pid}; leaving it in place"
                    )
                return False
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove PID file: {e}")
            return False
        logger.debug(f"Removed PID file {self.path}")
        return True

    def read_pid_quietly(self) -> Optional[int]:
        try:
            return self.read_pid()
        except SupervisorError:
            return None


def is_process_alive(pid: int) -> bool:
    """Check a PID with signal 0."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


class ProcessSupervisor:
    """
    Start, stop and report on the player.

    Subclasses provide _spawn, _terminate, _wait_child and _abort_child.
    """

    def __init__(self, config: Config):
        self.config = config
        self.record = DaemonRecord(config.pid_file)
        self.playlist = PlaylistStore(config.playlist_path)
        self.verify_liveness = bool(config.get("daemon", "verify_liveness", False))

    def status(self) -> DaemonStatus:
        """
        Report whether a player is running.

        Trusts the PID file unless daemon.verify_liveness is enabled, in which
        case a record naming a dead process is removed first.
        """
        if self.verify_liveness:
            self._clear_stale_record()
        if not self.record.exists():
            return DaemonStatus(running=False)
        return DaemonStatus(running=True, pid=self.record.read_pid())

    def start(self, shuffle: bool = False) -> int:
        """
        Launch a player for the current playlist.

        Returns:
            PID of the player.

        Raises:
            AlreadyRunningError: If a PID record exists; nothing is spawned.
            PlaylistNotFoundError: If there is no playlist.
            PlaylistEmptyError: If the playlist has no tracks.
            SupervisorError: If the player cannot be launched.
        """
        self.preflight()

        self.record.claim()
        try:
            pid = self._spawn(shuffle)
        except BaseException:
            self.record.release()
            raise

        if not self.record.write(pid) and not self._wait_child(START_GRACE_SECONDS):
            # Still playing but no longer tracked; never leave it running.
            self._abort_child()
            raise SupervisorError(
                f"PID file was removed or replaced while starting; stopped player {pid}. Try again."
            )
        logger.info(f"✅ Music player started with PID: {pid}")
        return pid

    def preflight(self) -> List[str]:
        """
        Check that a player could be started now, without starting one.

        Returns:
            The playlist that would be played.

        Raises:
            AlreadyRunningError, PlaylistNotFoundError, PlaylistEmptyError:
                As for start.
        """
        if self.verify_liveness:
            self._clear_stale_record()
        if self.record.exists():
            raise AlreadyRunningError(self.record.read_pid_quietly())

        files = self.playlist.load()
        if not files:
            raise PlaylistEmptyError("Playlist is empty. Use 'playit add' to add music files.")
        return files

    def stop(self) -> int:
        """
        Ask the running player to stop after its current track.

        Returns:
            The PID that was signaled.

        Raises:
            NotRunningError: If there is no PID record (no signal is sent), or
                the recorded process no longer exists.
            SupervisorError: If the record is unreadable or signaling fails.
        """
        if not self.record.exists():
            raise NotRunningError()

        pid = self.record.read_pid()
        if pid is None:
            raise SupervisorError("Music player is still starting; try again in a moment")

        try:
            self._terminate(pid)
        except ProcessLookupError:
            self.record.release()
            raise NotRunningError(
                f"Music player (PID: {pid}) is not running; removed stale PID file"
            )
        except PermissionError as e:
            raise SupervisorError(f"Error sending SIGTERM to {pid}: {e}")

        # The player removes the record itself on exit; this is a courtesy.
        self.record.release()
        logger.info(f"Sent stop request to PID {pid}")
        return pid

    def _clear_stale_record(self) -> None:
        pid = self.record.read_pid_quietly()
        if pid is not None and not is_process_alive(pid):
            logger.warning(f"Removing stale PID file for dead process {pid}")
            self.record.release()

    def _spawn(self, shuffle: bool) -> int:
        raise NotImplementedError

    def _terminate(self, pid: int) -> None:
        raise NotImplementedError

    def _wait_child(self, timeout: float) -> bool:
        """Wait for the player just spawned; True once it has exited."""
        raise NotImplementedError

    def _abort_child(self) -> None:
        raise NotImplementedError


class SubprocessSupervisor(ProcessSupervisor):
    """Run the player as a detached child process."""

    def __init__(self, config: Config):
        super().__init__(config)
        self._process: Optional[subprocess.Popen] = None

    def player_command(self, shuffle: bool) -> List[str]:
        cmd = [sys.executable, "-m", "playit"]
        if self.config.source_path is not None:
            cmd += ["--config", str(self.config.source_path)]
        cmd.append("run-music")
        if shuffle:
            cmd.append("--shuffle")
        return cmd

    def _spawn(self, shuffle: bool) -> int:
        cmd = self.player_command(shuffle)
        logger.debug(f"Spawning player: {' '.join(cmd)}")
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                close_fds=True,
                start_new_session=True,
                cwd=os.getcwd(),
            )
        except OSError as e:
            raise SupervisorError(f"Error starting music player: {e}")
        self._process = process
        return process.pid

    def _terminate(self, pid: int) -> None:
        os.kill(pid, signal.SIGTERM)

    def _wait_child(self, timeout: float) -> bool:
        if self._process is None:
            return True
        try:
            self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return False
        return True

    def _abort_child(self) -> None:
        if self._process is not None:
            logger.warning(f"Terminating untracked player {self._process.pid}")
            self._process.terminate()


class InProcessSupervisor(ProcessSupervisor):
    """
    Run the player loop on a background thread of this process.

    The recorded PID is this process's own; stop cancels the loop's token
    instead of sending a signal.
    """

    def __init__(self, config: Config, device=None):
        super().__init__(config)
        self.device = device
        self.token: Optional[CancellationToken] = None
        self.exit_code: Optional[int] = None
        self._thread: Optional[threading.Thread] = None

    def _spawn(self, shuffle: bool) -> int:
        from .daemon import run_player

        if self._thread is not None and self._thread.is_alive():
            raise SupervisorError("In-process player is already active")

        self.token = CancellationToken()
        self.exit_code = None

        def target():
            self.exit_code = run_player(self.config, shuffle, token=self.token, device=self.device)

        self._thread = threading.Thread(target=target, name="playit-player", daemon=True)
        self._thread.start()
        return os.getpid()

    def _terminate(self, pid: int) -> None:
        if pid != os.getpid() or self.token is None:
            raise ProcessLookupError(pid)
        self.token.cancel()

    def _wait_child(self, timeout: float) -> bool:
        return self.wait(timeout)

    def _abort_child(self) -> None:
        if self.token is not None:
            self.token.cancel()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the player thread; True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
