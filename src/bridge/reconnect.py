"""Disconnect detection and reconnection for remote runs.

When ssh exits with its connection failure status and a recovery command
is configured, the run is not treated as failed. Instead the host is
polled until it is reachable again and the recovery command is run
(for example to collect a crash dump after the remote machine rebooted).

States::

    IDLE -> RUNNING -> SUCCESS | FAILED | DISCONNECTED
    DISCONNECTED -> POLLING -> RECOVERED | TIMED_OUT
    RECOVERED -> RUNNING_RECOVERY -> SUCCESS | FAILED

The final exit status is always the primary command's status, the
recovery command's status, or 255 when the host never came back.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .ssh import SSH_CONNECTION_FAILURE

logger = logging.getLogger(__name__)

POLL_INTERVAL = 5.0


class ReconnectStatus(Enum):
    """States of a run with reconnect support."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    DISCONNECTED = "disconnected"
    POLLING = "polling"
    RECOVERED = "recovered"
    RUNNING_RECOVERY = "running_recovery"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ReconnectStatus.SUCCESS,
            ReconnectStatus.FAILED,
            ReconnectStatus.TIMED_OUT,
        )


class Event(Enum):
    """Inputs that drive the reconnect state machine."""

    START = "start"
    EXIT_SUCCESS = "exit_success"
    EXIT_FAILURE = "exit_failure"
    CONNECTION_LOST = "connection_lost"
    POLL = "poll"
    PROBE_SUCCEEDED = "probe_succeeded"
    PROBE_FAILED = "probe_failed"
    DEADLINE_PASSED = "deadline_passed"


TRANSITIONS: dict[tuple[ReconnectStatus, Event], ReconnectStatus] = {
    (ReconnectStatus.IDLE, Event.START): ReconnectStatus.RUNNING,
    (ReconnectStatus.RUNNING, Event.EXIT_SUCCESS): ReconnectStatus.SUCCESS,
    (ReconnectStatus.RUNNING, Event.EXIT_FAILURE): ReconnectStatus.FAILED,
    (ReconnectStatus.RUNNING, Event.CONNECTION_LOST): ReconnectStatus.DISCONNECTED,
    (ReconnectStatus.DISCONNECTED, Event.POLL): ReconnectStatus.POLLING,
    (ReconnectStatus.POLLING, Event.PROBE_FAILED): ReconnectStatus.POLLING,
    (ReconnectStatus.POLLING, Event.PROBE_SUCCEEDED): ReconnectStatus.RECOVERED,
    (ReconnectStatus.POLLING, Event.DEADLINE_PASSED): ReconnectStatus.TIMED_OUT,
    (ReconnectStatus.RECOVERED, Event.START): ReconnectStatus.RUNNING_RECOVERY,
    (ReconnectStatus.RUNNING_RECOVERY, Event.EXIT_SUCCESS): ReconnectStatus.SUCCESS,
    (ReconnectStatus.RUNNING_RECOVERY, Event.EXIT_FAILURE): ReconnectStatus.FAILED,
}


def next_status(status: ReconnectStatus, event: Event) -> ReconnectStatus:
    """Pure transition function.

    Raises:
        ValueError: If event is not valid in status
    """
    try:
        return TRANSITIONS[(status, event)]
    except KeyError:
        raise ValueError(f"Invalid event {event.value} in state {status.value}") from None


def exit_event(exit_code: int, can_reconnect: bool) -> Event:
    """Classify a command's exit status.

    Only ssh's connection failure status counts as a disconnect, and only
    when a recovery command is available; every other non-zero status is
    an ordinary failure.
    """
    if exit_code == 0:
        return Event.EXIT_SUCCESS
    if exit_code == SSH_CONNECTION_FAILURE and can_reconnect:
        return Event.CONNECTION_LOST
    return Event.EXIT_FAILURE


@dataclass
class ReconnectState:
    """Transient state of one reconnect-aware run.

    Attributes:
        status: Current state
        elapsed: Seconds since the disconnect was detected
        polls: Number of reachability probes made
    """

    status: ReconnectStatus = ReconnectStatus.IDLE
    elapsed: float = 0.0
    polls: int = 0

    def apply(self, event: Event) -> ReconnectStatus:
        self.status = next_status(self.status, event)
        return self.status


class ReconnectController:
    """Runs a command and recovers from unexpected disconnects.

    Args:
        execute: Runs a (not yet composed) command and returns its exit status
        probe: Returns True when the host is reachable
        recovery_command: Command to run after reconnecting, None disables recovery
        timeout: Seconds to wait for the host to come back
        poll_interval: Seconds between probes
        clock: Monotonic time source
        sleep: Sleep function
        on_change: Called with the state after every transition

    Example:
        controller = ReconnectController(
            execute=lambda cmd: run_remote_command(host, compose(cmd)),
            probe=lambda: check_connection(host),
            recovery_command="get-crash-dump.sh",
            timeout=90,
        )
        exit_code = controller.run("make test")
    """

    def __init__(
        self,
        execute: Callable[[str], int],
        probe: Callable[[], bool],
        recovery_command: str | None = None,
        timeout: float = 90,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_change: Callable[[ReconnectState], None] | None = None,
    ) -> None:
        self.execute = execute
        self.probe = probe
        self.recovery_command = recovery_command
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep
        self.on_change = on_change
        self.state = ReconnectState()

    def _apply(self, event: Event) -> ReconnectStatus:
        status = self.state.apply(event)
        logger.debug(
            f"Reconnect state: {status.value} "
            f"(elapsed={self.state.elapsed:.1f}s, polls={self.state.polls})"
        )
        if self.on_change is not None:
            self.on_change(self.state)
        return status

    def run(self, command: str) -> int:
        """Run command, recovering from a disconnect if configured.

        Returns:
            Exit status of the primary command, of the recovery command,
            or 255 if the host did not come back within the timeout
        """
        self.state = ReconnectState()
        self._apply(Event.START)
        exit_code = self.execute(command)

        status = self._apply(exit_event(exit_code, self.recovery_command is not None))
        if status is not ReconnectStatus.DISCONNECTED:
            return exit_code

        logger.info(f"SSH connection lost, waiting up to {self.timeout}s to reconnect")
        if not self._wait_for_host():
            return SSH_CONNECTION_FAILURE

        self._apply(Event.START)
        recovery_exit = self.execute(self.recovery_command)
        self._apply(exit_event(recovery_exit, can_reconnect=False))
        return recovery_exit

    def _wait_for_host(self) -> bool:
        """Poll until the host is reachable or the timeout passes."""
        start = self.clock()
        self._apply(Event.POLL)

        while True:
            self.state.elapsed = self.clock() - start
            if self.state.elapsed >= self.timeout:
                self._apply(Event.DEADLINE_PASSED)
                logger.info(f"Timed out waiting for reconnection after {self.timeout}s")
                return False

            self.sleep(self.poll_interval)
            self.state.polls += 1
            self.state.elapsed = self.clock() - start

            if self.probe():
                self._apply(Event.PROBE_SUCCEEDED)
                logger.info(f"Reconnected after {self.state.polls} probe(s)")
                return True
            self._apply(Event.PROBE_FAILED)
