# talebedu_sync/connectivity/monitor.py
import logging
import socket
from enum import Enum
from typing import Callable, List

logger = logging.getLogger(__name__)

class ConnectivityState(Enum):
    ONLINE = "online"
    OFFLINE = "offline"

Listener = Callable[[ConnectivityState], None]

class ConnectivityMonitor:
    """Tracks the runtime's last reported online/offline state.

    The monitor never probes the network itself. Whatever owns the runtime's
    network signal calls set_online()/set_offline(), and registered listeners
    are told about real transitions only.
    """

    def __init__(self, initially_online: bool = True):
        self._state = ConnectivityState.ONLINE if initially_online else ConnectivityState.OFFLINE
        self._listeners: List[Listener] = []
        logger.info(f"Connectivity monitor starting {self._state.value}")

    @property
    def state(self) -> ConnectivityState:
        return self._state

    def is_online(self) -> bool:
        return self._state is ConnectivityState.ONLINE

    def set_online(self) -> None:
        self._transition(ConnectivityState.ONLINE)

    def set_offline(self) -> None:
        self._transition(ConnectivityState.OFFLINE)

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _transition(self, new_state: ConnectivityState) -> None:
        if new_state is self._state:
            return
        logger.info(f"Connectivity changed: {self._state.value} -> {new_state.value}")
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                logger.error(f"Connectivity listener failed: {str(e)}")

class ReachabilityProbe:
    """Runtime network signal for processes with no OS-level online event.

    A single TCP connect to the remote host; the result is pushed into a
    ConnectivityMonitor as if the runtime had fired online/offline.
    """

    def __init__(self, host: str, port: int, timeout: float = 3.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    def check(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError as e:
            logger.debug(f"{self.host}:{self.port} unreachable: {str(e)}")
            return False

    def feed(self, monitor: ConnectivityMonitor) -> bool:
        reachable = self.check()
        if reachable:
            monitor.set_online()
        else:
            monitor.set_offline()
        return reachable
