# talebedu_sync/sync/service.py
import logging
import time
from typing import Optional

from .coordinator import SyncCoordinator
from .models import SyncStatus
from ..connectivity.monitor import ConnectivityState, ReachabilityProbe

logger = logging.getLogger(__name__)

class SyncService:
    """Keeps the pending queue draining as connectivity comes and goes"""

    def __init__(self, coordinator: SyncCoordinator):
        self.coordinator = coordinator
        self.monitor = coordinator.monitor
        self.config = coordinator.config
        self._last_purge = time.monotonic()
        self._started = False

    def start(self) -> Optional[SyncStatus]:
        """Listen for connectivity changes and run the initial sync if online"""
        if not self._started:
            self.monitor.add_listener(self._on_connectivity_change)
            self._started = True
            logger.info("Sync service listening for connectivity changes")
        if self.monitor.is_online():
            return self.coordinator.replay_pending()
        return None

    def stop(self) -> None:
        if self._started:
            self.monitor.remove_listener(self._on_connectivity_change)
            self._started = False

    def _on_connectivity_change(self, state: ConnectivityState) -> None:
        if state is ConnectivityState.ONLINE:
            logger.info("Back online! Syncing data...")
            self.coordinator.replay_pending()
        else:
            logger.warning("You are offline. Changes will be saved locally and synced when online.")

    def run_once(self) -> Optional[SyncStatus]:
        status = self.coordinator.replay_pending()
        if status and status.status != 'success':
            logger.error(f"Sync error: {status.error_message}")

        now = time.monotonic()
        if now - self._last_purge >= self.config.purge_interval:
            self.coordinator.purge_synced()
            self._last_purge = now
        return status

    def start_sync_service(self, probe: Optional[ReachabilityProbe] = None) -> None:
        """Start continuous synchronization service"""
        logger.info("Starting continuous sync service")
        self.start()
        try:
            while True:
                try:
                    if probe is not None:
                        probe.feed(self.monitor)
                    self.run_once()
                    time.sleep(self.config.sync_interval)

                except KeyboardInterrupt:
                    logger.info("Sync service stopped by user")
                    break
                except Exception as e:
                    logger.error(f"Unexpected error in sync service: {str(e)}")
                    time.sleep(self.config.sync_interval)
        finally:
            self.stop()
