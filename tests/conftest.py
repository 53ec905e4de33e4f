# tests/conftest.py
import pytest
from talebedu_sync.connectivity.monitor import ConnectivityMonitor
from talebedu_sync.remote.memory import InMemoryRemoteAPI
from talebedu_sync.storage.sqlite_cache import SQLiteRecordCache
from talebedu_sync.storage.sqlite_queue import SQLiteOperationQueue
from talebedu_sync.sync.coordinator import SyncCoordinator
from talebedu_sync.sync.models import SyncConfig

@pytest.fixture
def temp_db_path(tmp_path):
    return str(tmp_path / 'offline.db')

@pytest.fixture
def cache(temp_db_path):
    return SQLiteRecordCache(temp_db_path)

@pytest.fixture
def queue(temp_db_path):
    return SQLiteOperationQueue(temp_db_path)

@pytest.fixture
def monitor():
    return ConnectivityMonitor(initially_online=True)

@pytest.fixture
def remote():
    return InMemoryRemoteAPI()

@pytest.fixture
def sync_config():
    return SyncConfig()

@pytest.fixture
def coordinator(cache, queue, monitor, remote, sync_config):
    return SyncCoordinator(cache, queue, monitor, remote, config=sync_config)

@pytest.fixture
def sample_student():
    return {
        'id': 'stu-1',
        'name': 'Amal',
        'grade': 5,
        'nfc_id': 'NFC-0001'
    }
