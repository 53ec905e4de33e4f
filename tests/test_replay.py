# tests/test_replay.py
import pytest
from talebedu_sync.storage.models import OperationKind
from talebedu_sync.remote.interfaces import RemoteRejectedError, RemoteUnavailableError
from talebedu_sync.sync.coordinator import SyncCoordinator
from talebedu_sync.sync.models import SyncConfig

def _queue_offline(coordinator, monitor):
    monitor.set_offline()
    first = coordinator.insert('students', {'name': 'Amal'})
    second = coordinator.insert('students', {'name': 'Omar'})
    monitor.set_online()
    return first, second

def test_replay_skipped_offline(coordinator, monitor):
    monitor.set_offline()
    coordinator.insert('students', {'name': 'Amal'})
    assert coordinator.replay_pending() is None
    assert coordinator.pending_count() == 1

def test_replay_marks_synced(coordinator, monitor, queue, remote):
    first, second = _queue_offline(coordinator, monitor)
    op_ids = [op.id for op in queue.list_pending()]

    status = coordinator.replay_pending()

    assert status.status == 'success'
    assert status.records_synced == 2
    assert queue.list_pending() == []
    assert set(remote.tables['students']) == {first['id'], second['id']}
    assert queue.get_last_sync_time() is not None
    # synced operations stay until purged
    assert queue.purge_synced() == len(op_ids)

def test_replay_in_fifo_order(coordinator, monitor, remote, cache):
    monitor.set_offline()
    cache.put('attendance', {'id': 'rec1', 'status': 'late'})
    coordinator.insert('attendance', {'id': 'rec1', 'status': 'late'})
    coordinator.update('attendance', 'rec1', {'status': 'present'})
    coordinator.update('attendance', 'rec1', {'status': 'absent'})
    monitor.set_online()

    coordinator.replay_pending()

    assert [c[0] for c in remote.calls] == ['insert', 'update', 'update']
    assert remote.tables['attendance']['rec1']['status'] == 'absent'

def test_replay_stops_on_unavailable(coordinator, monitor, queue, remote):
    _queue_offline(coordinator, monitor)
    remote.fail_with['insert'] = RemoteUnavailableError('HTTP 503', status_code=503)

    status = coordinator.replay_pending()

    assert status.status == 'error'
    assert status.records_failed == 1
    pending = queue.list_pending()
    assert len(pending) == 2
    assert pending[0].attempts == 1
    assert pending[1].attempts == 0
    assert len(remote.calls) == 1

def test_replay_dead_letters_rejected(coordinator, monitor, queue, remote):
    monitor.set_offline()
    coordinator.update('students', 'ghost', {'name': 'Nobody'})
    coordinator.insert('students', {'name': 'Amal'})
    monitor.set_online()

    status = coordinator.replay_pending()

    assert status.status == 'partial'
    assert status.records_synced == 1
    assert status.records_dead_lettered == 1
    assert queue.list_pending() == []
    assert queue.list_failed()[0].payload['id'] == 'ghost'

def test_max_attempts(cache, queue, monitor, remote):
    coordinator = SyncCoordinator(cache, queue, monitor, remote,
                                  config=SyncConfig(max_attempts=2))
    monitor.set_offline()
    coordinator.insert('fees', {'amount': 120})
    monitor.set_online()
    remote.fail_with['insert'] = RemoteUnavailableError('timeout')

    coordinator.replay_pending()
    assert len(queue.list_pending()) == 1
    status = coordinator.replay_pending()

    assert status.records_dead_lettered == 1
    assert queue.list_pending() == []
    assert 'gave up after 2 attempts' in queue.list_failed()[0].last_error

def test_unbounded_retries_by_default(coordinator, monitor, queue, remote):
    monitor.set_offline()
    coordinator.insert('fees', {'amount': 120})
    monitor.set_online()
    remote.fail_with['insert'] = RemoteUnavailableError('timeout')

    for _ in range(5):
        coordinator.replay_pending()

    assert queue.list_pending()[0].attempts == 5
    assert queue.list_failed() == []

def test_replay_replaces_local_id(coordinator, monitor, remote, cache):
    monitor.set_offline()
    local = coordinator.insert('students', {'name': 'Amal'})
    monitor.set_online()
    remote.assign_ids = True

    coordinator.replay_pending()

    records = cache.get_all('students')
    assert len(records) == 1
    assert records[0]['id'] != local['id']
    assert records[0]['name'] == 'Amal'

def test_replay_delete_keeps_tombstone(coordinator, monitor, remote, cache):
    remote.tables['fees'] = {'f1': {'id': 'f1'}}
    cache.put('fees', {'id': 'f1'})
    monitor.set_offline()
    coordinator.delete('fees', 'f1')
    monitor.set_online()

    coordinator.replay_pending()

    assert cache.get('fees', 'f1') == {'id': 'f1', '_deleted': True}
    assert remote.tables['fees'] == {}

def test_replay_does_not_send_tombstone_flag(coordinator, monitor, remote, cache):
    remote.tables['students'] = {'s1': {'id': 's1', 'name': 'Amal'}}
    cache.put('students', {'id': 's1', 'name': 'Amal', '_deleted': True})
    monitor.set_offline()
    coordinator.update('students', 's1', {'name': 'Amal B.'})
    monitor.set_online()

    coordinator.replay_pending()
    assert '_deleted' not in remote.tables['students']['s1']

def test_replay_with_empty_queue(coordinator):
    status = coordinator.replay_pending()
    assert status.records_synced == 0
    assert status.status == 'success'

def test_pending_update_stays_visible_after_insert_syncs(coordinator, monitor, queue, remote, cache):
    monitor.set_offline()
    coordinator.insert('students', {'id': 's1', 'name': 'Amal'})
    coordinator.update('students', 's1', {'name': 'Amal B.'})
    monitor.set_online()
    remote.fail_with['update'] = RemoteUnavailableError('HTTP 503', status_code=503)

    status = coordinator.replay_pending()

    assert status.records_synced == 1
    assert cache.get('students', 's1')['name'] == 'Amal B.'
    pending = queue.list_pending()
    assert [op.operation for op in pending] == [OperationKind.UPDATE]
    assert remote.tables['students']['s1']['name'] == 'Amal'

def test_server_id_carries_over_to_queued_update(coordinator, monitor, queue, remote, cache):
    monitor.set_offline()
    local = coordinator.insert('students', {'name': 'Amal'})
    coordinator.update('students', local['id'], {'grade': 6})
    monitor.set_online()
    remote.assign_ids = True

    status = coordinator.replay_pending()

    assert status.records_synced == 2
    assert status.records_dead_lettered == 0
    (server_id, row), = remote.tables['students'].items()
    assert server_id != local['id']
    assert row['grade'] == 6
    assert cache.get('students', local['id']) is None
    assert cache.get('students', server_id)['grade'] == 6

def test_server_id_remap_survives_stopped_pass(coordinator, monitor, queue, remote, cache):
    monitor.set_offline()
    local = coordinator.insert('students', {'name': 'Amal'})
    coordinator.delete('students', local['id'])
    monitor.set_online()
    remote.assign_ids = True
    remote.fail_with['delete'] = RemoteUnavailableError('timeout')

    coordinator.replay_pending()

    server_id = next(iter(remote.tables['students']))
    pending = queue.list_pending()
    assert pending[0].payload == {'id': server_id}
    assert cache.get('students', server_id)['_deleted'] is True

    del remote.fail_with['delete']
    coordinator.replay_pending()
    assert remote.tables['students'] == {}

def test_rejected_replay_keeps_order_when_queued(cache, queue, monitor, remote):
    coordinator = SyncCoordinator(cache, queue, monitor, remote,
                                  config=SyncConfig(queue_rejected_writes=True))
    monitor.set_offline()
    coordinator.update('students', 'ghost', {'name': 'Nobody'})
    coordinator.insert('students', {'name': 'Amal'})
    monitor.set_online()

    status = coordinator.replay_pending()

    assert status.records_synced == 0
    assert status.records_failed == 1
    assert [c[0] for c in remote.calls] == ['update']
    pending = queue.list_pending()
    assert len(pending) == 2
    assert pending[0].attempts == 1
