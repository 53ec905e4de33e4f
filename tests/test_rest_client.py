# tests/test_rest_client.py
from unittest.mock import MagicMock
import pytest
import requests
from talebedu_sync.remote.interfaces import RemoteRejectedError, RemoteUnavailableError
from talebedu_sync.remote.rest_client import RemoteAPIConfig, RestRemoteAPI
from talebedu_sync.sync.coordinator import SyncCoordinator

def _response(status, body=None):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.content = b'x' if body is not None else b''
    response.json.return_value = body
    response.text = str(body)
    return response

@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session

@pytest.fixture
def api(session):
    config = RemoteAPIConfig(base_url='https://api.talebedu.test/rest/v1/', api_key='k3y', timeout=5)
    return RestRemoteAPI(config, session=session)

def test_auth_headers(api, session):
    assert session.headers['apikey'] == 'k3y'
    assert session.headers['Authorization'] == 'Bearer k3y'

def test_select(api, session):
    session.request.return_value = _response(200, [{'id': 'f1'}])

    assert api.select('fees', {'student_id': 'stu-1'}) == [{'id': 'f1'}]
    session.request.assert_called_once_with(
        method='GET',
        url='https://api.talebedu.test/rest/v1/fees',
        params={'student_id': 'stu-1'},
        json=None,
        timeout=5
    )

def test_insert_unwraps_list(api, session):
    session.request.return_value = _response(201, [{'id': 'srv-1', 'name': 'Amal'}])
    assert api.insert('students', {'name': 'Amal'}) == {'id': 'srv-1', 'name': 'Amal'}

def test_update_and_delete_paths(api, session):
    session.request.return_value = _response(200, {'id': 'rec1', 'status': 'absent'})
    api.update('attendance', 'rec1', {'status': 'absent'})
    assert session.request.call_args.kwargs['url'].endswith('/attendance/rec1')
    assert session.request.call_args.kwargs['method'] == 'PATCH'

    session.request.return_value = _response(204)
    assert api.delete('attendance', 'rec1') is None
    assert session.request.call_args.kwargs['method'] == 'DELETE'

@pytest.mark.parametrize('status', [500, 503, 429, 408])
def test_retryable_statuses(api, session, status):
    session.request.return_value = _response(status, {'message': 'try later'})
    with pytest.raises(RemoteUnavailableError) as exc:
        api.select('fees')
    assert exc.value.status_code == status

@pytest.mark.parametrize('status', [400, 401, 404, 422])
def test_rejected_statuses(api, session, status):
    session.request.return_value = _response(status, {'message': 'bad'})
    with pytest.raises(RemoteRejectedError):
        api.insert('fees', {'amount': -1})

def test_network_error_is_unavailable(api, session):
    session.request.side_effect = requests.exceptions.ConnectionError('refused')
    with pytest.raises(RemoteUnavailableError):
        api.select('students')

def test_timeout_is_unavailable(api, session):
    session.request.side_effect = requests.exceptions.Timeout('slow')
    with pytest.raises(RemoteUnavailableError):
        api.delete('students', 's1')

def test_malformed_body_is_rejected(api, session):
    response = _response(200, [])
    response.json.side_effect = ValueError('not json')
    session.request.return_value = response
    with pytest.raises(RemoteRejectedError):
        api.select('students')

def test_asks_for_representation(api, session):
    assert session.headers['Prefer'] == 'return=representation'

def test_empty_insert_response_is_not_cached(api, session, cache, queue, monitor):
    session.request.return_value = _response(201)
    coordinator = SyncCoordinator(cache, queue, monitor, api)

    stored = coordinator.insert('students', {'name': 'Omar'})

    assert stored == {'name': 'Omar'}
    assert cache.get_all('students') == []
    assert queue.list_pending() == []

def test_fetch_skips_rows_without_id(api, session, cache, queue, monitor):
    session.request.return_value = _response(200, [{'id': 's1'}, {'name': 'no id'}])
    coordinator = SyncCoordinator(cache, queue, monitor, api)

    assert len(coordinator.fetch('students')) == 2
    assert cache.get_all('students') == [{'id': 's1'}]
