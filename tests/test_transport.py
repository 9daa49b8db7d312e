import asyncio
import threading
from unittest.mock import Mock

import pytest
import requests

from opensubtitles_rest.transport import CancellationToken, RawResponse, RequestsTransport, TransportFailure


def _response(status_code=200, content=b'{}', headers=None):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.iter_content.side_effect = lambda chunk_size: iter([content] if content else [])
    response.headers = headers or {'Content-Type': 'application/json'}
    return response


def _transport(session, **kwargs):
    return RequestsTransport(session_factory=lambda: session, **kwargs)


@pytest.mark.asyncio
async def test_send_returns_raw_response():
    session = Mock(spec=requests.Session)
    response = _response(201, b'{"ok": true}')
    session.request.return_value = response
    transport = _transport(session, timeout=3)

    raw = await transport.send('POST', 'https://api.example/login', headers={'Api-Key': 'k'}, body=b'{}')

    assert raw == RawResponse(status_code=201, body=b'{"ok": true}', headers={'Content-Type': 'application/json'})
    session.request.assert_called_once_with('POST', 'https://api.example/login', headers={'Api-Key': 'k'},
                                            data=b'{}', timeout=3, stream=True)
    response.close.assert_called_once_with()


@pytest.mark.asyncio
async def test_http_errors_are_responses_not_failures():
    session = Mock(spec=requests.Session)
    session.request.return_value = _response(503, b'down')

    raw = await _transport(session).send('GET', 'https://api.example/subtitles')

    assert raw.status_code == 503
    assert raw.text == 'down'


@pytest.mark.asyncio
@pytest.mark.parametrize('error', [
    requests.exceptions.ConnectionError('connection refused'),
    requests.exceptions.Timeout('read timed out'),
])
async def test_request_exceptions_become_transport_failures(error):
    session = Mock(spec=requests.Session)
    session.request.side_effect = error

    with pytest.raises(TransportFailure) as excinfo:
        await _transport(session).send('GET', 'https://api.example/subtitles', cancel=CancellationToken())

    assert not excinfo.value.cancelled
    assert excinfo.value.__cause__ is error
    session.close.assert_called_once_with()


@pytest.mark.asyncio
async def test_each_request_uses_and_closes_its_own_session():
    sessions = [Mock(spec=requests.Session), Mock(spec=requests.Session)]
    for session in sessions:
        session.request.return_value = _response()
    transport = RequestsTransport(session_factory=Mock(side_effect=sessions))

    await transport.send('GET', 'https://api.example/infos/languages')
    await transport.send('GET', 'https://api.example/infos/languages')

    for session in sessions:
        session.request.assert_called_once()
        session.close.assert_called_once_with()


@pytest.mark.asyncio
async def test_already_cancelled_token_skips_request():
    session_factory = Mock()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(TransportFailure) as excinfo:
        await RequestsTransport(session_factory=session_factory).send('GET', 'https://api.example/subtitles',
                                                                      cancel=token)

    assert excinfo.value.cancelled
    session_factory.assert_not_called()


@pytest.mark.asyncio
async def test_cancel_aborts_in_flight_request():
    started = threading.Event()
    release = threading.Event()

    def slow_request(*args, **kwargs):
        started.set()
        release.wait(timeout=5)
        return _response()

    session = Mock(spec=requests.Session)
    session.request.side_effect = slow_request
    token = CancellationToken()
    transport = _transport(session)

    async def cancel_when_started():
        await asyncio.to_thread(started.wait, 5)
        token.cancel()

    canceller = asyncio.create_task(cancel_when_started())
    try:
        with pytest.raises(TransportFailure) as excinfo:
            await asyncio.wait_for(transport.send('GET', 'https://api.example/subtitles', cancel=token), timeout=5)
    finally:
        release.set()
        await canceller

    assert excinfo.value.cancelled
    session.close.assert_called()


@pytest.mark.asyncio
async def test_request_after_cancel_does_not_share_the_aborted_session():
    started = threading.Event()
    release = threading.Event()
    lock = threading.Lock()
    in_flight = {}
    max_in_flight = {}
    first_closed_before_second_request = []

    def make_session():
        session = Mock(spec=requests.Session)

        def request(*args, **kwargs):
            with lock:
                in_flight[id(session)] = in_flight.get(id(session), 0) + 1
                max_in_flight[id(session)] = max(max_in_flight.get(id(session), 0), in_flight[id(session)])
            try:
                if len(sessions) == 1:
                    started.set()
                    release.wait(timeout=5)
                else:
                    first_closed_before_second_request.append(sessions[0].close.called)
                return _response()
            finally:
                with lock:
                    in_flight[id(session)] -= 1

        session.request.side_effect = request
        sessions.append(session)
        return session

    sessions = []
    transport = RequestsTransport(session_factory=make_session)
    token = CancellationToken()

    async def cancel_when_started():
        await asyncio.to_thread(started.wait, 5)
        token.cancel()

    canceller = asyncio.create_task(cancel_when_started())
    try:
        with pytest.raises(TransportFailure) as excinfo:
            await asyncio.wait_for(transport.send('GET', 'https://api.example/subtitles?page=1', cancel=token),
                                   timeout=5)
        raw = await asyncio.wait_for(transport.send('GET', 'https://api.example/subtitles?page=2'), timeout=5)
    finally:
        release.set()
        await canceller

    assert excinfo.value.cancelled
    assert raw.status_code == 200
    assert len(sessions) == 2
    assert sessions[0] is not sessions[1]
    assert first_closed_before_second_request == [True]
    assert set(max_in_flight.values()) == {1}
    sessions[0].close.assert_called()
    sessions[1].close.assert_called_once_with()


def test_abort_stops_reading_the_body():
    aborted = threading.Event()

    def chunks(chunk_size):
        yield b'{"data": '
        aborted.set()
        yield b'[]}'

    response = _response()
    response.iter_content.side_effect = chunks
    session = Mock(spec=requests.Session)
    session.request.return_value = response

    with pytest.raises(TransportFailure) as excinfo:
        RequestsTransport()._send_sync(session, 'GET', 'https://api.example/subtitles', None, None, aborted)

    assert excinfo.value.cancelled
    response.close.assert_called_once_with()
    session.close.assert_called_once_with()


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled

    token.cancel()

    assert token.cancelled
