import socket
import threading
from unittest.mock import call, Mock, patch

import aprslib
from aprslib.exceptions import ConnectionDrop
import pytest
import requests

from aprs2sondehub.connections import APRSisStream, passcode, SondeHubTelemetrySink

PACKET = 'SP9UOB-11>APLIGA,WIDE2-1,NOHUB,qAR,SR9NSK-10:/123456h5012.34N/01956.78EO/A=039370/P123S9'
RECORD = {'payload_callsign': 'SP9UOB-11', 'lat': 50.2, 'lon': 19.9, 'alt': 12000}


def test_passcode():
    assert passcode('N0CALL') == 13023
    assert passcode('n0call-9') == passcode('N0CALL')
    assert 0 <= passcode('W3EAX-11') <= 0x7FFF


def test_login_line():
    assert APRSisStream.login_line('N0CALL-10', ['W3EAX-11', 'SP9UOB-11']) == (
        'user N0CALL-10 pass 13023 vers aprs2sondehub 1.0.0 filter b/W3EAX-11/SP9UOB-11'
    )


@patch('aprs2sondehub.connections.aprs_is.aprslib.IS')
def test_stream_session(mock_is):
    connection = mock_is.return_value
    stream = APRSisStream('euro.aprs2.net')
    received = []

    def handler(line: str, source: APRSisStream):
        assert source is stream
        received.append(line)
        if line == 'bad':
            raise ValueError('handler failure')

    def consume(callback, blocking=True, raw=True):
        assert stream.connected
        for line in [b'# aprsc 2.1.14', b'', 'bad', f'{PACKET}\r\n'.encode(), f'{PACKET}\n{PACKET}']:
            callback(line)
        assert stream.send('N0CALL>APZHUB:>status')

    connection.consumer.side_effect = consume
    stream.on_line(handler)
    stream.connect('N0CALL-10', ['SP9UOB-11'])

    mock_is.assert_called_once_with(
        'N0CALL-10', '13023', host='euro.aprs2.net', port=14580, skip_login=True
    )
    connection.connect.assert_called_once_with(blocking=False)
    assert connection.sendall.call_args_list == [
        call(APRSisStream.login_line('N0CALL-10', ['SP9UOB-11'])),
        call('N0CALL>APZHUB:>status'),
    ]
    connection.close.assert_called()

    assert received == ['bad', PACKET]
    assert not stream.connected


@patch('aprs2sondehub.connections.aprs_is.aprslib.IS')
def test_stream_drop(mock_is):
    mock_is.return_value.consumer.side_effect = ConnectionDrop('connection dropped')

    stream = APRSisStream('euro.aprs2.net', port=10152)
    stream.connect('N0CALL', ['SP9UOB-11'])

    assert not stream.connected
    assert stream.location == 'euro.aprs2.net:10152'
    mock_is.return_value.close.assert_called()


@patch('aprs2sondehub.connections.aprs_is.aprslib.IS')
def test_stream_refused(mock_is):
    mock_is.return_value.connect.side_effect = ConnectionRefusedError('refused')

    stream = APRSisStream('euro.aprs2.net')
    stream.connect('N0CALL', ['SP9UOB-11'])

    assert not stream.connected
    mock_is.return_value.consumer.assert_not_called()


@patch('aprs2sondehub.connections.aprs_is.aprslib.IS')
def test_stream_closed_socket(mock_is):
    mock_is.return_value.consumer.side_effect = ValueError(
        'file descriptor cannot be a negative integer (-1)'
    )

    stream = APRSisStream('euro.aprs2.net')
    stream.connect('N0CALL', ['SP9UOB-11'])

    assert not stream.connected


def test_send_without_connection():
    stream = APRSisStream('euro.aprs2.net')

    assert not stream.send('N0CALL>APZHUB:>status')


@patch('aprs2sondehub.connections.aprs_is.aprslib.IS')
def test_send_failure(mock_is):
    connection = mock_is.return_value
    stream = APRSisStream('euro.aprs2.net')
    results = []

    def consume(callback, blocking=True, raw=True):
        connection.sendall.side_effect = BrokenPipeError('broken pipe')
        results.append(stream.send('N0CALL>APZHUB:>status'))

    connection.consumer.side_effect = consume
    stream.connect('N0CALL', ['SP9UOB-11'])

    assert results == [False]


@patch('aprs2sondehub.connections.sondehub.requests.put')
def test_sondehub_upload(mock_put):
    mock_put.return_value = Mock(ok=True, status_code=200, text='^v^ telm logged')

    sink = SondeHubTelemetrySink()
    try:
        assert sink.location == 'https://api.v2.sondehub.org/amateur/telemetry'
        assert sink.upload([RECORD]).result(timeout=5)
    finally:
        sink.close()

    mock_put.assert_called_once()
    args, kwargs = mock_put.call_args
    assert args == ('https://api.v2.sondehub.org/amateur/telemetry',)
    assert kwargs['json'] == [RECORD]
    assert kwargs['headers']['Accept'] == 'text/plain'


@patch('aprs2sondehub.connections.sondehub.requests.put')
def test_sondehub_dev(mock_put):
    mock_put.return_value = Mock(ok=True, status_code=200, text='^v^ telm logged')

    sink = SondeHubTelemetrySink('https://api.example.com/', dev=True)
    try:
        assert sink.send([RECORD])
    finally:
        sink.close()

    args, kwargs = mock_put.call_args
    assert args == ('https://api.example.com/amateur/telemetry',)
    assert kwargs['json'] == [{**RECORD, 'dev': True}]
    assert 'dev' not in RECORD


@pytest.mark.parametrize(
    'response',
    [
        Mock(ok=True, status_code=200, text='unexpected'),
        Mock(ok=False, status_code=500, text='internal server error'),
    ],
)
@patch('aprs2sondehub.connections.sondehub.requests.put')
def test_sondehub_rejected(mock_put, response):
    mock_put.return_value = response

    sink = SondeHubTelemetrySink()
    try:
        assert not sink.send([RECORD])
    finally:
        sink.close()


@patch('aprs2sondehub.connections.sondehub.requests.put')
def test_sondehub_unreachable(mock_put):
    mock_put.side_effect = requests.ConnectionError('unreachable')

    sink = SondeHubTelemetrySink()
    try:
        assert not sink.send([RECORD])
    finally:
        sink.close()


def test_failed_send_ends_session():
    server = socket.create_server(('127.0.0.1', 0))
    port = server.getsockname()[1]
    disconnected = threading.Event()

    def serve():
        connection, _ = server.accept()
        with connection:
            connection.settimeout(5)
            connection.sendall(b'# aprsc 2.1.14\r\n')

            login = b''
            while not login.endswith(b'\r\n'):
                chunk = connection.recv(1024)
                if not chunk:
                    return
                login += chunk

            connection.sendall(f'{PACKET}\r\n'.encode())
            try:
                while connection.recv(1024):
                    pass
            except OSError:
                return
            disconnected.set()

    threading.Thread(target=serve, daemon=True).start()

    stream = APRSisStream('127.0.0.1', port=port)
    received = []
    results = []

    def handler(line: str, source: APRSisStream):
        received.append(line)
        with patch.object(aprslib.IS, '_sendall', side_effect=BrokenPipeError('broken pipe')):
            results.append(source.send('N0CALL>APZHUB:>status'))

    stream.on_line(handler)
    try:
        stream.connect('N0CALL', ['SP9UOB-11'])
    finally:
        server.close()

    assert received == [PACKET]
    assert results == [False]
    assert not stream.connected
    assert disconnected.wait(timeout=5)
