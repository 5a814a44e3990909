from datetime import datetime, timezone

import pytest

from homenet.commands import CoolTo, SetPower
from homenet.core import Address
from homenet.datum import Datum, DatumUnit, ParseError
from homenet.transport import (
    SENSOR_REQUEST,
    DeviceUnreachableError,
    TransportClient,
    TransportIOError,
    build_command_request,
    last_line,
    response_complete,
)

READING = "150.0@°C@2024-05-01T12:00:00+00:00"


def test_build_command_request_counts_utf8_bytes() -> None:
    request = build_command_request('{"Note": "°"}')

    assert request == (
        "POST HTTP/1.1\r\n"
        "Content-Type: application/json\r\n"
        "Content-Length: 14\r\n"
        "\r\n"
        '{"Note": "°"}'
    )


def test_response_complete_waits_for_declared_body() -> None:
    head = b"HTTP/1.1 200 OK\r\nContent-Length: 4\r\n\r\n"

    assert response_complete(head + b"ok") is False
    assert response_complete(head + b"okay") is True
    assert response_complete(b"HTTP/1.1 200 OK\r\n\r\nbody") is False
    assert response_complete(b"partial header") is False


def test_last_line_skips_trailing_blank_lines() -> None:
    assert last_line("HTTP/1.1 200 OK\r\n\r\n" + READING + "\r\n\r\n") == READING
    assert last_line("  \r\n") == ""


@pytest.mark.asyncio
async def test_fetch_datum_reads_last_line_until_eof(device_server_factory) -> None:
    server = await device_server_factory(f"HTTP/1.1 200 OK\r\nServer: sensor\r\n\r\n{READING}\r\n")
    client = TransportClient(read_timeout=2.0)

    datum = await client.fetch_datum(Address("127.0.0.1", server.port))

    assert datum == Datum(150.0, DatumUnit.DEGREES_C, datetime(2024, 5, 1, 12, tzinfo=timezone.utc))
    assert server.requests == [SENSOR_REQUEST]


@pytest.mark.asyncio
async def test_fetch_datum_stops_at_content_length(device_server_factory) -> None:
    body = READING.encode("utf-8")
    server = await device_server_factory(
        f"HTTP/1.1 200 OK\r\nContent-Length: {len(body)}\r\n\r\n{READING}",
        close_after_reply=False,
    )
    client = TransportClient(read_timeout=2.0)

    datum = await client.fetch_datum(Address("127.0.0.1", server.port))

    assert datum.value == 150.0
    assert datum.unit is DatumUnit.DEGREES_C


@pytest.mark.asyncio
async def test_send_command_posts_json_body(device_server_factory) -> None:
    server = await device_server_factory("HTTP/1.1 200 OK\r\n\r\nok\r\n")
    client = TransportClient(read_timeout=2.0)

    ack = await client.send_command(Address("127.0.0.1", server.port), CoolTo(100.0))

    assert ack == "HTTP/1.1 200 OK\r\n\r\nok"
    assert server.requests == [
        "POST HTTP/1.1\r\n"
        "Content-Type: application/json\r\n"
        "Content-Length: 17\r\n"
        "\r\n"
        '{"CoolTo": 100.0}'
    ]


@pytest.mark.asyncio
async def test_send_power_command(device_server_factory) -> None:
    server = await device_server_factory("ok")
    client = TransportClient(read_timeout=2.0)

    await client.send_command(Address("127.0.0.1", server.port), SetPower(True))

    assert server.requests[0].endswith('{"SetPower": true}')


@pytest.mark.asyncio
async def test_unreachable_device(unused_tcp_port) -> None:
    client = TransportClient(connect_timeout=1.0)
    address = Address("127.0.0.1", unused_tcp_port)

    with pytest.raises(DeviceUnreachableError) as excinfo:
        await client.fetch_datum(address)

    assert excinfo.value.address == address


@pytest.mark.asyncio
async def test_empty_response_is_parse_error(device_server_factory) -> None:
    server = await device_server_factory("")
    client = TransportClient(read_timeout=2.0)

    with pytest.raises(ParseError):
        await client.fetch_datum(Address("127.0.0.1", server.port))


@pytest.mark.asyncio
async def test_garbage_response_is_parse_error(device_server_factory) -> None:
    server = await device_server_factory("HTTP/1.1 500 Oops\r\n\r\nsensor fault\r\n")
    client = TransportClient(read_timeout=2.0)

    with pytest.raises(ParseError):
        await client.fetch_datum(Address("127.0.0.1", server.port))


@pytest.mark.asyncio
async def test_silent_device_times_out(device_server_factory) -> None:
    server = await device_server_factory("", close_after_reply=False)
    client = TransportClient(read_timeout=0.2)

    with pytest.raises(TransportIOError):
        await client.fetch_datum(Address("127.0.0.1", server.port))
