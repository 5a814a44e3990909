"""Minimal TCP request/response client for talking to devices.

This is not an HTTP client. A request is a method line, an
optional header block and an optional body; the response is read until the
peer closes the connection or, when the response declares a
``Content-Length`` before its blank line, until that many body bytes have
arrived.

No retries happen here.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from .commands import CONTENT_TYPE, Command, encode_command
from .core.models import Address
from .datum import Datum, ParseError, decode

LOGGER = logging.getLogger(__name__)

SENSOR_REQUEST = "GET / HTTP/1.1\r\n\r\n"

_HEADER_TERMINATOR = b"\r\n\r\n"
_READ_CHUNK = 4096


class TransportError(RuntimeError):
    """Base class for failures talking to a device."""

    def __init__(self, message: str, *, address: Address) -> None:
        super().__init__(message)
        self.address = address


class DeviceUnreachableError(TransportError):
    """Raised when a connection to the device cannot be opened."""


class TransportIOError(TransportError):
    """Raised when reading from or writing to the device fails."""


def build_command_request(command_json: str) -> str:
    body_length = len(command_json.encode("utf-8"))
    return (
        "POST HTTP/1.1\r\n"
        f"Content-Type: {CONTENT_TYPE}\r\n"
        f"Content-Length: {body_length}\r\n"
        "\r\n"
        f"{command_json}"
    )


def _declared_body_length(header_block: bytes) -> Optional[int]:
    for line in header_block.split(b"\r\n"):
        name, sep, value = line.partition(b":")
        if sep and name.strip().lower() == b"content-length":
            try:
                return max(0, int(value.strip()))
            except ValueError:
                return None
    return None


def response_complete(buffer: bytes) -> bool:
    """Return True once a header-bearing response has its full body."""
    header_end = buffer.find(_HEADER_TERMINATOR)
    if header_end < 0:
        return False
    length = _declared_body_length(buffer[:header_end])
    if length is None:
        return False
    return len(buffer) - (header_end + len(_HEADER_TERMINATOR)) >= length


def last_line(response: str) -> str:
    for line in reversed(response.splitlines()):
        stripped = line.strip()
        if stripped:
            return stripped
    return ""


class TransportClient:
    """Sends one request per connection and returns the full response text."""

    def __init__(
        self,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 5.0,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout

    async def send(self, address: Address, request: str) -> str:
        """Send ``request`` to ``address`` and return the decoded response.

        Raises:
            DeviceUnreachableError: If the connection cannot be established.
            TransportIOError: If writing or reading fails or times out.
        """
        LOGGER.debug("Connecting to %s", address)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(address.host, address.port),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise DeviceUnreachableError(
                f"Timed out connecting to {address}", address=address
            ) from exc
        except OSError as exc:
            raise DeviceUnreachableError(
                f"Unable to connect to {address}: {exc}", address=address
            ) from exc

        try:
            writer.write(request.encode("utf-8"))
            await writer.drain()
            payload = await asyncio.wait_for(self._read_response(reader), timeout=self._read_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportIOError(
                f"Timed out reading response from {address}", address=address
            ) from exc
        except OSError as exc:
            raise TransportIOError(f"I/O error talking to {address}: {exc}", address=address) from exc
        finally:
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()

        try:
            return payload.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise TransportIOError(
                f"Response from {address} is not valid UTF-8", address=address
            ) from exc

    async def _read_response(self, reader: asyncio.StreamReader) -> bytes:
        buffer = bytearray()
        while True:
            chunk = await reader.read(_READ_CHUNK)
            if not chunk:
                break
            buffer.extend(chunk)
            if response_complete(bytes(buffer)):
                break
        return bytes(buffer)

    async def fetch_datum(self, address: Address) -> Datum:
        """Poll a sensor for its current reading.

        Raises:
            TransportError: If the sensor cannot be reached or read.
            ParseError: If the last line of the response is not a Datum.
        """
        response = await self.send(address, SENSOR_REQUEST)
        LOGGER.debug("Sensor %s responded: %r", address, response)
        line = last_line(response)
        if not line:
            raise ParseError(response, "Datum", "empty response")
        return decode(line)

    async def send_command(self, address: Address, command: Command) -> str:
        """Dispatch a command to an actuator and return its acknowledgement."""
        request = build_command_request(encode_command(command))
        response = await self.send(address, request)
        LOGGER.debug("Actuator %s acknowledged %s: %r", address, command.TAG, response)
        return response
