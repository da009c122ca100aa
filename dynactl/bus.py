"""Serial transport for Dynamixel Protocol 2.0 instruction and status packets."""

from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

import serial

from .protocol import (
    BROADCAST_ID,
    HEADER,
    CommunicationError,
    Instruction,
    StatusError,
    StatusPacket,
    build_packet,
    bulk_read_params,
    bulk_write_params,
    format_hex,
    parse_status,
    sync_read_params,
    sync_write_params,
)

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 57600
DEFAULT_TIMEOUT = 1.0
MAX_PACKET_SIZE = 64
_HEADER_AND_LENGTH = 7
_INSTRUCTION_OFFSET = 7


class SerialPort(Protocol):
    """The part of a serial port the bus relies on."""

    baudrate: int

    def write(self, data: bytes) -> int | None: ...

    def read(self, size: int = 1) -> bytes: ...

    def flush(self) -> None: ...

    def reset_input_buffer(self) -> None: ...

    def close(self) -> None: ...


class DynamixelBus:
    """A half-duplex serial line shared by Dynamixel servos.

    The bus addresses one servo by default; after :meth:`enable_sync` single
    register writes are broadcast to every registered motor with Sync Write.
    """

    def __init__(
        self, port: SerialPort, servo_id: int, *, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self._serial = port
        self.servo_id = servo_id
        self.timeout = timeout
        self._motor_ids: tuple[int, ...] = ()

    @classmethod
    def open(
        cls, port: str, servo_id: int, baudrate: int = DEFAULT_BAUDRATE
    ) -> "DynamixelBus":
        """Open a serial device and return a bus talking to *servo_id*."""
        return cls(serial.Serial(port, baudrate, timeout=0.01), servo_id)

    def close(self) -> None:
        self._serial.close()

    def __enter__(self) -> "DynamixelBus":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def begin(self, baudrate: int = DEFAULT_BAUDRATE) -> None:
        """Set the line speed of the serial port."""
        self._serial.baudrate = baudrate

    # ------------------------------------------------------------------ sync

    @property
    def sync(self) -> bool:
        """True while writes are broadcast to the registered motors."""
        return bool(self._motor_ids)

    @property
    def motor_ids(self) -> tuple[int, ...]:
        return self._motor_ids

    @property
    def num_motors(self) -> int:
        return len(self._motor_ids) if self._motor_ids else 1

    def enable_sync(self, motor_ids: Sequence[int]) -> None:
        """Register at least two motors for synchronised writes."""
        ids = tuple(motor_ids)
        if len(ids) < 2:
            raise ValueError("sync mode needs at least 2 motors")
        self._motor_ids = ids

    def disable_sync(self) -> None:
        self._motor_ids = ()

    # ------------------------------------------------------------- transport

    def send_packet(self, packet: bytes) -> None:
        """Discard pending input and write *packet* in one go."""
        packet = bytes(packet)
        logger.debug("Sent packet: %s", format_hex(packet))
        self._serial.reset_input_buffer()
        written = self._serial.write(packet)
        self._serial.flush()
        if written != len(packet):
            raise CommunicationError(
                f"wrote {written} of {len(packet)} bytes"
            )

    def _read_byte(self) -> bytes:
        return self._serial.read(1)

    def _read_frame(self) -> bytes:
        deadline = time.monotonic() + self.timeout
        buffer = bytearray()
        while len(buffer) < MAX_PACKET_SIZE and not buffer.endswith(HEADER):
            if time.monotonic() >= deadline:
                break
            buffer += self._read_byte()
        if not buffer.endswith(HEADER):
            raise CommunicationError("header not found within timeout")
        room = MAX_PACKET_SIZE - (len(buffer) - len(HEADER))
        frame = bytearray(HEADER)

        def fill(target: int, what: str) -> None:
            while len(frame) < target and len(frame) < room:
                if time.monotonic() >= deadline:
                    break
                frame.extend(self._read_byte())
            if len(frame) < target:
                raise CommunicationError(what)

        fill(_HEADER_AND_LENGTH, "timeout waiting for header extension")
        length_field = int.from_bytes(frame[5:7], "little")
        fill(_HEADER_AND_LENGTH + length_field, "incomplete packet received")
        if len(frame) <= _INSTRUCTION_OFFSET:
            raise CommunicationError("packet too short to hold an instruction")
        logger.debug("Received packet: %s", format_hex(frame))
        return bytes(frame)

    def receive_packet(self) -> StatusPacket:
        """Read the next status packet, skipping echoed instruction packets.

        Raises CommunicationError when no complete packet arrives in time. A
        packet whose CRC does not match is returned with ``valid`` False.
        """
        while True:
            frame = self._read_frame()
            if frame[_INSTRUCTION_OFFSET] == Instruction.STATUS:
                return parse_status(frame)
            logger.debug("Invalid instruction; expected 0x55. Likely an echo; retrying")

    def print_response(self) -> bytes:
        """Print every byte that arrives within the timeout and return them."""
        self._serial.reset_input_buffer()
        deadline = time.monotonic() + self.timeout
        received = bytearray()
        print("Response start:")
        while time.monotonic() < deadline:
            chunk = self._read_byte()
            if chunk:
                received += chunk
                print(format_hex(chunk), end=" ")
        print("\nResponse end")
        return bytes(received)

    def _transact(self, packet: bytes) -> StatusPacket:
        self.send_packet(packet)
        response = self.receive_packet()
        if not response.valid:
            raise CommunicationError("invalid status packet: CRC mismatch")
        if response.error:
            raise StatusError(response.error, response.id)
        return response

    # ---------------------------------------------------------- instructions

    def led_off(self) -> None:
        """Switch off the LED of servo 1 without waiting for an answer."""
        self.send_packet(build_packet(0x01, Instruction.WRITE, (0x41, 0x00, 0x00)))

    def ping(self) -> int:
        """Ping the servo and return its parameters (model and firmware) as an integer."""
        return self._transact(build_packet(self.servo_id, Instruction.PING)).value

    def read_register(self, address: int, size: int) -> int:
        """Read *size* bytes starting at *address* as a little-endian integer."""
        params = address.to_bytes(2, "little") + size.to_bytes(2, "little")
        return self._transact(build_packet(self.servo_id, Instruction.READ, params)).value

    def write_register(self, address: int, value: int, size: int) -> None:
        """Write *value* as *size* little-endian bytes at *address*.

        In sync mode the same value is sent to every registered motor.
        """
        if self.sync:
            self.sync_write(address, size, self._motor_ids, [value] * len(self._motor_ids))
            return
        data = (value & ((1 << (8 * size)) - 1)).to_bytes(size, "little")
        params = address.to_bytes(2, "little") + data
        self._transact(build_packet(self.servo_id, Instruction.WRITE, params))

    def sync_write(
        self,
        address: int,
        data_length: int,
        ids: Sequence[int],
        values: Sequence[int],
    ) -> None:
        """Broadcast one value per device to the same register."""
        params = sync_write_params(address, data_length, ids, values)
        packet = build_packet(BROADCAST_ID, Instruction.SYNC_WRITE, params)
        logger.debug("Sync Write packet: %s", format_hex(packet))
        self.send_packet(packet)

    def sync_read(self, address: int, data_length: int, ids: Sequence[int]) -> list[int]:
        """Read the same register from several devices, in the order of *ids*.

        Devices that do not answer validly read as 0. If any device reports an
        error, StatusError for the last such report is raised after all
        answers have been collected.
        """
        ids = list(ids)
        packet = build_packet(
            BROADCAST_ID, Instruction.SYNC_READ, sync_read_params(address, data_length, ids)
        )
        logger.debug("Sync Read packet: %s", format_hex(packet))
        self.send_packet(packet)
        values = [0] * len(ids)
        failure: StatusError | None = None
        for _ in ids:
            try:
                response = self.receive_packet()
            except CommunicationError as exc:
                logger.debug("No status packet: %s", exc)
                continue
            if not response.valid:
                logger.debug("Invalid status packet received")
                continue
            if response.error:
                failure = StatusError(response.error, response.id)
                logger.debug("%s", failure)
                continue
            if response.id in ids:
                values[ids.index(response.id)] |= response.value
        if failure is not None:
            raise failure
        return values

    def bulk_write(
        self,
        ids: Sequence[int],
        addresses: Sequence[int],
        data_lengths: Sequence[int],
        values: Sequence[int],
    ) -> None:
        """Write a different register and length to each device."""
        params = bulk_write_params(ids, addresses, data_lengths, values)
        packet = build_packet(BROADCAST_ID, Instruction.BULK_WRITE, params)
        logger.debug("Bulk Write packet: %s", format_hex(packet))
        self.send_packet(packet)

    def bulk_read(
        self,
        ids: Sequence[int],
        addresses: Sequence[int],
        data_lengths: Sequence[int],
    ) -> list[int]:
        """Read a different register from each device; answers are taken in order.

        A missing answer reads as 0. If any device reports an error,
        StatusError for the last such report is raised once all are read.
        """
        ids = list(ids)
        params = bulk_read_params(ids, addresses, data_lengths)
        packet = build_packet(BROADCAST_ID, Instruction.BULK_READ, params)
        logger.debug("Bulk Read packet: %s", format_hex(packet))
        self.send_packet(packet)
        values = []
        failure: StatusError | None = None
        for servo_id in ids:
            try:
                response = self.receive_packet()
            except CommunicationError as exc:
                logger.debug("No status packet from device %d: %s", servo_id, exc)
                values.append(0)
                continue
            if response.error:
                failure = StatusError(response.error, servo_id)
                logger.debug("%s", failure)
            elif not response.valid:
                logger.debug("Invalid status packet from device %d", servo_id)
            values.append(response.value)
        if failure is not None:
            raise failure
        return values

    def factory_reset(self, level: int) -> None:
        """Reset the control table: 0xFF all, 0x01 all but ID, 0x02 all but ID and baud rate."""
        self._transact(build_packet(self.servo_id, Instruction.FACTORY_RESET, (level & 0xFF,)))

    def reboot(self) -> None:
        self._transact(build_packet(self.servo_id, Instruction.REBOOT))