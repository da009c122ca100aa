"""Packet framing, CRC and parameter encoding for Dynamixel Protocol 2.0."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

HEADER = bytes((0xFF, 0xFF, 0xFD, 0x00))
BROADCAST_ID = 0xFE
MAX_DATA_BYTES = 4

# Offsets inside a frame that starts at the header.
_ID_OFFSET = 4
_LENGTH_OFFSET = 5
_INSTRUCTION_OFFSET = 7
_ERROR_OFFSET = 8
_PARAMS_OFFSET = 9
_MIN_FRAME = 7


class Instruction(IntEnum):
    """Instruction codes used by Protocol 2.0."""

    PING = 0x01
    READ = 0x02
    WRITE = 0x03
    FACTORY_RESET = 0x06
    REBOOT = 0x08
    STATUS = 0x55
    SYNC_READ = 0x82
    SYNC_WRITE = 0x83
    BULK_READ = 0x92
    BULK_WRITE = 0x93


class DynamixelError(Exception):
    """Base class for all errors raised by this package."""


class CommunicationError(DynamixelError):
    """A packet could not be sent, received or decoded."""


class StatusError(DynamixelError):
    """A servo answered with a non-zero error byte."""

    def __init__(self, code: int, servo_id: int | None = None) -> None:
        self.code = code
        self.servo_id = servo_id
        where = f" from device {servo_id}" if servo_id is not None else ""
        super().__init__(f"error in status packet{where}: 0x{code:02X}")


@dataclass(frozen=True)
class StatusPacket:
    """A decoded status packet returned by a servo."""

    valid: bool
    id: int
    error: int
    data: bytes
    data_length: int

    @property
    def value(self) -> int:
        """The data bytes read as one little-endian unsigned integer."""
        return int.from_bytes(self.data, "little")


def _make_crc_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte << 8
        for _ in range(8):
            crc = ((crc << 1) ^ 0x8005) if crc & 0x8000 else (crc << 1)
        table.append(crc & 0xFFFF)
    return tuple(table)


_CRC_TABLE = _make_crc_table()


def calculate_crc(data: bytes | bytearray | Sequence[int]) -> int:
    """Return the 16-bit CRC (polynomial 0x8005) of *data*."""
    crc = 0
    for byte in data:
        crc = ((crc << 8) ^ _CRC_TABLE[((crc >> 8) ^ byte) & 0xFF]) & 0xFFFF
    return crc


def _le(value: int, size: int) -> bytes:
    return (value & ((1 << (8 * size)) - 1)).to_bytes(size, "little")


def build_packet(servo_id: int, instruction: int, params: bytes | Sequence[int] = b"") -> bytes:
    """Build a complete instruction packet, CRC included."""
    params = bytes(params)
    body = (
        HEADER
        + bytes((servo_id & 0xFF,))
        + _le(len(params) + 3, 2)
        + bytes((int(instruction) & 0xFF,))
        + params
    )
    return body + _le(calculate_crc(body), 2)


def _check_lengths(**sequences: Sequence) -> None:
    sizes = {name: len(seq) for name, seq in sequences.items()}
    if len(set(sizes.values())) > 1:
        detail = ", ".join(f"{name}={size}" for name, size in sizes.items())
        raise ValueError(f"parameter sequences differ in length: {detail}")


def sync_write_params(
    address: int, data_length: int, ids: Sequence[int], values: Sequence[int]
) -> bytes:
    """Parameter block of a Sync Write: address, length, then ID and data per device."""
    _check_lengths(ids=ids, values=values)
    blocks = b"".join(
        bytes((servo_id & 0xFF,)) + _le(value, data_length)
        for servo_id, value in zip(ids, values)
    )
    return _le(address, 2) + _le(data_length, 2) + blocks


def sync_read_params(address: int, data_length: int, ids: Sequence[int]) -> bytes:
    """Parameter block of a Sync Read: address, length, then one ID per device."""
    return _le(address, 2) + _le(data_length, 2) + bytes(i & 0xFF for i in ids)


def bulk_write_params(
    ids: Sequence[int],
    addresses: Sequence[int],
    data_lengths: Sequence[int],
    values: Sequence[int],
) -> bytes:
    """Parameter block of a Bulk Write: ID, address, length and data per device."""
    _check_lengths(ids=ids, addresses=addresses, data_lengths=data_lengths, values=values)
    return b"".join(
        bytes((servo_id & 0xFF,)) + _le(address, 2) + _le(length, 2) + _le(value, length)
        for servo_id, address, length, value in zip(ids, addresses, data_lengths, values)
    )


def bulk_read_params(
    ids: Sequence[int], addresses: Sequence[int], data_lengths: Sequence[int]
) -> bytes:
    """Parameter block of a Bulk Read: ID, address and length per device."""
    _check_lengths(ids=ids, addresses=addresses, data_lengths=data_lengths)
    return b"".join(
        bytes((servo_id & 0xFF,)) + _le(address, 2) + _le(length, 2)
        for servo_id, address, length in zip(ids, addresses, data_lengths)
    )


def parse_status(frame: bytes | bytearray | Sequence[int]) -> StatusPacket:
    """Decode a status frame that starts at the header.

    A CRC mismatch yields a packet with ``valid`` set to False; a frame that is
    truncated, lacks the header or is not a status packet raises
    CommunicationError.
    """
    frame = bytes(frame)
    if len(frame) < _MIN_FRAME or not frame.startswith(HEADER):
        raise CommunicationError("frame does not start with a complete header")
    length_field = int.from_bytes(frame[_LENGTH_OFFSET:_LENGTH_OFFSET + 2], "little")
    total = _MIN_FRAME + length_field
    if len(frame) < total:
        raise CommunicationError(
            f"incomplete packet: expected {total} bytes, got {len(frame)}"
        )
    if length_field < 4:
        raise CommunicationError(f"length field {length_field} too small for a status packet")
    instruction = frame[_INSTRUCTION_OFFSET]
    if instruction != Instruction.STATUS:
        raise CommunicationError(
            f"invalid instruction 0x{instruction:02X}; expected 0x{Instruction.STATUS:02X}"
        )
    param_length = length_field - 4
    params = frame[_PARAMS_OFFSET:_PARAMS_OFFSET + param_length]
    crc_at = _PARAMS_OFFSET + param_length
    received_crc = int.from_bytes(frame[crc_at:crc_at + 2], "little")
    return StatusPacket(
        valid=received_crc == calculate_crc(frame[:crc_at]),
        id=frame[_ID_OFFSET],
        error=frame[_ERROR_OFFSET],
        data=params[:MAX_DATA_BYTES],
        data_length=param_length,
    )


def format_hex(data: bytes | bytearray | Sequence[int]) -> str:
    """Render bytes as space-separated ``0xHH`` tokens."""
    return " ".join(f"0x{byte:02X}" for byte in bytes(data))