"""Control-table access for a single Dynamixel servo (XL430-W250 layout)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from .bus import DynamixelBus
from .protocol import DynamixelError

logger = logging.getLogger(__name__)

DEGREES_PER_PULSE = 0.088

OPERATING_MODES = frozenset({1, 3, 4, 16})
BAUD_RATE_CODES = frozenset(range(8))

MAX_HOMING_OFFSET = 1044479
MAX_GOAL_POSITION = 4005
MAX_GOAL_ANGLE_PULSES = 4095
MAX_EXTENDED_POSITION = 1048575
MAX_RETURN_DELAY = 254
MAX_ID = 253
MAX_STATUS_RETURN_LEVEL = 2
MAX_PROFILE_TIME_BASED = 32737
MAX_PROFILE_VELOCITY_BASED = 32767

DRIVE_MODE_REVERSE = 0x01
DRIVE_MODE_TIME_BASED = 0x04
DRIVE_MODE_TORQUE_ON_BY_GOAL = 0x08


class Register(IntEnum):
    """Control-table addresses used by the servo."""

    ID = 7
    BAUD_RATE = 8
    RETURN_DELAY_TIME = 9
    DRIVE_MODE = 10
    OPERATING_MODE = 11
    HOMING_OFFSET = 20
    TORQUE_ENABLE = 64
    LED = 65
    STATUS_RETURN_LEVEL = 68
    PROFILE_ACCELERATION = 108
    PROFILE_VELOCITY = 112
    GOAL_POSITION = 116
    MOVING_STATUS = 123
    PRESENT_LOAD = 126
    PRESENT_POSITION = 132


class VelocityProfileType(IntEnum):
    """Velocity profile reported in bits 5-4 of Moving Status."""

    PROFILE_NOT_USED = 0
    RECTANGULAR = 1
    TRIANGULAR = 2
    TRAPEZOIDAL = 3


@dataclass(frozen=True)
class MovingStatus:
    """Decoded Moving Status register."""

    raw: int
    profile_type: VelocityProfileType
    following_error: bool
    profile_ongoing: bool
    in_position: bool

    @classmethod
    def from_raw(cls, raw: int) -> "MovingStatus":
        raw &= 0xFF
        return cls(
            raw=raw,
            profile_type=VelocityProfileType((raw >> 4) & 0x03),
            following_error=bool((raw >> 3) & 0x01),
            profile_ongoing=bool((raw >> 1) & 0x01),
            in_position=bool(raw & 0x01),
        )


def _clamp(value: int, low: int, high: int, what: str) -> int:
    if value > high:
        logger.warning("%s clamped to %d", what, high)
        return high
    if value < low:
        logger.warning("%s clamped to %d", what, low)
        return low
    return value


def _to_signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    return value - (1 << bits) if value & (1 << (bits - 1)) else value


class DynamixelServo:
    """High-level register access for the servo a bus addresses.

    Setters return the value actually written after clamping. When the bus is
    in sync mode every write reaches all registered motors.
    """

    def __init__(self, bus: DynamixelBus) -> None:
        self.bus = bus

    def _write(self, register: Register, value: int, size: int) -> int:
        self.bus.write_register(register, value, size)
        return value

    def _time_based_profile(self) -> bool:
        try:
            drive_mode = self.bus.read_register(Register.DRIVE_MODE, 1) & 0xFF
        except DynamixelError as exc:
            logger.debug("Could not read drive mode: %s", exc)
            return False
        return bool(drive_mode & DRIVE_MODE_TIME_BASED)

    def _profile_limit(self) -> tuple[bool, int]:
        time_based = self._time_based_profile()
        return time_based, MAX_PROFILE_TIME_BASED if time_based else MAX_PROFILE_VELOCITY_BASED

    def set_operating_mode(self, mode: int) -> int:
        """Select 1 velocity, 3 position, 4 extended position or 16 PWM."""
        if mode not in OPERATING_MODES:
            raise ValueError(f"unsupported operating mode: {mode}")
        return self._write(Register.OPERATING_MODE, mode, 1)

    def set_homing_offset(self, offset: int) -> int:
        """Set the homing offset in pulses, clamped to +/-1,044,479."""
        offset = _clamp(int(offset), -MAX_HOMING_OFFSET, MAX_HOMING_OFFSET, "Homing offset")
        return self._write(Register.HOMING_OFFSET, offset, 4)

    def set_homing_offset_angle(self, angle: float) -> int:
        """Set the homing offset in degrees (0.088 degrees per pulse)."""
        return self.set_homing_offset(int(angle / DEGREES_PER_PULSE))

    def set_goal_position(self, position: int) -> int:
        """Set the goal position in pulses for Position Control Mode."""
        position = _clamp(int(position), 0, MAX_GOAL_POSITION, "Goal position")
        return self._write(Register.GOAL_POSITION, position, 4)

    def set_goal_angle(self, angle: float) -> int:
        """Set the goal position in degrees for Position Control Mode."""
        pulses = _clamp(int(angle / DEGREES_PER_PULSE), 0, MAX_GOAL_ANGLE_PULSES, "Goal angle")
        return self._write(Register.GOAL_POSITION, pulses, 4)

    def set_goal_position_extended(self, position: int) -> int:
        """Set the goal position for Extended Position Control Mode."""
        position = _clamp(
            int(position), -MAX_EXTENDED_POSITION, MAX_EXTENDED_POSITION, "Extended position"
        )
        return self._write(Register.GOAL_POSITION, position, 4)

    def set_torque_enable(self, enable: bool) -> int:
        return self._write(Register.TORQUE_ENABLE, 1 if enable else 0, 1)

    def set_led(self, enable: bool) -> int:
        return self._write(Register.LED, 1 if enable else 0, 1)

    def set_status_return_level(self, level: int) -> int:
        """0: ping only, 1: ping and read, 2: all instructions."""
        if not 0 <= level <= MAX_STATUS_RETURN_LEVEL:
            raise ValueError(f"invalid status return level {level}; allowed 0, 1 or 2")
        return self._write(Register.STATUS_RETURN_LEVEL, level, 1)

    def set_id(self, new_id: int) -> int:
        if not 0 <= new_id <= MAX_ID:
            raise ValueError(f"invalid ID {new_id}; valid IDs are 0 to {MAX_ID}")
        return self._write(Register.ID, new_id, 1)

    def set_baud_rate(self, code: int) -> int:
        """Set the baud rate code (0: 9600 ... 7: 4.5M)."""
        if code not in BAUD_RATE_CODES:
            raise ValueError(f"unrecognized baud rate code: {code}")
        return self._write(Register.BAUD_RATE, code, 1)

    def set_return_delay_time(self, delay: int) -> int:
        """Set the status return delay in 2 microsecond units, clamped to 254."""
        delay = _clamp(int(delay), 0, MAX_RETURN_DELAY, "Return delay time")
        return self._write(Register.RETURN_DELAY_TIME, delay, 1)

    def set_drive_mode(
        self, torque_on_by_goal_update: bool, time_based_profile: bool, reverse_mode: bool
    ) -> int:
        mode = 0
        if torque_on_by_goal_update:
            mode |= DRIVE_MODE_TORQUE_ON_BY_GOAL
        if time_based_profile:
            mode |= DRIVE_MODE_TIME_BASED
        if reverse_mode:
            mode |= DRIVE_MODE_REVERSE
        return self._write(Register.DRIVE_MODE, mode, 1)

    def set_profile_velocity(self, velocity: int) -> int:
        """Set Profile Velocity, clamped according to the current drive mode."""
        _, limit = self._profile_limit()
        velocity = _clamp(int(velocity), 0, limit, "Profile velocity")
        return self._write(Register.PROFILE_VELOCITY, velocity, 4)

    def set_profile_acceleration(self, acceleration: int) -> int:
        """Set Profile Acceleration; in time-based mode at most half the profile velocity."""
        time_based, limit = self._profile_limit()
        acceleration = _clamp(int(acceleration), 0, limit, "Profile acceleration")
        try:
            velocity = self.bus.read_register(Register.PROFILE_VELOCITY, 4)
        except DynamixelError as exc:
            logger.debug("Error reading Profile Velocity: %s", exc)
        else:
            if time_based and velocity > 0 and acceleration > velocity // 2:
                acceleration = velocity // 2
                logger.warning(
                    "Profile acceleration clamped to half of profile velocity: %d", acceleration
                )
        return self._write(Register.PROFILE_ACCELERATION, acceleration, 4)

    def get_present_position(self) -> int:
        """Return the present position as a signed 32-bit pulse count."""
        return _to_signed(self.bus.read_register(Register.PRESENT_POSITION, 4), 32)

    def get_current_load(self) -> int:
        """Return the present load in 0.1 % units (negative is CW)."""
        return _to_signed(self.bus.read_register(Register.PRESENT_LOAD, 2), 16)

    def get_moving_status(self) -> MovingStatus:
        return MovingStatus.from_raw(self.bus.read_register(Register.MOVING_STATUS, 1))