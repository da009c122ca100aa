"""Synchronised control-table writes and reads for several servos on one bus."""

from __future__ import annotations

import logging
from typing import Sequence

from .bus import DynamixelBus
from .protocol import DynamixelError
from .servo import (
    BAUD_RATE_CODES,
    DEGREES_PER_PULSE,
    DRIVE_MODE_REVERSE,
    DRIVE_MODE_TIME_BASED,
    DRIVE_MODE_TORQUE_ON_BY_GOAL,
    MAX_EXTENDED_POSITION,
    MAX_GOAL_ANGLE_PULSES,
    MAX_HOMING_OFFSET,
    MAX_ID,
    MAX_PROFILE_TIME_BASED,
    MAX_PROFILE_VELOCITY_BASED,
    MAX_RETURN_DELAY,
    MAX_STATUS_RETURN_LEVEL,
    OPERATING_MODES,
    Register,
    _clamp,
    _to_signed,
)

logger = logging.getLogger(__name__)


class ServoGroup:
    """Per-motor values for every motor registered on a bus in sync mode.

    Each sequence passed to a method holds one entry per motor, in the order
    the motors were registered. Setters return the values actually written.
    """

    def __init__(self, bus: DynamixelBus, motor_ids: Sequence[int] | None = None) -> None:
        self.bus = bus
        if motor_ids is not None:
            bus.enable_sync(motor_ids)

    @property
    def motor_ids(self) -> tuple[int, ...]:
        return self.bus.motor_ids

    def _check(self, values: Sequence) -> tuple[int, ...]:
        ids = self.bus.motor_ids
        if not ids:
            raise ValueError("sync mode is not enabled on the bus")
        if len(values) != len(ids):
            raise ValueError(
                f"array size {len(values)} does not match number of motors {len(ids)}"
            )
        return ids

    def _write(self, register: Register, size: int, values: Sequence) -> list[int]:
        ids = self._check(values)
        written = [int(v) for v in values]
        self.bus.sync_write(register, size, ids, written)
        return written

    def _profile_limit(self) -> tuple[bool, int]:
        try:
            drive_mode = self.bus.read_register(Register.DRIVE_MODE, 1) & 0xFF
        except DynamixelError as exc:
            logger.debug("Could not read drive mode: %s", exc)
            drive_mode = 0
        time_based = bool(drive_mode & DRIVE_MODE_TIME_BASED)
        return time_based, MAX_PROFILE_TIME_BASED if time_based else MAX_PROFILE_VELOCITY_BASED

    def set_operating_modes(self, modes: Sequence[int]) -> list[int]:
        """Set each motor to 1 velocity, 3 position, 4 extended position or 16 PWM."""
        self._check(modes)
        for mode in modes:
            if mode not in OPERATING_MODES:
                raise ValueError(f"unsupported operating mode: {mode}")
        return self._write(Register.OPERATING_MODE, 1, modes)

    def set_homing_offsets(self, offsets: Sequence[int]) -> list[int]:
        """Set homing offsets in pulses, each clamped to +/-1,044,479."""
        self._check(offsets)
        clamped = [
            _clamp(int(o), -MAX_HOMING_OFFSET, MAX_HOMING_OFFSET, "Homing offset")
            for o in offsets
        ]
        return self._write(Register.HOMING_OFFSET, 4, clamped)

    def set_homing_offset_angles(self, angles: Sequence[float]) -> list[int]:
        """Set homing offsets in degrees (0.088 degrees per pulse)."""
        self._check(angles)
        return self.set_homing_offsets([int(a / DEGREES_PER_PULSE) for a in angles])

    def set_goal_positions(self, positions: Sequence[int]) -> list[int]:
        """Set goal positions in pulses for Position Control Mode, clamped to 4095."""
        self._check(positions)
        clamped = [
            _clamp(int(p), 0, MAX_GOAL_ANGLE_PULSES, "Goal position") for p in positions
        ]
        return self._write(Register.GOAL_POSITION, 4, clamped)

    def set_goal_angles(self, angles: Sequence[float]) -> list[int]:
        """Set goal positions in degrees for Position Control Mode."""
        self._check(angles)
        pulses = [
            _clamp(int(a / DEGREES_PER_PULSE), 0, MAX_GOAL_ANGLE_PULSES, "Goal angle")
            for a in angles
        ]
        return self._write(Register.GOAL_POSITION, 4, pulses)

    def set_goal_positions_extended(self, positions: Sequence[int]) -> list[int]:
        """Set goal positions for Extended Position Control Mode, clamped to +/-1,048,575."""
        self._check(positions)
        clamped = [
            _clamp(int(p), -MAX_EXTENDED_POSITION, MAX_EXTENDED_POSITION, "Extended position")
            for p in positions
        ]
        return self._write(Register.GOAL_POSITION, 4, clamped)

    def set_torque_enable(self, enable: Sequence[bool]) -> list[int]:
        return self._write(Register.TORQUE_ENABLE, 1, [1 if e else 0 for e in enable])

    def set_leds(self, enable: Sequence[bool]) -> list[int]:
        return self._write(Register.LED, 1, [1 if e else 0 for e in enable])

    def set_status_return_levels(self, levels: Sequence[int]) -> list[int]:
        """0: ping only, 1: ping and read, 2: all instructions."""
        self._check(levels)
        for level in levels:
            if not 0 <= level <= MAX_STATUS_RETURN_LEVEL:
                raise ValueError(f"invalid status return level {level}; allowed 0, 1 or 2")
        return self._write(Register.STATUS_RETURN_LEVEL, 1, levels)

    def set_ids(self, new_ids: Sequence[int]) -> list[int]:
        self._check(new_ids)
        for new_id in new_ids:
            if not 0 <= new_id <= MAX_ID:
                raise ValueError(f"invalid ID {new_id}; valid IDs are 0 to {MAX_ID}")
        return self._write(Register.ID, 1, new_ids)

    def set_baud_rates(self, codes: Sequence[int]) -> list[int]:
        """Set baud rate codes (0: 9600 ... 7: 4.5M)."""
        self._check(codes)
        for code in codes:
            if code not in BAUD_RATE_CODES:
                raise ValueError(f"unrecognized baud rate code: {code}")
        return self._write(Register.BAUD_RATE, 1, codes)

    def set_return_delay_times(self, delays: Sequence[int]) -> list[int]:
        """Set status return delays in 2 microsecond units, clamped to 254."""
        self._check(delays)
        clamped = [_clamp(int(d), 0, MAX_RETURN_DELAY, "Return delay time") for d in delays]
        return self._write(Register.RETURN_DELAY_TIME, 1, clamped)

    def set_drive_modes(
        self,
        torque_on_by_goal_update: Sequence[bool],
        time_based_profile: Sequence[bool],
        reverse_mode: Sequence[bool],
    ) -> list[int]:
        for flags in (torque_on_by_goal_update, time_based_profile, reverse_mode):
            self._check(flags)
        modes = []
        for torque, time_based, reverse in zip(
            torque_on_by_goal_update, time_based_profile, reverse_mode
        ):
            mode = 0
            if torque:
                mode |= DRIVE_MODE_TORQUE_ON_BY_GOAL
            if time_based:
                mode |= DRIVE_MODE_TIME_BASED
            if reverse:
                mode |= DRIVE_MODE_REVERSE
            modes.append(mode)
        return self._write(Register.DRIVE_MODE, 1, modes)

    def set_profile_velocities(self, velocities: Sequence[int]) -> list[int]:
        """Set Profile Velocity per motor, clamped according to the drive mode."""
        self._check(velocities)
        _, limit = self._profile_limit()
        clamped = [_clamp(int(v), 0, limit, "Profile velocity") for v in velocities]
        return self._write(Register.PROFILE_VELOCITY, 4, clamped)

    def set_profile_accelerations(self, accelerations: Sequence[int]) -> list[int]:
        """Set Profile Acceleration per motor; in time-based mode at most half the velocity."""
        self._check(accelerations)
        time_based, limit = self._profile_limit()
        clamped = [_clamp(int(a), 0, limit, "Profile acceleration") for a in accelerations]
        try:
            velocity = self.bus.read_register(Register.PROFILE_VELOCITY, 4)
        except DynamixelError as exc:
            logger.debug("Error reading Profile Velocity: %s", exc)
        else:
            if time_based and velocity > 0:
                half = velocity // 2
                if any(a > half for a in clamped):
                    logger.warning(
                        "Profile acceleration clamped to half of profile velocity: %d", half
                    )
                clamped = [min(a, half) for a in clamped]
        return self._write(Register.PROFILE_ACCELERATION, 4, clamped)

    def get_present_positions(self) -> list[int]:
        """Return each motor's present position as a signed 32-bit pulse count."""
        ids = self._check(self.bus.motor_ids)
        raw = self.bus.sync_read(Register.PRESENT_POSITION, 4, ids)
        return [_to_signed(v, 32) for v in raw]

    def get_current_loads(self) -> list[int]:
        """Return each motor's present load in 0.1 % units (negative is CW)."""
        ids = self._check(self.bus.motor_ids)
        raw = self.bus.sync_read(Register.PRESENT_LOAD, 2, ids)
        return [_to_signed(v, 16) for v in raw]