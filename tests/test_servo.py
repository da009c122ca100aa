import pytest

from dynactl.bus import DynamixelBus
from dynactl.protocol import (
    BROADCAST_ID,
    Instruction,
    StatusError,
    build_packet,
    sync_write_params,
)
from dynactl.servo import (
    DynamixelServo,
    MovingStatus,
    VelocityProfileType,
)

SERVO_ID = 1


class FakeSerial:
    """Serial stand-in: every write makes the next queued reply readable."""

    def __init__(self, replies=()):
        self.baudrate = 57600
        self.replies = list(replies)
        self.written = []
        self._input = bytearray()

    def write(self, data):
        self.written.append(bytes(data))
        if self.replies:
            self._input += self.replies.pop(0)
        return len(data)

    def read(self, size=1):
        chunk = bytes(self._input[:size])
        del self._input[:size]
        return chunk

    def flush(self):
        pass

    def reset_input_buffer(self):
        self._input.clear()

    def close(self):
        pass


def status(data=b"", error=0, servo_id=SERVO_ID):
    return build_packet(servo_id, Instruction.STATUS, bytes((error,)) + bytes(data))


def make_servo(*replies):
    port = FakeSerial(replies)
    bus = DynamixelBus(port, SERVO_ID, timeout=0.05)
    return DynamixelServo(bus), port


def write_packet(address, data):
    return build_packet(SERVO_ID, Instruction.WRITE, address.to_bytes(2, "little") + data)


def test_moving_status_from_raw_decodes_bits():
    raw = (VelocityProfileType.TRIANGULAR << 4) | 0x08 | 0x01
    result = MovingStatus.from_raw(raw)
    assert result.raw == raw
    assert result.profile_type is VelocityProfileType.TRIANGULAR
    assert result.following_error is True
    assert result.profile_ongoing is False
    assert result.in_position is True


def test_moving_status_zero():
    result = MovingStatus.from_raw(0)
    assert result.profile_type is VelocityProfileType.PROFILE_NOT_USED
    assert not (result.following_error or result.profile_ongoing or result.in_position)


def test_set_operating_mode_sends_write_packet():
    servo, port = make_servo(status())
    assert servo.set_operating_mode(3) == 3
    assert port.written == [write_packet(11, bytes((3,)))]


@pytest.mark.parametrize("mode", [0, 2, 5, 17])
def test_set_operating_mode_rejects_unsupported(mode):
    servo, port = make_servo()
    with pytest.raises(ValueError):
        servo.set_operating_mode(mode)
    assert port.written == []


@pytest.mark.parametrize(
    "offset, expected", [(2_000_000, 1044479), (-2_000_000, -1044479), (1234, 1234)]
)
def test_set_homing_offset_clamps(offset, expected):
    servo, port = make_servo(status())
    assert servo.set_homing_offset(offset) == expected
    assert port.written == [write_packet(20, expected.to_bytes(4, "little", signed=True))]


def test_set_homing_offset_angle_clamps_large_angle():
    servo, _ = make_servo(status())
    assert servo.set_homing_offset_angle(1e9) == 1044479


def test_set_goal_position_clamps_to_4005():
    servo, port = make_servo(status())
    assert servo.set_goal_position(5000) == 4005
    assert port.written == [write_packet(116, (4005).to_bytes(4, "little"))]


def test_set_goal_angle_limits():
    servo, _ = make_servo(status(), status())
    assert servo.set_goal_angle(1000.0) == 4095
    assert servo.set_goal_angle(0.0) == 0


@pytest.mark.parametrize(
    "position, expected", [(2_000_000, 1048575), (-2_000_000, -1048575), (-10, -10)]
)
def test_set_goal_position_extended_clamps(position, expected):
    servo, port = make_servo(status())
    assert servo.set_goal_position_extended(position) == expected
    assert port.written == [write_packet(116, expected.to_bytes(4, "little", signed=True))]


def test_torque_and_led_write_single_byte():
    servo, port = make_servo(status(), status())
    servo.set_torque_enable(True)
    servo.set_led(False)
    assert port.written == [write_packet(64, b"\x01"), write_packet(65, b"\x00")]


def test_status_return_level_validation():
    servo, port = make_servo(status())
    with pytest.raises(ValueError):
        servo.set_status_return_level(3)
    assert servo.set_status_return_level(2) == 2
    assert port.written == [write_packet(68, b"\x02")]


def test_set_id_validation():
    servo, port = make_servo(status())
    with pytest.raises(ValueError):
        servo.set_id(254)
    assert servo.set_id(253) == 253
    assert port.written == [write_packet(7, bytes((253,)))]


def test_set_baud_rate_validation():
    servo, port = make_servo(status())
    with pytest.raises(ValueError):
        servo.set_baud_rate(8)
    assert servo.set_baud_rate(3) == 3
    assert port.written == [write_packet(8, b"\x03")]


def test_return_delay_time_clamps_to_254():
    servo, port = make_servo(status())
    assert servo.set_return_delay_time(300) == 254
    assert port.written == [write_packet(9, bytes((254,)))]


def test_drive_mode_bits():
    servo, port = make_servo(status(), status())
    assert servo.set_drive_mode(True, True, True) == 0x08 | 0x04 | 0x01
    assert servo.set_drive_mode(False, False, False) == 0
    assert port.written[0] == write_packet(10, bytes((0x08 | 0x04 | 0x01,)))


def test_profile_velocity_time_based_limit():
    servo, port = make_servo(status(b"\x04"), status())
    assert servo.set_profile_velocity(40000) == 32737
    assert port.written[-1] == write_packet(112, (32737).to_bytes(4, "little"))


def test_profile_velocity_velocity_based_limit():
    servo, _ = make_servo(status(b"\x00"), status())
    assert servo.set_profile_velocity(40000) == 32767


def test_profile_velocity_falls_back_when_drive_mode_read_fails():
    servo, _ = make_servo(status(b"\x04", error=0x02), status())
    assert servo.set_profile_velocity(40000) == 32767


def test_profile_acceleration_halved_in_time_based_mode():
    velocity = (100).to_bytes(4, "little")
    servo, port = make_servo(status(b"\x04"), status(velocity), status())
    assert servo.set_profile_acceleration(80) == 50
    assert port.written[-1] == write_packet(108, (50).to_bytes(4, "little"))


def test_profile_acceleration_untouched_in_velocity_mode():
    velocity = (100).to_bytes(4, "little")
    servo, _ = make_servo(status(b"\x00"), status(velocity), status())
    assert servo.set_profile_acceleration(80) == 80


def test_get_present_position_is_signed():
    servo, port = make_servo(status((-5).to_bytes(4, "little", signed=True)))
    assert servo.get_present_position() == -5
    read = build_packet(SERVO_ID, Instruction.READ, (132).to_bytes(2, "little") + (4).to_bytes(2, "little"))
    assert port.written == [read]


def test_get_current_load_is_signed():
    servo, _ = make_servo(status((-100).to_bytes(2, "little", signed=True)))
    assert servo.get_current_load() == -100


def test_get_moving_status_decodes_register():
    raw = (VelocityProfileType.TRAPEZOIDAL << 4) | 0x02
    servo, _ = make_servo(status(bytes((raw,))))
    assert servo.get_moving_status() == MovingStatus.from_raw(raw)


def test_status_error_propagates():
    servo, _ = make_servo(status(b"\x00\x00\x00\x00", error=0x07))
    with pytest.raises(StatusError) as info:
        servo.get_present_position()
    assert info.value.code == 0x07


def test_sync_mode_broadcasts_write():
    servo, port = make_servo()
    servo.bus.enable_sync([1, 2])
    assert servo.set_led(True) == 1
    expected = build_packet(
        BROADCAST_ID, Instruction.SYNC_WRITE, sync_write_params(65, 1, [1, 2], [1, 1])
    )
    assert port.written == [expected]