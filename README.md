# dynactl

A library for talking to Dynamixel servos over a serial line with
Protocol 2.0, together with two small helpers that often sit next to such
servos in a control loop: a PID controller and streaming filters.

## Install

```
pip install dynactl
```

To run the test suite:

```
pip install "dynactl[test]"
pytest
```

## Modules

- `dynactl.protocol`: building and decoding packets, with no serial port
  involved. It provides `calculate_crc`, `build_packet` and `parse_status`,
  the parameter-block builders `sync_write_params`, `sync_read_params`,
  `bulk_write_params` and `bulk_read_params`, and `format_hex`. It also
  defines the `Instruction` enum, the `StatusPacket` record (its `value` is
  the data read as a little-endian integer) and the exceptions
  `DynamixelError`, `CommunicationError` and `StatusError`.
- `dynactl.bus`: `DynamixelBus`, the serial transport. It covers `ping`,
  `read_register`, `write_register`, `sync_write`, `sync_read`, `bulk_write`,
  `bulk_read`, `factory_reset`, `reboot`, `led_off`, `print_response`, and
  sync mode (`enable_sync` / `disable_sync`).
- `dynactl.servo`: `DynamixelServo`, control-table helpers for the servo that
  a bus addresses, plus `MovingStatus`, `VelocityProfileType` and the
  `Register` address enum.
- `dynactl.group`: `ServoGroup`, which writes one value per motor to several
  servos with Sync Write and reads them back with Sync Read.
- `dynactl.filters`: `Filter` (the abstract base), `MovingAvgFilter` and
  `ExpSmoothingFilter`.
- `dynactl.pid`: `PID`, a discrete PID controller with a filtered derivative
  and anti-windup.

## Building packets without hardware

```python
from dynactl.protocol import Instruction, build_packet, format_hex, parse_status

ping = build_packet(1, Instruction.PING)
print(format_hex(ping))   # 0xFF 0xFF 0xFD 0x00 0x01 0x03 0x00 0x01 ...
```

`parse_status` decodes a frame that begins with the header. If the CRC does
not match, it returns a packet with `valid=False`. It raises
`CommunicationError` when the frame is truncated, has no header, or is not a
status packet.

## Talking to one servo

```python
from dynactl.bus import DynamixelBus
from dynactl.servo import DynamixelServo

with DynamixelBus.open("/dev/ttyUSB0", servo_id=1, baudrate=57600) as bus:
    model = bus.ping()
    bus.write_register(65, 1, 1)             # LED on
    raw = bus.read_register(132, 4)          # present position, unsigned

    servo = DynamixelServo(bus)
    servo.set_operating_mode(3)              # 1, 3, 4 or 16
    servo.set_torque_enable(True)
    servo.set_goal_angle(90.0)               # 0.088 degrees per pulse
    print(servo.get_present_position())      # signed 32-bit pulses
    print(servo.get_moving_status().in_position)
```

`DynamixelBus` takes any object with `write`, `read`, `flush`,
`reset_input_buffer`, `close` and a `baudrate` attribute. `open` creates a
`serial.Serial` for you. The receive timeout defaults to one second. Status
packets whose instruction byte is not 0x55, such as echoes of the packet just
sent, are skipped.

Setters on `DynamixelServo` return the value actually written. Out-of-range
positions, offsets, delays and profile values are clamped, and a warning is
logged. An unsupported operating mode, ID, baud-rate code or status return
level raises `ValueError`. `set_profile_velocity` and
`set_profile_acceleration` read the drive mode first. In time-based mode the
limit is 32737 instead of 32767, and the acceleration is capped at half of
the current profile velocity.

## Several servos at once

```python
from dynactl.group import ServoGroup

group = ServoGroup(bus, [1, 2, 3])           # enables sync mode on the bus
group.set_torque_enable([True, True, True])
group.set_goal_positions([1000, 2000, 3000])
print(group.get_present_positions())
bus.disable_sync()
```

Every sequence passed to a `ServoGroup` method needs one entry per registered
motor, otherwise the method raises `ValueError`. While sync mode is on,
`DynamixelBus.write_register` (and so every `DynamixelServo` setter) sends the
same value to all registered motors. Sync and bulk writes do not wait for an
answer.

## Errors

- `CommunicationError`: a packet could not be written, no complete status
  packet arrived in time, or its CRC did not match.
- `StatusError`: the servo answered with a non-zero error byte. Its `code`
  holds the byte and `servo_id` holds the ID of the servo.
- `ValueError`: an argument lies outside the values the servo accepts.

Both `CommunicationError` and `StatusError` derive from `DynamixelError`.
Diagnostic output, such as hex dumps of the packets sent and received, goes
to the standard `logging` module at debug level.

## Filters and PID

```python
from dynactl.filters import ExpSmoothingFilter, MovingAvgFilter
from dynactl.pid import PID

avg = MovingAvgFilter(4)          # missing samples count as zero
avg.filter(8)                     # -> 2
smooth = ExpSmoothingFilter(1, 4) # new value weighted 1/4
smooth.filter(8)                  # -> 2

controller = PID(kp=1.0, ki=0.1, kd=0.0, max_output=100.0, alpha=1.0)
controller.reference_value = 40.0
controller.feedback = 35.0
output = controller.calculate()
```

With integer input, both filters divide with truncation toward zero.

`PID.calculate` measures the time step between calls with the `clock`
keyword, which defaults to `time.monotonic`. Its output is the reference
value plus the PID terms, clamped to `±max_output`. The integral term is only
kept while the output is not clamped. `reset_state` clears the stored error,
filtered error and integral.

## What it does not do

This package has no command-line tool and no network or web interface. It
does not drive plain DC motors or read quadrature encoders. The PID
controller and the filters are provided as building blocks only, and you
connect them to your own sensors and actuators.