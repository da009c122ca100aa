import pytest

from dynactl.pid import PID


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_pid(kp=0.0, ki=0.0, kd=0.0, max_output=100.0, alpha=1.0):
    clock = FakeClock()
    return PID(kp, ki, kd, max_output, alpha, clock=clock), clock


def test_zero_gains_output_equals_reference():
    pid, clock = make_pid()
    pid.reference_value = 37.5
    pid.feedback = 12.0
    clock.advance(0.01)
    assert pid.calculate() == pytest.approx(37.5)
    assert pid.output == pytest.approx(37.5)


def test_proportional_term():
    pid, clock = make_pid(kp=1.0)
    pid.reference_value = 10.0
    pid.feedback = 4.0
    clock.advance(0.01)
    assert pid.calculate() == pytest.approx(16.0)


def test_output_clamped_to_max():
    pid, clock = make_pid(kp=50.0, max_output=20.0)
    pid.reference_value = 10.0
    clock.advance(0.01)
    assert pid.calculate() == 20.0


def test_output_clamped_to_negative_max():
    pid, clock = make_pid(kp=50.0, max_output=20.0)
    pid.reference_value = -10.0
    clock.advance(0.01)
    assert pid.calculate() == -20.0


def test_integral_uses_previous_error():
    pid, clock = make_pid(ki=1.0)
    pid.reference_value = 5.0
    clock.advance(0.1)
    first = pid.calculate()
    clock.advance(0.1)
    second = pid.calculate()
    assert first == pytest.approx(5.0)
    assert second > first


def test_integral_not_stored_while_saturated():
    pid, clock = make_pid(kp=10.0, ki=100.0, max_output=20.0)
    pid.reference_value = 10.0
    for _ in range(5):
        clock.advance(0.1)
        assert pid.calculate() == 20.0
    pid.kp = 0.0
    pid.ki = 0.0
    pid.feedback = 10.0
    clock.advance(0.1)
    assert pid.calculate() == pytest.approx(10.0)


def test_reset_state_clears_integral():
    pid, clock = make_pid(ki=1.0)
    pid.reference_value = 5.0
    for _ in range(3):
        clock.advance(0.1)
        pid.calculate()
    pid.reset_state()
    clock.advance(0.1)
    assert pid.calculate() == pytest.approx(5.0)


def test_derivative_sign_follows_error_change():
    pid, clock = make_pid(kd=1.0)
    pid.reference_value = 2.0
    clock.advance(0.5)
    with_derivative = pid.calculate()
    assert with_derivative > pid.reference_value


def test_zero_time_step_ignores_derivative():
    pid, _ = make_pid(kd=1.0)
    pid.reference_value = 3.0
    assert pid.calculate() == pytest.approx(3.0)


def test_gains_are_adjustable():
    pid, clock = make_pid()
    pid.kp = 2.0
    pid.reference_value = 1.0
    pid.feedback = 0.0
    clock.advance(0.01)
    low = pid.calculate()
    pid.kp = 4.0
    clock.advance(0.01)
    assert pid.calculate() > low