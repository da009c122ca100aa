"""A discrete PID controller with filtered derivative and anti-windup."""

from __future__ import annotations

import time
from typing import Callable


class PID:
    """PID controller whose output is offset by the reference value.

    Call :meth:`calculate` at a fixed rate; the time step is measured with
    *clock* (seconds) between calls.
    """

    def __init__(
        self,
        kp: float,
        ki: float,
        kd: float,
        max_output: float,
        alpha: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.max_output = max_output
        self.alpha = alpha
        self.reference_value = 0.0
        self.feedback = 0.0
        self.output = 0.0
        self._clock = clock
        self._old_integral = 0.0
        self._old_fe = 0.0
        self._old_error = 0.0
        self._last = clock()

    def reset_state(self) -> None:
        """Forget the accumulated state, as before the first iteration."""
        self._old_fe = 0.0
        self._old_error = 0.0
        self._old_integral = 0.0

    def calculate(self) -> float:
        """Run one iteration, store and return the clamped output."""
        now = self._clock()
        dt = now - self._last

        error = self.reference_value - self.feedback
        fe = self.alpha * error + (1 - self.alpha) * self._old_fe
        derivative = (fe - self._old_fe) / dt if dt > 0 else 0.0
        integral = self._old_integral + self.ki * self._old_error * dt

        output = self.reference_value + self.kp * error + integral + self.kd * derivative
        if output > self.max_output:
            output = self.max_output
        elif output < -self.max_output:
            output = -self.max_output
        else:
            self._old_integral = integral

        self.output = output
        self._old_error = error
        self._old_fe = fe
        self._last = self._clock()
        return output