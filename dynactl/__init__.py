"""Dynamixel Protocol 2.0 packets, serial bus and servo control, with a PID controller and filters."""

__version__ = "0.1.0"

__all__ = ["bus", "filters", "group", "pid", "protocol", "servo"]