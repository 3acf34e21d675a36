"""Cadence Coach: step-cadence monitoring with baseline calibration and audio feedback."""

__version__ = "0.1.0"
