"""
Thermal Stack FEA - Exceptions
==============================
Errors raised by the mesh builder and the explicit solver.
"""


class ThermalStackError(Exception):
    """Base class for thermal stack errors."""


class StackStateError(ThermalStackError):
    """An operation was called in the wrong lifecycle state."""


class ConvergenceError(ThermalStackError):
    """The solve loop hit its step limit before the monitored block settled."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        # Partial ConvergenceResult with the history sampled so far
        self.result = result


__all__ = [
    'ThermalStackError',
    'StackStateError',
    'ConvergenceError',
]
