"""
Thermal Stack FEA - Core Module
===============================
Materials, configuration and exceptions.
"""

from .constants import Material, MaterialsDatabase, SimulationDefaults

from .config import SolverConfig, BlockConfig, StackConfig, ConfigManager

from .exceptions import ThermalStackError, StackStateError, ConvergenceError

__all__ = [
    # Materials & defaults
    'Material', 'MaterialsDatabase', 'SimulationDefaults',

    # Configuration
    'SolverConfig', 'BlockConfig', 'StackConfig', 'ConfigManager',

    # Errors
    'ThermalStackError', 'StackStateError', 'ConvergenceError',
]
