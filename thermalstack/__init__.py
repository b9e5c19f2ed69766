"""
Thermal Stack FEA
=================
Transient and steady-state conduction through a stack of rectangular
material blocks, solved with an explicit finite difference mesh.

Used to estimate the thermal impedance and time to steady state of layered
assemblies such as electronic packages.

Usage:
    from thermalstack import ThermalStack, SolverConfig, MaterialsDatabase

    stack = ThermalStack(SolverConfig(mesh_size_mm=0.5))
    stack.add_block(15, 15, 0.5, MaterialsDatabase.get('WATER'), 0)
    stack.add_block(5, 5, 1, MaterialsDatabase.get('SILICON'), 100)
    stack.add_block(15, 15, 0.5, MaterialsDatabase.get('WATER'), 0)
    stack.mesh()
    stack.monitor_block(1)
    result = stack.solve()
    print(result.thermal_impedance)

Version: 1.0.0
"""

__version__ = "1.0.0"

from .core import (
    Material,
    MaterialsDatabase,
    SimulationDefaults,
    SolverConfig,
    BlockConfig,
    StackConfig,
    ConfigManager,
    ThermalStackError,
    StackStateError,
    ConvergenceError,
)

from .solvers import (
    Block,
    MeshElement,
    MeshNode,
    ThermalMesh,
    SolverState,
    ConvergenceResult,
    ThermalStack,
    locate_tau_index,
)

__all__ = [
    '__version__',
    'Material',
    'MaterialsDatabase',
    'SimulationDefaults',
    'SolverConfig',
    'BlockConfig',
    'StackConfig',
    'ConfigManager',
    'ThermalStackError',
    'StackStateError',
    'ConvergenceError',
    'Block',
    'MeshElement',
    'MeshNode',
    'ThermalMesh',
    'SolverState',
    'ConvergenceResult',
    'ThermalStack',
    'locate_tau_index',
]
