"""
Thermal Stack FEA - Solvers Module
==================================
Blocks, mesh generation and the explicit thermal solver.
"""

from .block import Block

from .mesh_generator import (
    MeshElement,
    MeshNode,
    ThermalMesh,
    MeshGenerator,
)

from .thermal_solver import (
    SolverState,
    ConvergenceResult,
    ThermalStack,
    locate_tau_index,
)

__all__ = [
    # Geometry
    'Block',
    # Mesh
    'MeshElement',
    'MeshNode',
    'ThermalMesh',
    'MeshGenerator',
    # Solver
    'SolverState',
    'ConvergenceResult',
    'ThermalStack',
    'locate_tau_index',
]
