"""Shared fixtures for the thermal stack tests."""

import pytest

from thermalstack import Material, SolverConfig, ThermalStack


@pytest.fixture
def conductor():
    """Generic solid, 1 mm elements are cheap to reason about."""
    return Material(0.2, 0.002, "Conductor")


@pytest.fixture
def sink():
    """Near-zero resistance, very high capacitance heat sink."""
    return Material(10.0, 1000.0, "Sink")


@pytest.fixture
def unit_params():
    return SolverConfig(
        mesh_size_mm=1.0,
        timestep_s=1e-4,
        sample_interval_steps=10,
        convergence_threshold_c=1e-6,
        initial_temp_c=25.0,
        max_steps=200_000,
    )


@pytest.fixture
def sandwich(unit_params, conductor, sink):
    """Three stacked 10x10x1 blocks, the middle one generating 10 W."""
    stack = ThermalStack(unit_params)
    stack.add_block(10, 10, 1, sink, 0)
    stack.add_block(10, 10, 1, conductor, 10.0)
    stack.add_block(10, 10, 1, sink, 0)
    return stack
