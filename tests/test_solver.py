"""
Tests for the explicit time-marching solver.

The sandwich fixture heats a 10x10x1 conductor (k = 0.2 W/mm-K,
2 mJ/K per element) between two near-ideal sinks. Each element sees
2.55 K/W to either sink, so the analytic answers are:

    temperature rise = 0.1 W * 2.55 / 2 = 0.1275 C
    thermal impedance = 0.1275 / 10 W = 0.01275 K/W
    time constant     = 0.002 J/K * 1.275 K/W = 2.55 ms
"""

import dataclasses
import logging
import math

import numpy as np
import pytest

from thermalstack import (
    ConvergenceError, SolverState, StackStateError, ThermalStack, locate_tau_index,
)


def active_state(stack):
    """Temperatures, capacitances and generation rates over the active elements."""
    mesh = stack.mesh_data
    active = mesh.active_indices()
    elements = [mesh.elements[i] for i in active]
    temps = np.array([e.temperature for e in elements])
    caps = np.array([e.capacitance for e in elements])
    gen = np.array([e.energy_gen_per_step for e in elements]) / stack.params.timestep_s
    return temps, caps, gen


@pytest.fixture
def pyramid(unit_params, conductor):
    stack = ThermalStack(unit_params)
    stack.add_block(4, 4, 1, conductor, 0)
    stack.add_block(2, 2, 1, conductor, 1.0)
    stack.mesh()
    return stack


@pytest.fixture
def solved_sandwich(sandwich):
    sandwich.mesh()
    sandwich.monitor_block(1)
    result = sandwich.solve()
    return sandwich, result


class TestStep:
    """Single explicit steps."""

    def test_no_generation_leaves_uniform_field(self, unit_params, conductor):
        stack = ThermalStack(unit_params)
        stack.add_block(3, 3, 2, conductor, 0)
        stack.add_block(2, 2, 1, conductor, 0)
        stack.mesh()

        for _ in range(50):
            stack.step()

        temps = stack.mesh_data.temperatures()
        active = temps[~np.isnan(temps)]
        assert np.all(active == unit_params.initial_temp_c)

    def test_matches_matrix_form(self, pyramid):
        for _ in range(5):
            pyramid.step()

        dt = pyramid.params.timestep_s
        temps, caps, gen = active_state(pyramid)
        K = pyramid.mesh_data.conductance_matrix()
        expected = temps + dt * (gen - K @ temps) / caps

        pyramid.step()
        actual, _, _ = active_state(pyramid)
        np.testing.assert_allclose(actual, expected, rtol=1e-12, atol=1e-12)

    def test_node_order_does_not_matter(self, unit_params, conductor):
        def build():
            stack = ThermalStack(unit_params)
            stack.add_block(4, 4, 1, conductor, 0)
            stack.add_block(2, 2, 1, conductor, 1.0)
            stack.add_block(4, 4, 1, conductor, 0)
            stack.mesh()
            return stack

        forward = build()
        backward = build()
        backward.mesh_data.nodes.reverse()

        for _ in range(100):
            forward.step()
            backward.step()

        np.testing.assert_allclose(
            backward.mesh_data.temperatures(),
            forward.mesh_data.temperatures(),
            rtol=1e-12,
        )

    def test_energy_is_conserved(self, pyramid):
        _, caps, _ = active_state(pyramid)
        temps_before, _, _ = active_state(pyramid)
        energy_before = np.sum(caps * temps_before)

        steps = 100
        for _ in range(steps):
            pyramid.step()

        temps_after, _, _ = active_state(pyramid)
        gained = np.sum(caps * temps_after) - energy_before
        total_q = sum(b.heat_generation for b in pyramid.blocks)
        assert gained == pytest.approx(total_q * pyramid.params.timestep_s * steps, rel=1e-9)

    def test_pending_energy_cleared_after_step(self, pyramid):
        pyramid.step()
        assert all(e.pending_energy == 0.0 for e in pyramid.elements)

    def test_step_before_mesh(self, sandwich):
        with pytest.raises(StackStateError):
            sandwich.step()


class TestSolve:
    """Full runs to convergence."""

    def test_converges(self, solved_sandwich):
        stack, result = solved_sandwich
        assert result.converged
        assert stack.state is SolverState.CONVERGED
        assert stack.result is result

    def test_thermal_impedance(self, solved_sandwich):
        _, result = solved_sandwich
        assert result.thermal_impedance == pytest.approx(0.01275, rel=1e-3)
        assert result.temperature_rise_c == pytest.approx(0.1275, rel=1e-3)

    def test_steady_temperature_matches_block(self, solved_sandwich):
        stack, result = solved_sandwich
        assert result.steady_temp_c == stack.block_bulk_temp(1)
        assert result.steady_temp_c == result.sample_temps[-1]

    def test_time_constant(self, solved_sandwich):
        _, result = solved_sandwich
        assert result.tau_index == 2
        assert result.tau_time_s == pytest.approx(3e-3)
        assert result.tau_temp_c == result.sample_temps[2]

    def test_sample_bookkeeping(self, solved_sandwich):
        stack, result = solved_sandwich
        dt = stack.params.timestep_s
        n = len(stack.temp_history)

        assert result.steps % stack.params.sample_interval_steps == 0
        assert n == result.steps // stack.params.sample_interval_steps
        assert len(result.sample_times) == len(result.sample_temps) == n
        np.testing.assert_allclose(result.sample_times,
                                   dt * 10 * np.arange(1, n + 1))
        assert result.steady_time_s == pytest.approx(result.steps * dt)

    def test_history_rises_monotonically(self, solved_sandwich):
        _, result = solved_sandwich
        assert np.all(np.diff(result.sample_temps) >= 0)
        assert result.sample_temps[0] > result.initial_temp_c

    def test_sinks_barely_move(self, solved_sandwich):
        stack, _ = solved_sandwich
        for index in (0, 2):
            assert stack.block_bulk_temp(index) == pytest.approx(25.0, abs=1e-4)

    def test_uniform_heating_has_no_lateral_gradient(self, solved_sandwich):
        stack, _ = solved_sandwich
        assert stack.block_non_uniformity(1) == pytest.approx(0.0, abs=1e-9)

    def test_solve_matches_element_stepping(self, unit_params, conductor, sink):
        def build():
            stack = ThermalStack(unit_params)
            stack.add_block(4, 4, 1, sink, 0)
            stack.add_block(2, 2, 1, conductor, 1.0)
            stack.add_block(4, 4, 2, sink, 0)
            stack.mesh()
            return stack

        solved = build()
        solved.monitor_block(1)
        result = solved.solve()

        stepped = build()
        for _ in range(result.steps):
            stepped.step()

        np.testing.assert_allclose(solved.mesh_data.temperatures(),
                                   stepped.mesh_data.temperatures(), rtol=1e-10)
        assert result.steady_temp_c == pytest.approx(stepped.block_bulk_temp(1), rel=1e-10)

    def test_arrays_written_back_to_elements(self, solved_sandwich):
        stack, _ = solved_sandwich
        np.testing.assert_array_equal(stack.mesh_data.temperatures()[stack.active], stack.T)
        assert stack.K_matrix.shape == (300, 300)

    def test_partial_run_written_back(self, unit_params, conductor, sink):
        stack = ThermalStack(dataclasses.replace(unit_params, max_steps=30))
        stack.add_block(10, 10, 1, sink, 0)
        stack.add_block(10, 10, 1, conductor, 10.0)
        stack.mesh()
        stack.monitor_block(1)

        with pytest.raises(ConvergenceError) as info:
            stack.solve()
        assert stack.block_bulk_temp(1) == info.value.result.steady_temp_c
        assert stack.block_bulk_temp(1) > unit_params.initial_temp_c

    def test_cannot_solve_twice(self, solved_sandwich):
        stack, _ = solved_sandwich
        with pytest.raises(StackStateError):
            stack.solve()

    def test_progress_callback(self, sandwich):
        calls = []
        sandwich.set_progress_callback(lambda t, temp, rate: calls.append((t, temp, rate)))
        sandwich.mesh()
        sandwich.monitor_block(1)
        result = sandwich.solve()

        assert len(calls) == len(result.sample_temps)
        assert [c[1] for c in calls] == list(result.sample_temps)
        first_rate = (result.sample_temps[0] - 25.0) / sandwich.params.sample_interval_s
        assert calls[0][2] == pytest.approx(first_rate)

    def test_step_limit_raises(self, unit_params, conductor, sink):
        stack = ThermalStack(dataclasses.replace(unit_params, max_steps=50))
        stack.add_block(10, 10, 1, sink, 0)
        stack.add_block(10, 10, 1, conductor, 10.0)
        stack.add_block(10, 10, 1, sink, 0)
        stack.mesh()
        stack.monitor_block(1)

        with pytest.raises(ConvergenceError) as info:
            stack.solve()

        assert stack.state is SolverState.FAILED
        partial = info.value.result
        assert partial is not None
        assert not partial.converged
        assert partial.steps == 50
        assert len(partial.sample_temps) == 5

    def test_step_limit_not_on_sample_boundary(self, unit_params, conductor, sink):
        stack = ThermalStack(dataclasses.replace(unit_params, max_steps=25))
        stack.add_block(10, 10, 1, sink, 0)
        stack.add_block(10, 10, 1, conductor, 10.0)
        stack.mesh()
        stack.monitor_block(1)

        with pytest.raises(ConvergenceError) as info:
            stack.solve()
        assert len(info.value.result.sample_temps) == 2

    def test_monitoring_unheated_block(self, sandwich, caplog):
        sandwich.mesh()
        with caplog.at_level(logging.WARNING):
            sandwich.monitor_block(0)
        assert "generates no heat" in caplog.text

        result = sandwich.solve()
        assert result.converged
        assert math.isnan(result.thermal_impedance)

    def test_logs_report(self, sandwich, caplog):
        sandwich.mesh()
        sandwich.monitor_block(1)
        with caplog.at_level(logging.INFO):
            sandwich.solve()
        assert "<- @ one time constant" in caplog.text
        assert "<- @ steady state" in caplog.text
        assert "Thermal impedance, heat source to heatsink" in caplog.text


class TestLocateTau:
    """Time constant sample selection."""

    def test_heating(self):
        assert locate_tau_index([25, 30, 35, 40], 20, 40) == 2

    def test_boundary_is_inclusive(self):
        assert locate_tau_index([25, 30, 35, 40], 20, 40, fraction=0.5) == 1

    def test_cooling(self):
        assert locate_tau_index([80, 60, 45, 41], 100, 40) == 1

    def test_falls_back_to_last_sample(self):
        assert locate_tau_index([25, 26], 20, 40) == 1

    def test_no_change(self):
        assert locate_tau_index([40, 40], 40, 40) == 0

    def test_empty_history(self):
        with pytest.raises(ValueError):
            locate_tau_index([], 20, 40)

    def test_overshoot_counts_as_reached(self):
        assert locate_tau_index([50, 45, 41, 40], 20, 40) == 0

    def test_cooling_undershoot_counts_as_reached(self):
        assert locate_tau_index([30, 35, 39, 40], 60, 40) == 0
