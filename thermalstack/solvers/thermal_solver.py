"""
Thermal Stack FEA - Explicit Thermal Solver
===========================================
Transient conduction through a stack of rectangular blocks, marched with an
explicit finite difference scheme until a monitored heat source settles.

Each step runs in two phases:
1. every node queues its energy transfer from the temperatures at the start
   of the step (Jacobi evaluation, so node order does not matter);
2. every element commits its queued transfers plus its own generation.

step() walks the node and element objects. solve() runs the same update on
arrays, T += (Q - dt * K T) / C with K the sparse conductance matrix, and
writes the temperatures back into the elements when it stops.

Example:
    stack = ThermalStack(SolverConfig(mesh_size_mm=0.5))
    stack.add_block(15, 15, 3, MaterialsDatabase.get('ALUMINUM'), 0)
    stack.add_block(5, 5, 1, MaterialsDatabase.get('SILICON'), 100)
    stack.add_block(15, 15, 3, MaterialsDatabase.get('ALUMINUM'), 0)
    stack.mesh()
    stack.monitor_block(1)
    result = stack.solve()

Version: 1.0.0
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

import numpy as np
from scipy import sparse

from .block import Block
from .mesh_generator import MeshGenerator, ThermalMesh
from ..core.config import SolverConfig
from ..core.constants import Material, SimulationDefaults
from ..core.exceptions import ConvergenceError, StackStateError
from ..utils.logger import get_logger, log_section, timed_function
from ..utils.report_generator import format_convergence_report, format_solver_header, illustrate


class SolverState(Enum):
    """Stack lifecycle. Transitions only move forward."""
    UNMESHED = 0
    MESHED = 1
    MONITORING = 2
    SOLVING = 3
    CONVERGED = 4
    FAILED = 5


@dataclass
class ConvergenceResult:
    """Summary of a solve run."""
    converged: bool
    initial_temp_c: float
    steady_temp_c: float
    steady_time_s: float
    tau_index: int
    tau_time_s: float
    tau_temp_c: float
    thermal_impedance: float  # K/W
    steps: int
    wall_time_s: float
    monitored_block: int
    sample_times: np.ndarray = field(default_factory=lambda: np.zeros(0))
    sample_temps: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def temperature_rise_c(self) -> float:
        return self.steady_temp_c - self.initial_temp_c


def locate_tau_index(history: Sequence[float], t_initial: float, t_steady: float,
                     fraction: float = SimulationDefaults.TAU_FRACTION) -> int:
    """
    Index of the first sample within ``fraction`` of the total change from
    the steady value, i.e. the sample at one thermal time constant. Works
    for cooling as well as heating histories; a sample that overshoots the
    steady value counts as reached.

    Falls back to the last sample if none qualifies.
    """
    temps = np.asarray(history, dtype=np.float64)
    if temps.size == 0:
        raise ValueError("temperature history is empty")

    # Signed distance still to go, positive while short of steady state
    direction = np.sign(t_steady - t_initial)
    remaining = (t_steady - temps) * direction
    hits = np.flatnonzero(remaining <= fraction * abs(t_steady - t_initial))
    if hits.size == 0:
        return int(temps.size - 1)
    return int(hits[0])


class ThermalStack:
    """
    Owns the ordered blocks, the element arena and node graph, and runs the
    explicit time-marching loop.
    """

    def __init__(self, params: Optional[SolverConfig] = None):
        self.params = params or SolverConfig()
        self.params.validate()
        self.logger = get_logger()

        self.state = SolverState.UNMESHED
        self.blocks: List[Block] = []
        self.mesh_data: Optional[ThermalMesh] = None
        self.block_index: Optional[int] = None

        # Sampled monitored-block temperatures
        self.sample_times: List[float] = []
        self.temp_history: List[float] = []
        self.current_time = 0.0
        self.result: Optional[ConvergenceResult] = None

        # Array form of the active elements, built by solve()
        self.active: Optional[np.ndarray] = None
        self.K_matrix: Optional[sparse.csr_matrix] = None  # Conductance matrix
        self.C_vector: Optional[np.ndarray] = None  # Capacitance per element
        self.Q_vector: Optional[np.ndarray] = None  # Generated energy per step
        self.T: Optional[np.ndarray] = None

        self.progress_callback: Optional[Callable[[float, float, float], None]] = None

    def set_progress_callback(self, callback: Callable[[float, float, float], None]):
        """Callback(time_s, temp_c, rate_c_per_s) invoked on every sample."""
        self.progress_callback = callback

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def add_block(self, x_length: float, y_length: float, z_length: float,
                  material: Material, heat_generation: float = 0.0, label: str = "") -> Block:
        """Push a new block onto the top of the stack. Blocks are centred in X and Y."""
        if self.state is not SolverState.UNMESHED:
            raise StackStateError("blocks cannot be added after the stack has been meshed")

        block = Block(x_length, y_length, z_length, self.params.mesh_size_mm,
                      material, heat_generation, label)
        self.blocks.append(block)
        self.logger.debug(f"Added block {len(self.blocks) - 1}: {block}")
        return block

    def mesh(self) -> ThermalMesh:
        """Build the element arena and the conduction graph. Callable once."""
        if self.state is not SolverState.UNMESHED:
            raise StackStateError("the stack has already been meshed")
        if not self.blocks:
            raise StackStateError("cannot mesh an empty stack; add blocks first")

        with log_section("Mesh Generation"):
            generator = MeshGenerator(self.blocks, self.params.initial_temp_c, self.params.timestep_s)
            self.mesh_data = generator.generate()

        mesh = self.mesh_data
        self.logger.log_mesh_stats(mesh.active_element_count, mesh.total_element_count,
                                   len(mesh.nodes), mesh.nx, mesh.ny, mesh.nz)

        components = mesh.connected_component_count()
        if components > 1:
            self.logger.warning(f"Conduction graph has {components} disconnected regions")

        dt_max = mesh.max_stable_timestep()
        if self.params.timestep_s > dt_max:
            self.logger.warning(f"Time step {self.params.timestep_s:g}s exceeds the explicit "
                                f"stability limit {dt_max:g}s; the solution may oscillate")
        else:
            self.logger.debug(f"Explicit stability limit: {dt_max:g}s")

        self.state = SolverState.MESHED
        return mesh

    def monitor_block(self, block_index: int):
        """Select the block whose bulk temperature drives convergence."""
        if self.state not in (SolverState.MESHED, SolverState.MONITORING):
            raise StackStateError("monitor_block() must be called after mesh() and before solve()")
        if not 0 <= block_index < len(self.blocks):
            raise IndexError(f"block index {block_index} out of range (0..{len(self.blocks) - 1})")

        block = self.blocks[block_index]
        if block.heat_generation == 0:
            self.logger.warning(f"Monitored block {block_index} ({block.label}) generates no heat; "
                                f"the solve may not converge before max_steps")

        self.block_index = block_index
        self.state = SolverState.MONITORING

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _require_mesh(self) -> ThermalMesh:
        if self.mesh_data is None:
            raise StackStateError("the stack has not been meshed")
        return self.mesh_data

    def nav_3d_array(self, x: int, y: int, z: int) -> Optional[int]:
        """Arena index of the active element at (x, y, z), or None."""
        return self._require_mesh().nav_3d_array(x, y, z)

    @property
    def elements(self):
        return self._require_mesh().elements

    @property
    def nodes(self):
        return self._require_mesh().nodes

    def block_bulk_temp(self, block_index: int) -> float:
        return self.blocks[block_index].get_bulk_temp(self.elements)

    def block_non_uniformity(self, block_index: int) -> float:
        return self.blocks[block_index].get_temp_non_uniformity(self.elements)

    # -------------------------------------------------------------------------
    # Solving
    # -------------------------------------------------------------------------

    def step(self):
        """Advance every element by one time step."""
        mesh = self._require_mesh()
        dt = self.params.timestep_s

        # Transfer phase reads only temperatures, commit phase writes them
        for node in mesh.nodes:
            node.calc_energy_transfer(dt)
        for element in mesh.elements:
            element.apply_energy_transfer()

    def _build_matrices(self):
        """Gather the active elements into the arrays the solve loop marches."""
        mesh = self.mesh_data
        elements = mesh.elements

        self.active = mesh.active_indices()
        self.K_matrix = mesh.conductance_matrix()
        self.C_vector = np.array([elements[i].capacitance for i in self.active], dtype=np.float64)
        self.Q_vector = np.array([elements[i].energy_gen_per_step for i in self.active],
                                 dtype=np.float64)
        self.T = mesh.temperatures()[self.active]

        self.logger.debug(f"K matrix: {self.K_matrix.nnz} non-zeros")
        self.logger.debug(f"Total heat generation: "
                          f"{np.sum(self.Q_vector) / self.params.timestep_s:.3f} W")

    def _store_temperatures(self):
        """Copy the marched temperatures back into the element arena."""
        self.mesh_data.store_temperatures(self.active, self.T)

    @timed_function("thermal_solve_explicit")
    def solve(self) -> ConvergenceResult:
        """
        March the solution until the monitored block stops heating.

        Raises ConvergenceError after ``max_steps`` steps without convergence.
        """
        if self.state is not SolverState.MONITORING:
            raise StackStateError("call mesh() and monitor_block() before solve()")

        params = self.params
        block = self.blocks[self.block_index]
        dt = params.timestep_s
        sample_dt = params.sample_interval_s

        self._build_matrices()
        K, C, Q, T = self.K_matrix, self.C_vector, self.Q_vector, self.T
        monitored = np.searchsorted(self.active, block.element_indices)

        self.state = SolverState.SOLVING
        start_wall = time.perf_counter()

        self.logger.info("Thermal stack initial state:")
        for line in illustrate(self):
            self.logger.info(line)
        for line in format_solver_header(self):
            self.logger.info(line)

        previous_temp = params.initial_temp_c
        current_temp = previous_temp
        samples = 0

        with log_section("Explicit Thermal Solve"):
            for step in range(1, params.max_steps + 1):
                # Right hand side reads only the previous T, so the update stays Jacobi
                T += (Q - dt * (K @ T)) / C
                self.current_time = step * dt

                if step % params.sample_interval_steps:
                    continue

                current_temp = float(np.mean(T[monitored]))
                self.sample_times.append(self.current_time)
                self.temp_history.append(current_temp)
                samples += 1

                rise = current_temp - previous_temp
                rate = rise / sample_dt
                self.logger.log_sample(self.current_time, current_temp, rate)
                if self.progress_callback:
                    self.progress_callback(self.current_time, current_temp, rate)

                if rise <= params.convergence_threshold_c:
                    self._store_temperatures()
                    self.result = self._summarize(step, current_temp, time.perf_counter() - start_wall,
                                                  converged=True)
                    self.state = SolverState.CONVERGED
                    break

                if samples % params.progress_interval_samples == 0:
                    self.logger.info(f"t = {self.current_time:.4f} s   T_avg = {current_temp:.3f} C   "
                                     f"dT/dt = {rate:.3f} C/s")
                previous_temp = current_temp
            else:
                self.state = SolverState.FAILED
                self._store_temperatures()
                partial = self._summarize(params.max_steps, current_temp,
                                          time.perf_counter() - start_wall, converged=False)
                self.result = partial
                self.logger.error(f"No convergence after {params.max_steps} steps "
                                  f"(t = {self.current_time:g} s, T_avg = {current_temp:.3f} C)")
                raise ConvergenceError(
                    f"monitored block {self.block_index} did not converge within {params.max_steps} steps",
                    result=partial,
                )

        self.logger.info("Thermal stack final state:")
        for line in illustrate(self):
            self.logger.info(line)
        for line in format_convergence_report(self.result).splitlines():
            self.logger.info(line)

        return self.result

    def _summarize(self, steps: int, steady_temp: float, wall_time: float,
                   converged: bool) -> ConvergenceResult:
        """Derive time constant and thermal impedance from the sampled history."""
        t0 = self.params.initial_temp_c
        block = self.blocks[self.block_index]

        if self.temp_history:
            tau_index = locate_tau_index(self.temp_history, t0, steady_temp)
            tau_time = self.sample_times[tau_index]
            tau_temp = self.temp_history[tau_index]
        else:
            tau_index, tau_time, tau_temp = 0, 0.0, t0

        if block.heat_generation != 0:
            impedance = (steady_temp - t0) / block.heat_generation
        else:
            impedance = math.nan

        return ConvergenceResult(
            converged=converged,
            initial_temp_c=t0,
            steady_temp_c=steady_temp,
            steady_time_s=steps * self.params.timestep_s,
            tau_index=tau_index,
            tau_time_s=tau_time,
            tau_temp_c=tau_temp,
            thermal_impedance=impedance,
            steps=steps,
            wall_time_s=wall_time,
            monitored_block=self.block_index,
            sample_times=np.asarray(self.sample_times, dtype=np.float64),
            sample_temps=np.asarray(self.temp_history, dtype=np.float64),
        )


__all__ = [
    'SolverState',
    'ConvergenceResult',
    'ThermalStack',
    'locate_tau_index',
]
