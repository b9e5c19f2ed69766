"""
Thermal Stack FEA - Mesh Generator
==================================
Turns an ordered stack of blocks into a flat arena of thermal elements and
the conduction graph between them.

The arena is a bounding box of nx * ny * nz slots addressed linearly as
x + y*nx + z*nx*ny. Slots outside a block's centred XY footprint hold Empty
placeholder elements that take no part in the physics. Blocks and nodes refer
to elements by arena index.

Version: 1.0.0
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from scipy import sparse
from scipy.sparse import csgraph

from .block import Block
from ..utils.logger import get_logger, timed_function


# Face-adjacent offsets: +/-X, +/-Y, +/-Z
NEIGHBOR_OFFSETS = (
    (1, 0, 0), (-1, 0, 0),
    (0, 1, 0), (0, -1, 0),
    (0, 0, 1), (0, 0, -1),
)


@dataclass
class MeshElement:
    """A single thermal cell of the mesh."""
    temperature: float = 0.0  # °C
    energy_gen_per_step: float = 0.0  # J per time step
    capacitance: float = 0.0  # J/K
    xy_half_resistance: float = 0.0  # K/W, centre to a side face
    z_half_resistance: float = 0.0  # K/W, centre to top/bottom face
    z_layer: int = 0
    block_index: int = -1

    empty: bool = False
    pending_energy: float = 0.0  # J queued for the next commit

    # Arena indices of elements already linked to this one by a node
    neighbors: Set[int] = field(default_factory=set)

    @classmethod
    def placeholder(cls, z_layer: int = 0) -> 'MeshElement':
        """An inert Empty slot."""
        return cls(z_layer=z_layer, empty=True)

    def is_empty(self) -> bool:
        return self.empty

    def make_empty(self):
        self.empty = True

    def remember_neighbor(self, index: int):
        self.neighbors.add(index)

    def check_for_existing_node(self, index: int) -> bool:
        """True if this element is already linked to the element at ``index``."""
        return index in self.neighbors

    def set_pending_energy(self, energy: float):
        """Queue an energy transfer; several neighbours may contribute per step."""
        self.pending_energy += energy

    def apply_energy_transfer(self):
        """Commit generation plus queued transfers to the temperature."""
        if self.empty:
            return

        energy = self.energy_gen_per_step + self.pending_energy
        self.temperature += energy / self.capacitance
        self.pending_energy = 0.0


class MeshNode:
    """Undirected conduction path between two face-adjacent active elements."""

    __slots__ = ('elements', 'first', 'second', 'resistance')

    def __init__(self, elements: Sequence[MeshElement], first: int, second: int):
        if first == second:
            raise ValueError(f"cannot link element {first} to itself")

        a = elements[first]
        b = elements[second]
        if a.empty or b.empty:
            raise ValueError(f"cannot link empty elements ({first}, {second})")
        if a.check_for_existing_node(second) or b.check_for_existing_node(first):
            raise ValueError(f"elements {first} and {second} are already linked")

        self.elements = elements
        self.first = first
        self.second = second

        a.remember_neighbor(second)
        b.remember_neighbor(first)

        # Same layer means a lateral path, whether X- or Y-adjacent
        if a.z_layer == b.z_layer:
            self.resistance = a.xy_half_resistance + b.xy_half_resistance
        else:
            self.resistance = a.z_half_resistance + b.z_half_resistance

    @property
    def is_lateral(self) -> bool:
        return self.elements[self.first].z_layer == self.elements[self.second].z_layer

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.first, self.second) if self.first < self.second else (self.second, self.first)

    def calc_energy_transfer(self, timestep: float) -> float:
        """
        Queue the energy flowing from first to second over one time step.

        Only pending values are touched, so every node in a step sees the same
        temperatures. Returns the energy moved from first to second [J].
        """
        a = self.elements[self.first]
        b = self.elements[self.second]

        q = (a.temperature - b.temperature) / self.resistance
        energy = q * timestep

        a.set_pending_energy(-energy)
        b.set_pending_energy(energy)
        return energy

    def __repr__(self):
        return f"MeshNode({self.first}, {self.second}, R={self.resistance:.4g} K/W)"


@dataclass
class ThermalMesh:
    """Flat element arena plus the conduction graph."""
    nx: int = 0
    ny: int = 0
    nz: int = 0

    elements: List[MeshElement] = field(default_factory=list)
    nodes: List[MeshNode] = field(default_factory=list)

    # Block index owning each Z layer
    layer_blocks: List[int] = field(default_factory=list)

    @property
    def total_element_count(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def active_element_count(self) -> int:
        return sum(1 for e in self.elements if not e.empty)

    def coord_to_index(self, x: int, y: int, z: int) -> Optional[int]:
        """Linear arena index of (x, y, z), or None when out of bounds."""
        if not (0 <= x < self.nx and 0 <= y < self.ny and 0 <= z < self.nz):
            return None
        return x + y * self.nx + z * self.nx * self.ny

    def index_to_coord(self, index: int) -> Tuple[int, int, int]:
        layer = self.nx * self.ny
        z, rem = divmod(index, layer)
        y, x = divmod(rem, self.nx)
        return x, y, z

    def nav_3d_array(self, x: int, y: int, z: int) -> Optional[int]:
        """Arena index of the active element at (x, y, z); None if out of bounds or Empty."""
        index = self.coord_to_index(x, y, z)
        if index is None or self.elements[index].empty:
            return None
        return index

    def element_at(self, x: int, y: int, z: int) -> Optional[MeshElement]:
        index = self.nav_3d_array(x, y, z)
        return None if index is None else self.elements[index]

    def find_neighbor_elements(self, x: int, y: int, z: int) -> List[int]:
        """Arena indices of the active elements face-adjacent to (x, y, z)."""
        neighbors = []
        for dx, dy, dz in NEIGHBOR_OFFSETS:
            index = self.nav_3d_array(x + dx, y + dy, z + dz)
            if index is not None:
                neighbors.append(index)
        return neighbors

    def active_indices(self) -> np.ndarray:
        """Arena indices of all active elements, in arena order."""
        return np.array([i for i, e in enumerate(self.elements) if not e.empty], dtype=np.int64)

    def temperatures(self) -> np.ndarray:
        """Temperature per arena slot, NaN for Empty slots."""
        return np.array(
            [np.nan if e.empty else e.temperature for e in self.elements],
            dtype=np.float64,
        )

    def store_temperatures(self, indices: Sequence[int], temps: Sequence[float]):
        """Overwrite the temperatures of the elements at ``indices``."""
        for index, temp in zip(indices, temps):
            self.elements[int(index)].temperature = float(temp)

    def temperature_field(self) -> np.ndarray:
        """Temperatures shaped (nz, ny, nx), NaN for Empty slots."""
        return self.temperatures().reshape(self.nz, self.ny, self.nx)

    def conductance_matrix(self) -> sparse.csr_matrix:
        """
        Symmetric conductance matrix over the active elements.

        Rows and columns follow active_indices(). Off-diagonals hold -1/R for
        each node, diagonals the total conductance attached to the element.
        """
        active = self.active_indices()
        position = {int(idx): pos for pos, idx in enumerate(active)}
        n = len(active)

        rows, cols, data = [], [], []
        diag = np.zeros(n, dtype=np.float64)
        for node in self.nodes:
            i = position[node.first]
            j = position[node.second]
            g = 1.0 / node.resistance
            rows.extend((i, j))
            cols.extend((j, i))
            data.extend((-g, -g))
            diag[i] += g
            diag[j] += g

        K = sparse.csr_matrix((data, (rows, cols)), shape=(n, n), dtype=np.float64)
        return K + sparse.diags(diag, format='csr', dtype=np.float64)

    def connected_component_count(self) -> int:
        """Number of disconnected islands in the conduction graph."""
        if not self.nodes:
            return self.active_element_count
        K = self.conductance_matrix()
        n_components, _ = csgraph.connected_components(K, directed=False)
        return int(n_components)

    def max_stable_timestep(self) -> float:
        """
        Largest explicit time step that keeps every element stable.

        min over elements of capacitance / attached conductance. Infinite when
        the mesh has no nodes.
        """
        if not self.nodes:
            return float('inf')

        conductance = np.zeros(len(self.elements), dtype=np.float64)
        first = np.fromiter((n.first for n in self.nodes), dtype=np.int64, count=len(self.nodes))
        second = np.fromiter((n.second for n in self.nodes), dtype=np.int64, count=len(self.nodes))
        g = np.fromiter((1.0 / n.resistance for n in self.nodes), dtype=np.float64, count=len(self.nodes))
        np.add.at(conductance, first, g)
        np.add.at(conductance, second, g)

        capacitance = np.array([e.capacitance for e in self.elements], dtype=np.float64)
        linked = conductance > 0
        return float(np.min(capacitance[linked] / conductance[linked]))


class MeshGenerator:
    """Builds a ThermalMesh from an ordered stack of blocks."""

    def __init__(self, blocks: Sequence[Block], initial_temp_c: float, timestep_s: float):
        self.blocks = blocks
        self.initial_temp_c = initial_temp_c
        self.timestep_s = timestep_s
        self.logger = get_logger()

        self.mesh = ThermalMesh()

    def generate(self) -> ThermalMesh:
        """Generate the element arena and the node graph."""
        self.mesh = ThermalMesh()

        self._init_element_array()
        self._gen_mesh_elements()
        self._gen_mesh_nodes()

        return self.mesh

    def _init_element_array(self):
        """Size the bounding box that envelopes every block and fill it with Empty slots."""
        mesh = self.mesh
        mesh.nx = max(b.x_element_count for b in self.blocks)
        mesh.ny = max(b.y_element_count for b in self.blocks)
        mesh.nz = sum(b.z_element_count for b in self.blocks)

        for block_index, block in enumerate(self.blocks):
            mesh.layer_blocks.extend([block_index] * block.z_element_count)

        layer_size = mesh.nx * mesh.ny
        mesh.elements = [
            MeshElement.placeholder(z_layer=i // layer_size)
            for i in range(mesh.total_element_count)
        ]

    def _footprint(self, block: Block) -> Tuple[int, int, int, int]:
        """Inclusive X/Y index range of a block centred in the bounding box."""
        x_start = (self.mesh.nx - block.x_element_count) // 2
        y_start = (self.mesh.ny - block.y_element_count) // 2
        x_end = x_start + block.x_element_count - 1
        y_end = y_start + block.y_element_count - 1
        return x_start, x_end, y_start, y_end

    @timed_function("mesh_elements")
    def _gen_mesh_elements(self):
        """Instantiate the elements of each block within its centred footprint."""
        mesh = self.mesh
        footprints: Dict[int, Tuple[int, int, int, int]] = {}

        for z in range(mesh.nz):
            block_index = mesh.layer_blocks[z]
            block = self.blocks[block_index]
            if block_index not in footprints:
                footprints[block_index] = self._footprint(block)
            x_start, x_end, y_start, y_end = footprints[block_index]

            for x in range(mesh.nx):
                for y in range(mesh.ny):
                    if x < x_start or x > x_end or y < y_start or y > y_end:
                        continue

                    index = mesh.coord_to_index(x, y, z)
                    mesh.elements[index] = MeshElement(
                        temperature=self.initial_temp_c,
                        energy_gen_per_step=block.heat_generation_element * self.timestep_s,
                        capacitance=block.capacitance_element,
                        xy_half_resistance=block.xy_half_resistance,
                        z_half_resistance=block.z_half_resistance,
                        z_layer=z,
                        block_index=block_index,
                    )
                    block.remember_my_element(index)

        self.logger.info(f"Generated {mesh.active_element_count} elements "
                         f"in a {mesh.nx}x{mesh.ny}x{mesh.nz} arena")

    @timed_function("mesh_nodes")
    def _gen_mesh_nodes(self):
        """Link every unique pair of face-adjacent active elements."""
        mesh = self.mesh
        visited: Set[Tuple[int, int]] = set()

        for z in range(mesh.nz):
            for y in range(mesh.ny):
                for x in range(mesh.nx):
                    current = mesh.nav_3d_array(x, y, z)
                    if current is None:
                        continue

                    for neighbor in mesh.find_neighbor_elements(x, y, z):
                        edge = (current, neighbor) if current < neighbor else (neighbor, current)
                        if edge in visited:
                            continue
                        visited.add(edge)
                        mesh.nodes.append(MeshNode(mesh.elements, current, neighbor))

        self.logger.info(f"Created {len(mesh.nodes)} nodes")


__all__ = [
    'MeshElement',
    'MeshNode',
    'ThermalMesh',
    'MeshGenerator',
    'NEIGHBOR_OFFSETS',
]
