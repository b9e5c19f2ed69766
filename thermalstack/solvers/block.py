"""
Thermal Stack FEA - Block
=========================
A user-declared rectangular material mass.

Blocks are stacked along Z and centred on each other in X and Y. Each block
turns its physical size, material and heat generation into the properties
of the elements it is divided into, and later aggregates temperature
statistics over those elements.

Version: 1.0.0
"""

import math
from typing import List, Sequence

import numpy as np

from ..core.constants import Material
from ..core.exceptions import StackStateError


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


class Block:
    """Rectangular material mass discretised into a sub-grid of elements."""

    def __init__(self, x_length: float, y_length: float, z_length: float,
                 mesh_size: float, material: Material, heat_generation: float = 0.0,
                 label: str = ""):
        if mesh_size <= 0:
            raise ValueError(f"mesh size must be positive, got {mesh_size}")
        if x_length <= 0 or y_length <= 0 or z_length <= 0:
            raise ValueError(
                f"block dimensions must be positive, got {x_length} x {y_length} x {z_length}"
            )

        # X and Y snap to the nearest whole mm, Z keeps its precision
        self.x_length = float(round_half_up(x_length))
        self.y_length = float(round_half_up(y_length))
        self.z_length = float(z_length)

        self.material = material
        self.heat_generation = float(heat_generation)  # W
        self.label = label or material.name

        self._gen_mesh_dimensions(mesh_size)
        self._calc_element_properties()

        # Arena indices of the elements meshed inside this block's footprint
        self.element_indices: List[int] = []

    def _gen_mesh_dimensions(self, mesh_size: float):
        self.x_element_count = round_half_up(self.x_length / mesh_size)
        self.y_element_count = round_half_up(self.y_length / mesh_size)
        # Never rounded down so thin blocks still get a layer
        self.z_element_count = int(math.ceil(self.z_length / mesh_size))

        if min(self.x_element_count, self.y_element_count, self.z_element_count) < 1:
            raise ValueError(
                f"block '{self.label}' ({self.x_length} x {self.y_length} x {self.z_length} mm) "
                f"is smaller than one {mesh_size} mm element"
            )

    def _calc_element_properties(self):
        """Transform the material properties for the element geometry."""
        k = self.material.conductivity

        c_block = self.material.heat_capacity * self.volume
        self.capacitance_element = c_block / self.element_count  # J/K
        self.heat_generation_element = self.heat_generation / self.element_count  # W

        xy_length = self.x_length / self.x_element_count  # elements are square in XY
        z_length = self.z_length / self.z_element_count
        side_area = xy_length * z_length
        vertical_area = xy_length * xy_length

        # Centre-to-face resistances, K/W
        self.xy_half_resistance = (xy_length / 2) / (k * side_area)
        self.z_half_resistance = (z_length / 2) / (k * vertical_area)

    @property
    def volume(self) -> float:
        """Block volume [mm³]."""
        return self.x_length * self.y_length * self.z_length

    @property
    def element_count(self) -> int:
        return self.x_element_count * self.y_element_count * self.z_element_count

    @property
    def material_name(self) -> str:
        return self.material.name

    def remember_my_element(self, index: int):
        """Register an arena index that was meshed inside this block."""
        self.element_indices.append(index)

    # -------------------------------------------------------------------------
    # Statistics over the registered elements
    # -------------------------------------------------------------------------

    def temperatures(self, elements: Sequence) -> np.ndarray:
        """Temperatures of this block's elements, read from the arena."""
        if not self.element_indices:
            raise StackStateError(f"block '{self.label}' has no meshed elements")
        return np.fromiter(
            (elements[i].temperature for i in self.element_indices),
            dtype=np.float64,
            count=len(self.element_indices),
        )

    def get_bulk_temp(self, elements: Sequence) -> float:
        """Mean temperature of the block."""
        return float(np.mean(self.temperatures(elements)))

    def get_temp_standard_deviation(self, elements: Sequence) -> float:
        """
        Spread of the element temperatures as historically reported.

        sqrt(sum of squared deviations) / N. This is not the textbook standard
        deviation; see get_temp_population_std for that.
        """
        temps = self.temperatures(elements)
        deviations = temps - temps.mean()
        return float(np.sqrt(np.sum(deviations ** 2)) / temps.size)

    def get_temp_population_std(self, elements: Sequence) -> float:
        """Population standard deviation, sqrt(sum of squared deviations / N)."""
        return float(np.std(self.temperatures(elements)))

    def get_temp_non_uniformity(self, elements: Sequence) -> float:
        """Difference between the hottest and coldest element."""
        temps = self.temperatures(elements)
        return float(temps.max() - temps.min())

    def __repr__(self):
        return (f"Block({self.label!r}, {self.x_length:g}x{self.y_length:g}x{self.z_length:g} mm, "
                f"{self.x_element_count}x{self.y_element_count}x{self.z_element_count} elements, "
                f"{self.heat_generation:g} W)")


__all__ = ['Block', 'round_half_up']
