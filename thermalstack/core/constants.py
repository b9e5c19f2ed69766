"""
Thermal Stack FEA - Materials Database and Simulation Defaults
==============================================================
Material property records and default solver parameters.

All lengths are in millimetres, so conductivity is expressed in W/(mm·K)
and volumetric heat capacity in J/(mm³·K).

Version: 1.0.0
"""

from dataclasses import dataclass, asdict
from typing import Dict


# =============================================================================
# MATERIAL PROPERTIES
# =============================================================================

@dataclass(frozen=True)
class Material:
    """Immutable material record shared by reference between blocks."""
    conductivity: float  # W/(mm·K)
    heat_capacity: float  # volumetric, J/(mm³·K)
    name: str

    def __post_init__(self):
        if self.conductivity <= 0:
            raise ValueError(f"Material '{self.name}': conductivity must be positive, got {self.conductivity}")
        if self.heat_capacity <= 0:
            raise ValueError(f"Material '{self.name}': heat capacity must be positive, got {self.heat_capacity}")

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Material':
        """Deserialize from dictionary."""
        return cls(
            conductivity=float(data['conductivity']),
            heat_capacity=float(data['heat_capacity']),
            name=str(data.get('name', '')),
        )


class MaterialsDatabase:
    """Named material presets for electronic package stackups."""

    STANDARD = {
        'SILICON': Material(0.148, 0.001643, 'Silicon'),
        'ALUMINUM': Material(0.205, 0.002424, 'Aluminum'),
        'COPPER': Material(0.401, 0.003450, 'Copper'),
        'TIM_PAD': Material(0.01, 0.003476, 'TIM Pad'),
        # Artificial k tuned to a convective film coefficient, artificial c so
        # the block behaves as an infinite heat sink.
        'WATER': Material(0.01, 20000.0, 'Water'),
    }

    @classmethod
    def get(cls, key: str) -> Material:
        """Look up a preset by key (case-insensitive)."""
        material = cls.STANDARD.get(key.upper())
        if material is None:
            known = ', '.join(sorted(cls.STANDARD))
            raise KeyError(f"Unknown material '{key}'. Known materials: {known}")
        return material

    @classmethod
    def keys(cls):
        return list(cls.STANDARD.keys())


# =============================================================================
# SIMULATION DEFAULTS
# =============================================================================

class SimulationDefaults:
    """Default solver parameters."""

    # Mesh
    DEFAULT_MESH_SIZE_MM = 0.5

    # Time stepping
    DEFAULT_TIMESTEP_S = 0.0001
    DEFAULT_SAMPLE_INTERVAL_STEPS = 10

    # Convergence
    DEFAULT_CONVERGENCE_THRESHOLD_C = 0.0001  # per sample interval
    DEFAULT_MAX_STEPS = 50_000_000

    # Initial state
    DEFAULT_INITIAL_TEMP_C = 65.0

    # Remaining fraction of the temperature rise at one time constant (e^-1)
    TAU_FRACTION = 0.368

    # Progress logging, in samples
    DEFAULT_PROGRESS_INTERVAL_SAMPLES = 100


__all__ = [
    'Material',
    'MaterialsDatabase',
    'SimulationDefaults',
]
