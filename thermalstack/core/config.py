"""
Thermal Stack FEA - Configuration Management
============================================
Solver parameters, block declarations and JSON serialization.

Version: 1.0.0
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .constants import Material, MaterialsDatabase, SimulationDefaults


def _filter_kwargs(dc_type, d: Dict[str, Any]) -> Dict[str, Any]:
    """Filter dict keys to those accepted by the dataclass constructor."""
    allowed = getattr(dc_type, '__dataclass_fields__', {}).keys()
    return {k: v for k, v in (d or {}).items() if k in allowed}


@dataclass
class SolverConfig:
    """Mesh and explicit solver parameters."""
    mesh_size_mm: float = SimulationDefaults.DEFAULT_MESH_SIZE_MM
    timestep_s: float = SimulationDefaults.DEFAULT_TIMESTEP_S
    sample_interval_steps: int = SimulationDefaults.DEFAULT_SAMPLE_INTERVAL_STEPS
    convergence_threshold_c: float = SimulationDefaults.DEFAULT_CONVERGENCE_THRESHOLD_C
    initial_temp_c: float = SimulationDefaults.DEFAULT_INITIAL_TEMP_C
    max_steps: int = SimulationDefaults.DEFAULT_MAX_STEPS
    progress_interval_samples: int = SimulationDefaults.DEFAULT_PROGRESS_INTERVAL_SAMPLES

    def validate(self):
        """Raise ValueError for parameters the solver cannot run with."""
        if self.mesh_size_mm <= 0:
            raise ValueError(f"mesh_size_mm must be positive, got {self.mesh_size_mm}")
        if self.timestep_s <= 0:
            raise ValueError(f"timestep_s must be positive, got {self.timestep_s}")
        if self.sample_interval_steps < 1:
            raise ValueError(f"sample_interval_steps must be >= 1, got {self.sample_interval_steps}")
        if self.convergence_threshold_c < 0:
            raise ValueError(f"convergence_threshold_c must be >= 0, got {self.convergence_threshold_c}")
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}")
        if self.progress_interval_samples < 1:
            raise ValueError(f"progress_interval_samples must be >= 1, got {self.progress_interval_samples}")

    @property
    def sample_interval_s(self) -> float:
        return self.timestep_s * self.sample_interval_steps


@dataclass
class BlockConfig:
    """A block declaration: dimensions in mm, material, heat generation in W."""
    x_mm: float = 10.0
    y_mm: float = 10.0
    z_mm: float = 1.0
    # Preset key from MaterialsDatabase, key of StackConfig.materials, or inline dict
    material: Union[str, Dict[str, Any]] = "COPPER"
    heat_generation_w: float = 0.0
    label: str = ""


@dataclass
class StackConfig:
    """Complete thermal stack definition."""
    version: str = "1.0.0"
    created: str = ""
    modified: str = ""

    solver: SolverConfig = field(default_factory=SolverConfig)
    materials: Dict[str, Material] = field(default_factory=dict)
    blocks: List[BlockConfig] = field(default_factory=list)
    monitored_block: int = 0

    def __post_init__(self):
        if not self.created:
            self.created = datetime.now().isoformat()
        self.modified = datetime.now().isoformat()

    def resolve_material(self, ref: Union[str, Dict[str, Any], Material]) -> Material:
        """Resolve a block's material reference to a Material record."""
        if isinstance(ref, Material):
            return ref
        if isinstance(ref, dict):
            return Material.from_dict(ref)
        if ref in self.materials:
            return self.materials[ref]
        return MaterialsDatabase.get(ref)

    def build_stack(self):
        """Create a ThermalStack with every block added, ready to mesh."""
        from ..solvers.thermal_solver import ThermalStack

        stack = ThermalStack(self.solver)
        for block in self.blocks:
            stack.add_block(block.x_mm, block.y_mm, block.z_mm,
                            self.resolve_material(block.material),
                            block.heat_generation_w,
                            label=block.label)
        return stack

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        self.modified = datetime.now().isoformat()
        return {
            'version': self.version,
            'created': self.created,
            'modified': self.modified,
            'solver': asdict(self.solver),
            'materials': {key: m.to_dict() for key, m in self.materials.items()},
            'blocks': [asdict(b) for b in self.blocks],
            'monitored_block': self.monitored_block,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StackConfig':
        """Create from dictionary."""
        config = cls()

        if 'version' in data:
            config.version = data['version']
        if 'created' in data:
            config.created = data['created']

        if 'solver' in data:
            config.solver = SolverConfig(**_filter_kwargs(SolverConfig, data['solver']))

        if 'materials' in data:
            config.materials = {key: Material.from_dict(m) for key, m in data['materials'].items()}

        if 'blocks' in data:
            config.blocks = [BlockConfig(**_filter_kwargs(BlockConfig, b)) for b in data['blocks']]

        config.monitored_block = int(data.get('monitored_block', 0))
        return config

    @classmethod
    def default_example(cls) -> 'StackConfig':
        """
        Semiconductor sandwich: a 100 W silicon die between copper spreaders,
        TIM pads and aluminum plates, cooled on both faces by water.
        """
        mesh = SimulationDefaults.DEFAULT_MESH_SIZE_MM
        return cls(
            solver=SolverConfig(),
            blocks=[
                BlockConfig(15, 15, mesh, "WATER", 0, "Water"),
                BlockConfig(15, 15, 3, "ALUMINUM", 0, "Aluminum"),
                BlockConfig(10, 10, 0.5, "TIM_PAD", 0, "TIM Pad"),
                BlockConfig(10, 10, 2, "COPPER", 0, "Copper"),
                BlockConfig(5, 5, 1, "SILICON", 100, "Silicon"),
                BlockConfig(10, 10, 2, "COPPER", 0, "Copper"),
                BlockConfig(10, 10, 0.5, "TIM_PAD", 0, "TIM Pad"),
                BlockConfig(15, 15, 3, "ALUMINUM", 0, "Aluminum"),
                BlockConfig(15, 15, mesh, "WATER", 0, "Water"),
            ],
            monitored_block=4,
        )


class ConfigManager:
    """Loads and saves stack configurations as JSON."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self.config: Optional[StackConfig] = None

    def get_config(self) -> StackConfig:
        """Get configuration, loading from file when a path was given."""
        if self.config:
            return self.config

        if self.path is not None:
            self.config = self.load(self.path)
        else:
            self.config = StackConfig.default_example()
        return self.config

    @staticmethod
    def load(path: Union[str, Path]) -> StackConfig:
        """Read a configuration file. Raises OSError / ValueError on bad input."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return StackConfig.from_dict(data)

    def save(self) -> bool:
        """Save configuration to its own path."""
        if not self.config or not self.path:
            return False
        self.export(self.path)
        return True

    def export(self, path: Union[str, Path]):
        """Write the configuration to the given path."""
        config = self.config or StackConfig.default_example()
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)


__all__ = [
    'SolverConfig',
    'BlockConfig',
    'StackConfig',
    'ConfigManager',
]
