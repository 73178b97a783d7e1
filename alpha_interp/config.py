"""
Machine configuration: profiles, JSON config files and overrides.

Resolution order (later wins):
    1. PROFILES[profile]
    2. JSON config file (may itself name a profile)
    3. explicit overrides (CLI flags)

JSON file format:
    {
        "profile": "lecture",
        "accumulators": 4,
        "memory_cells": 16,
        "memory": {"0": 7, "3": -2},     # or a list: [7, 0, 0, -2]
        "breakpoints": [5, 12],          # source line numbers
        "max_steps": 100000
    }
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError
from .machine import Machine
from .translator import Program

log = logging.getLogger(__name__)


PROFILES: Dict[str, Dict[str, Any]] = {
    "default": {
        "accumulators": 4,
        "memory_cells": 16,
        "description": "Four accumulators, sixteen memory cells",
    },
    "lecture": {
        "accumulators": 4,
        "memory_cells": 6,
        "description": "Lecture exercise sheet layout (α0-α3, ρ(0)-ρ(5))",
    },
    "large": {
        "accumulators": 16,
        "memory_cells": 256,
        "description": "Room for indexed memory experiments",
    },
}

_KNOWN_KEYS = {"profile", "accumulators", "memory_cells", "memory",
               "breakpoints", "max_steps"}


@dataclass
class MachineConfig:
    """Everything a Machine needs besides the Program."""
    accumulators: int = 4
    memory_cells: int = 16
    memory: Dict[int, int] = field(default_factory=dict)
    breakpoints: List[int] = field(default_factory=list)
    max_steps: Optional[int] = None
    profile: str = "default"

    def validate(self) -> "MachineConfig":
        if self.accumulators < 1:
            raise ConfigError(f"At least one accumulator is required, got {self.accumulators}")
        if self.memory_cells < 0:
            raise ConfigError(f"Memory cell count must not be negative, got {self.memory_cells}")
        for index in self.memory:
            if not 0 <= index < self.memory_cells:
                raise ConfigError(f"Preloaded memory cell {index} out of range "
                                  f"({self.memory_cells} configured)")
        if self.max_steps is not None and self.max_steps < 1:
            raise ConfigError(f"max_steps must be positive, got {self.max_steps}")
        return self

    def create_machine(self, program: Program) -> Machine:
        """Build a Machine, mapping breakpoint line numbers to addresses."""
        addresses = []
        for line_num in self.breakpoints:
            address = program.address_of_line(line_num)
            if address is None:
                log.warning("Breakpoint on line %d is past the last instruction, ignored",
                            line_num)
                continue
            addresses.append(address)
        return Machine(program, self.accumulators, self.memory_cells,
                       memory=self.memory, breakpoints=addresses)


def _parse_memory(raw: Union[Dict[str, Any], List[Any]]) -> Dict[int, int]:
    try:
        if isinstance(raw, dict):
            return {int(k): int(v) for k, v in raw.items()}
        if isinstance(raw, list):
            return {i: int(v) for i, v in enumerate(raw) if int(v) != 0}
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid memory preload: {e}") from e
    raise ConfigError(f"memory must be an object or a list, got {type(raw).__name__}")


def _apply(config: MachineConfig, values: Dict[str, Any]):
    unknown = set(values) - _KNOWN_KEYS
    if unknown:
        raise ConfigError(f"Unknown configuration key(s): {', '.join(sorted(unknown))}")
    try:
        if values.get("accumulators") is not None:
            config.accumulators = int(values["accumulators"])
        if values.get("memory_cells") is not None:
            config.memory_cells = int(values["memory_cells"])
        if values.get("max_steps") is not None:
            config.max_steps = int(values["max_steps"])
        if values.get("breakpoints") is not None:
            config.breakpoints = [int(b) for b in values["breakpoints"]]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e
    if values.get("memory") is not None:
        config.memory.update(_parse_memory(values["memory"]))


def from_profile(name: str = "default") -> MachineConfig:
    if name not in PROFILES:
        raise ConfigError(f"Unknown profile '{name}' (choose from {', '.join(PROFILES)})")
    profile = PROFILES[name]
    return MachineConfig(accumulators=profile["accumulators"],
                         memory_cells=profile["memory_cells"],
                         profile=name)


def load_config(path: Optional[Union[str, Path]] = None,
                profile: Optional[str] = None,
                **overrides) -> MachineConfig:
    """Resolve a MachineConfig from profile, JSON file and overrides."""
    file_values: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        try:
            file_values = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}") from None
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
        if not isinstance(file_values, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        log.debug("Loaded config file %s: %s", path, file_values)

    name = profile or file_values.get("profile") or "default"
    config = from_profile(name)
    _apply(config, file_values)
    _apply(config, {k: v for k, v in overrides.items() if v is not None})
    return config.validate()
