from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union
import numpy as np
import optuna

from .errors import ParamSetError

@dataclass(frozen=True)
class IntParam:
    name: str
    lower: int
    upper: int

    def __post_init__(self):
        if self.lower > self.upper:
            raise ParamSetError(f"{self.name}: lower bound {self.lower} > upper bound {self.upper}")

    def suggest(self, trial: optuna.Trial) -> int:
        return trial.suggest_int(self.name, self.lower, self.upper)

    def grid(self, resolution: int) -> List[int]:
        values = np.linspace(self.lower, self.upper, resolution)
        return sorted({int(round(v)) for v in values})

@dataclass(frozen=True)
class NumericParam:
    name: str
    lower: float
    upper: float
    log: bool = False

    def __post_init__(self):
        if self.lower > self.upper:
            raise ParamSetError(f"{self.name}: lower bound {self.lower} > upper bound {self.upper}")
        if self.log and self.lower <= 0:
            raise ParamSetError(f"{self.name}: log scale needs a positive lower bound")

    def suggest(self, trial: optuna.Trial) -> float:
        return trial.suggest_float(self.name, self.lower, self.upper, log=self.log)

    def grid(self, resolution: int) -> List[float]:
        if self.log:
            values = np.geomspace(self.lower, self.upper, resolution)
        else:
            values = np.linspace(self.lower, self.upper, resolution)
        values = np.clip(values, self.lower, self.upper)
        return sorted({float(v) for v in values})

@dataclass(frozen=True)
class DiscreteParam:
    name: str
    values: tuple

    def __post_init__(self):
        if len(self.values) == 0:
            raise ParamSetError(f"{self.name}: no values")
        object.__setattr__(self, "values", tuple(self.values))

    def suggest(self, trial: optuna.Trial) -> Any:
        return trial.suggest_categorical(self.name, list(self.values))

    def grid(self, resolution: int) -> List[Any]:
        return list(self.values)

Param = Union[IntParam, NumericParam, DiscreteParam]

class ParamSet:
    """An ordered set of hyperparameter ranges to search."""

    def __init__(self, *params: Param):
        if not params:
            raise ParamSetError("A parameter set needs at least one parameter")
        names = [p.name for p in params]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ParamSetError(f"Duplicate parameters: {dupes}")
        self.params = tuple(params)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.params]

    def __len__(self) -> int:
        return len(self.params)

    def __iter__(self):
        return iter(self.params)

    def __repr__(self) -> str:
        return f"ParamSet({', '.join(repr(p) for p in self.params)})"

    def suggest(self, trial: optuna.Trial) -> Dict[str, Any]:
        return {p.name: p.suggest(trial) for p in self.params}

    def grid(self, resolution: int) -> Dict[str, List[Any]]:
        if resolution < 1:
            raise ParamSetError("Grid resolution must be >= 1")
        return {p.name: p.grid(resolution) for p in self.params}

    def grid_size(self, resolution: int) -> int:
        return int(np.prod([len(v) for v in self.grid(resolution).values()]))

    def subset(self, names: Sequence[str]) -> "ParamSet":
        unknown = set(names) - set(self.names)
        if unknown:
            raise ParamSetError(f"Unknown parameters: {sorted(unknown)}")
        return ParamSet(*[p for p in self.params if p.name in set(names)])
