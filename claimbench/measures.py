from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Union
import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from .errors import MeasureError

def _rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))

def _rsq(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    # undefined on a single test observation
    if len(y_true) < 2:
        return float("nan")
    return float(r2_score(y_true, y_pred))

@dataclass(frozen=True)
class Measure:
    name: str
    fun: Callable[[np.ndarray, np.ndarray], float]
    minimize: bool = True
    description: str = ""

    def __call__(self, y_true, y_pred) -> float:
        return float(self.fun(np.asarray(y_true, dtype=np.float64), np.asarray(y_pred, dtype=np.float64)))

    def better(self, a: float, b: float) -> bool:
        """True if a beats b."""
        return a < b if self.minimize else a > b

mse = Measure("mse", mean_squared_error, True, "Mean squared error")
rmse = Measure("rmse", _rmse, True, "Root mean squared error")
mae = Measure("mae", mean_absolute_error, True, "Mean absolute error")
rsq = Measure("rsq", _rsq, False, "Coefficient of determination")

MEASURES: Dict[str, Measure] = {m.name: m for m in (mse, rmse, mae, rsq)}

def get_measure(m: Union[str, Measure]) -> Measure:
    if isinstance(m, Measure):
        return m
    try:
        return MEASURES[m]
    except KeyError:
        raise MeasureError(f"Unknown measure '{m}'. Available: {sorted(MEASURES)}") from None

def get_measures(ms: Union[None, str, Measure, Sequence[Union[str, Measure]]]) -> List[Measure]:
    if ms is None:
        return [mse]
    if isinstance(ms, (str, Measure)):
        return [get_measure(ms)]
    out = [get_measure(m) for m in ms]
    if not out:
        raise MeasureError("At least one measure is required")
    return out
