from __future__ import annotations
import json, os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints

from .errors import ConfigError
from .learners import list_learners
from .measures import MEASURES
from .resampling import METHODS
from .tuning import TUNE_METHODS

def _matches(value: Any, hint: Any) -> bool:
    if hint is Any:
        return True
    if hint is type(None):
        return value is None
    origin = get_origin(hint)
    if origin is Union:
        return any(_matches(value, h) for h in get_args(hint))
    if origin is list:
        (item,) = get_args(hint)
        return isinstance(value, list) and all(_matches(v, item) for v in value)
    # bool is an int subclass
    if hint is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, hint)

@dataclass
class AnalysisConfig:
    """Settings for one full analysis run (see analysis.run_analysis)."""
    data_path: str = ""
    target_col: str = ""
    year_col: Optional[str] = None
    holdout_year: Optional[Any] = None
    weight_col: Optional[str] = None
    drop_cols: List[str] = field(default_factory=list)
    cat_cols: Optional[List[str]] = None
    learners: List[str] = field(default_factory=lambda: ["linear", "tree", "forest", "gbm"])
    tune_learners: Optional[List[str]] = None
    resampling: str = "cv"
    folds: int = 5
    reps: int = 1
    inner_folds: int = 3
    nested_cv: bool = True
    tune_method: str = "random"
    tune_maxit: int = 20
    tune_resolution: int = 5
    measures: List[str] = field(default_factory=lambda: ["rmse", "mse", "mae", "rsq"])
    tune_measure: str = "rmse"
    n_jobs: int = 1
    seed: int = 42
    output_dir: str = "./analysis_run"
    explain: bool = False

    def validate(self) -> "AnalysisConfig":
        hints = get_type_hints(type(self))
        for f in fields(self):
            value = getattr(self, f.name)
            if not _matches(value, hints[f.name]):
                raise ConfigError(f"{f.name} has the wrong type: {value!r} (expected {f.type})")
        if not self.data_path:
            raise ConfigError("data_path is required")
        if not self.target_col:
            raise ConfigError("target_col is required")
        if not self.learners:
            raise ConfigError("At least one learner is required")
        available = set(list_learners())
        unknown = [l for l in self.learners + (self.tune_learners or []) if l not in available]
        if unknown:
            raise ConfigError(f"Unknown learners: {unknown}. Available: {sorted(available)}")
        if self.tune_learners and set(self.tune_learners) - set(self.learners):
            raise ConfigError("tune_learners must be a subset of learners")
        bad = [m for m in self.measures + [self.tune_measure] if m not in MEASURES]
        if bad:
            raise ConfigError(f"Unknown measures: {bad}. Available: {sorted(MEASURES)}")
        if self.resampling not in METHODS:
            raise ConfigError(f"Unknown resampling '{self.resampling}'. Available: {list(METHODS)}")
        if self.tune_method not in TUNE_METHODS:
            raise ConfigError(f"Unknown tune_method '{self.tune_method}'. Available: {list(TUNE_METHODS)}")
        if self.folds < 2 or self.inner_folds < 2:
            raise ConfigError("folds and inner_folds must be >= 2")
        if self.tune_maxit < 1 or self.tune_resolution < 1:
            raise ConfigError("tune_maxit and tune_resolution must be >= 1")
        if self.n_jobs == 0:
            raise ConfigError("n_jobs must be non-zero")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {unknown}")
        return cls(**data)

    def merged(self, **overrides) -> "AnalysisConfig":
        """Copy with every non-None override applied."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return AnalysisConfig.from_dict(data)

def load_config(path: str) -> AnalysisConfig:
    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config in {path} must be a JSON object")
    return AnalysisConfig.from_dict(data)

def save_config(config: AnalysisConfig, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
