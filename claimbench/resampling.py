from __future__ import annotations
import logging, time
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Union
import numpy as np
import polars as pl
from sklearn.model_selection import KFold, RepeatedKFold, ShuffleSplit

from .errors import ResamplingError
from .measures import Measure, get_measures
from .task import RegressionTask, Rows

logger = logging.getLogger(__name__)

METHODS = ("cv", "repcv", "holdout", "subsample")

@dataclass(frozen=True)
class ResampleDesc:
    """How to resample:
    - cv: `iters`-fold cross-validation
    - repcv: `iters`-fold cross-validation repeated `reps` times
    - holdout: one train/test split with `split` share for training
    - subsample: `iters` random train/test splits with `split` share for training
    """
    method: str = "cv"
    iters: int = 5
    reps: int = 1
    split: float = 2 / 3
    shuffle: bool = True

    def __post_init__(self):
        if self.method not in METHODS:
            raise ResamplingError(f"Unknown resampling method '{self.method}'. Available: {list(METHODS)}")
        if self.method in ("cv", "repcv") and self.iters < 2:
            raise ResamplingError("Cross-validation needs at least 2 folds")
        if self.method == "subsample" and self.iters < 1:
            raise ResamplingError("Subsampling needs at least 1 iteration")
        if self.reps < 1:
            raise ResamplingError("reps must be >= 1")
        if not 0.0 < self.split < 1.0:
            raise ResamplingError("split must be in (0, 1)")

    @property
    def n_iters(self) -> int:
        if self.method == "cv":
            return self.iters
        if self.method == "repcv":
            return self.iters * self.reps
        if self.method == "holdout":
            return 1
        return self.iters

    def _splitter(self, seed: int):
        if self.method == "cv":
            return KFold(n_splits=self.iters, shuffle=self.shuffle, random_state=seed if self.shuffle else None)
        if self.method == "repcv":
            return RepeatedKFold(n_splits=self.iters, n_repeats=self.reps, random_state=seed)
        n_splits = 1 if self.method == "holdout" else self.iters
        return ShuffleSplit(n_splits=n_splits, train_size=self.split, random_state=seed)

    def instantiate(self, n: int, seed: int = 42) -> "ResampleInstance":
        if self.method in ("cv", "repcv") and n < self.iters:
            raise ResamplingError(f"Cannot split {n} observations into {self.iters} folds")
        if n < 2:
            raise ResamplingError("Resampling needs at least 2 observations")
        splits = [(tr, te) for tr, te in self._splitter(seed).split(np.zeros((n, 1)))]
        return ResampleInstance(desc=self, size=n, splits=splits)

def make_resample_desc(method: str = "cv", **kwargs) -> ResampleDesc:
    return ResampleDesc(method=method, **kwargs)

@dataclass
class ResampleInstance:
    """Fixed train/test positions, reused so learners see the same splits."""
    desc: ResampleDesc
    size: int
    splits: List[Tuple[np.ndarray, np.ndarray]]

    def __len__(self) -> int:
        return len(self.splits)

    def map_rows(self, rows: Rows) -> List[Tuple[np.ndarray, np.ndarray]]:
        """Translate split positions into task rows."""
        if rows is None:
            return self.splits
        rows = np.asarray(rows, dtype=np.int64)
        if len(rows) != self.size:
            raise ResamplingError(f"Instance was built for {self.size} rows, got {len(rows)}")
        return [(rows[tr], rows[te]) for tr, te in self.splits]

def as_instance(
    resampling: Union[ResampleDesc, ResampleInstance],
    n: int,
    seed: int = 42,
) -> ResampleInstance:
    if isinstance(resampling, ResampleInstance):
        if resampling.size != n:
            raise ResamplingError(f"Instance was built for {resampling.size} rows, got {n}")
        return resampling
    if isinstance(resampling, ResampleDesc):
        return resampling.instantiate(n, seed)
    raise ResamplingError(f"Expected ResampleDesc or ResampleInstance, got {type(resampling).__name__}")

@dataclass
class IterationResult:
    iter: int
    measures: Dict[str, float]
    row_ids: np.ndarray
    truth: np.ndarray
    response: np.ndarray
    train_time: float

def run_iteration(
    learner,
    task: RegressionTask,
    iteration: int,
    train_rows: np.ndarray,
    test_rows: np.ndarray,
    measures: Sequence[Measure],
) -> IterationResult:
    """Train on train_rows, predict test_rows, score."""
    model = learner.train(task, train_rows)
    response = model.predict(task, test_rows)
    truth = task.target(test_rows)
    scores = {m.name: m(truth, response) for m in measures}
    return IterationResult(
        iter=iteration,
        measures=scores,
        row_ids=np.asarray(test_rows),
        truth=truth,
        response=response,
        train_time=model.train_time,
    )

@dataclass
class ResampleResult:
    learner_id: str
    task_id: str
    measures: List[Measure]
    iterations: List[IterationResult]
    runtime: float = 0.0

    @property
    def measures_test(self) -> pl.DataFrame:
        return pl.DataFrame(
            [{"iter": it.iter, **it.measures} for it in self.iterations],
            schema={"iter": pl.Int64, **{m.name: pl.Float64 for m in self.measures}},
        )

    @property
    def aggr(self) -> Dict[str, float]:
        """Test mean per measure, NaN iterations ignored."""
        out = {}
        for m in self.measures:
            values = np.array([it.measures[m.name] for it in self.iterations], dtype=np.float64)
            out[m.name] = float(np.nanmean(values)) if np.isfinite(values).any() else float("nan")
        return out

    @property
    def pred(self) -> pl.DataFrame:
        frames = [
            pl.DataFrame({
                "iter": np.full(len(it.row_ids), it.iter, dtype=np.int64),
                "row_id": it.row_ids.astype(np.int64),
                "truth": it.truth,
                "response": it.response,
            })
            for it in self.iterations
        ]
        return pl.concat(frames)

def resample(
    learner,
    task: RegressionTask,
    resampling: Union[ResampleDesc, ResampleInstance],
    measures=None,
    rows: Rows = None,
    seed: int = 42,
) -> ResampleResult:
    """Estimate out-of-sample performance of one learner."""
    measures = get_measures(measures)
    n = task.n_obs if rows is None else len(rows)
    instance = as_instance(resampling, n, seed)
    start = time.perf_counter()
    iterations = [
        run_iteration(learner, task, i, tr, te, measures)
        for i, (tr, te) in enumerate(instance.map_rows(rows))
    ]
    result = ResampleResult(
        learner_id=learner.id,
        task_id=task.id,
        measures=measures,
        iterations=iterations,
        runtime=time.perf_counter() - start,
    )
    logger.debug("Resampled %s: %s", learner.id, result.aggr)
    return result
