from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
import polars as pl

from .errors import BenchmarkError, TaskError
from .learners import TrainedModel
from .measures import Measure, get_measure, get_measures
from .task import RegressionTask

logger = logging.getLogger(__name__)

def latest_year(task: RegressionTask) -> Any:
    year = task.years().max()
    return year.item() if hasattr(year, "item") else year

def as_year(task: RegressionTask, holdout_year: Any) -> Any:
    """holdout_year cast to the dtype of the task's year column ("2012" on an integer column is 2012)."""
    if task.year_col is None:
        raise TaskError(f"Task '{task.id}' has no year column")
    dtype = task.data[task.year_col].dtype
    try:
        return pl.Series([holdout_year]).cast(dtype).item()
    except pl.exceptions.PolarsError as e:
        raise TaskError(f"Holdout year {holdout_year!r} does not match year column '{task.year_col}' ({dtype})") from e

def holdout_split(task: RegressionTask, holdout_year: Optional[Any] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Rows of earlier years (train) and of the holdout year (test).
    The holdout year defaults to the latest year in the task.
    """
    years = task.years()
    if task.data[task.year_col].null_count():
        raise TaskError(f"Year column '{task.year_col}' has missing values")
    holdout_year = latest_year(task) if holdout_year is None else as_year(task, holdout_year)
    test = np.flatnonzero(years == holdout_year)
    train = np.flatnonzero(years < holdout_year)
    if test.size == 0:
        raise TaskError(f"No rows for holdout year {holdout_year}")
    if train.size == 0:
        raise TaskError(f"No rows before holdout year {holdout_year}")
    logger.info("Holdout year %s: %d train rows, %d test rows", holdout_year, train.size, test.size)
    return train, test

@dataclass
class HoldoutResult:
    task_id: str
    holdout_year: Any
    measures: List[Measure]
    models: Dict[str, TrainedModel]
    scores: Dict[str, Dict[str, float]]
    predictions: pl.DataFrame
    n_train: int
    n_test: int

    def performances(self) -> pl.DataFrame:
        return pl.DataFrame([
            {"task_id": self.task_id, "learner_id": lid, "holdout_year": self.holdout_year, **s}
            for lid, s in self.scores.items()
        ])

    def best_learner(self, measure=None) -> str:
        m = self.measures[0] if measure is None else get_measure(measure)
        best_id = None
        for lid, s in self.scores.items():
            v = s[m.name]
            if np.isnan(v):
                continue
            if best_id is None or m.better(v, self.scores[best_id][m.name]):
                best_id = lid
        if best_id is None:
            raise BenchmarkError(f"No learner has a finite {m.name}")
        return best_id

def evaluate_holdout(
    learners: Sequence,
    task: RegressionTask,
    holdout_year: Optional[Any] = None,
    measures=None,
) -> HoldoutResult:
    """Train each learner on the years before holdout_year and score it on holdout_year."""
    if not learners:
        raise BenchmarkError("No learners to evaluate")
    measures = get_measures(measures)
    holdout_year = latest_year(task) if holdout_year is None else as_year(task, holdout_year)
    train, test = holdout_split(task, holdout_year)
    truth = task.target(test)
    models: Dict[str, TrainedModel] = {}
    scores: Dict[str, Dict[str, float]] = {}
    frames = []
    for learner in learners:
        model = learner.train(task, train)
        response = model.predict(task, test)
        models[learner.id] = model
        scores[learner.id] = {m.name: m(truth, response) for m in measures}
        frames.append(pl.DataFrame({
            "learner_id": [learner.id] * len(test),
            "row_id": test.astype(np.int64),
            "truth": truth,
            "response": response,
        }))
        logger.info("Holdout %s: %s", learner.id, {k: round(v, 4) for k, v in scores[learner.id].items()})
    return HoldoutResult(
        task_id=task.id,
        holdout_year=holdout_year,
        measures=measures,
        models=models,
        scores=scores,
        predictions=pl.concat(frames),
        n_train=int(train.size),
        n_test=int(test.size),
    )
