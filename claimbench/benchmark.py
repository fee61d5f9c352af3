from __future__ import annotations
import logging, time
from dataclasses import dataclass
from typing import Dict, List, Sequence, Union
import numpy as np
import polars as pl
from joblib import Parallel, delayed

from .errors import BenchmarkError
from .measures import Measure, get_measure, get_measures
from .resampling import ResampleDesc, ResampleInstance, ResampleResult, as_instance, run_iteration
from .task import RegressionTask, Rows

logger = logging.getLogger(__name__)

@dataclass
class BenchmarkResult:
    task_id: str
    measures: List[Measure]
    results: Dict[str, ResampleResult]
    instance: ResampleInstance
    runtime: float = 0.0

    @property
    def learner_ids(self) -> List[str]:
        return list(self.results)

    def performances(self) -> pl.DataFrame:
        """Long table: one row per learner and resampling iteration."""
        frames = [
            res.measures_test.with_columns(
                pl.lit(self.task_id).alias("task_id"),
                pl.lit(lid).alias("learner_id"),
            )
            for lid, res in self.results.items()
        ]
        out = pl.concat(frames)
        return out.select(["task_id", "learner_id", "iter", *[m.name for m in self.measures]])

    def aggregated(self) -> pl.DataFrame:
        """One row per learner with the test mean of every measure."""
        rows = []
        for lid, res in self.results.items():
            aggr = res.aggr
            rows.append({
                "task_id": self.task_id,
                "learner_id": lid,
                **{f"{m.name}.test.mean": aggr[m.name] for m in self.measures},
                "runtime": res.runtime,
            })
        return pl.DataFrame(rows)

    def predictions(self) -> pl.DataFrame:
        return pl.concat([
            res.pred.with_columns(pl.lit(lid).alias("learner_id"))
            for lid, res in self.results.items()
        ])

    def best_learner(self, measure: Union[str, Measure, None] = None) -> str:
        m = self.measures[0] if measure is None else get_measure(measure)
        if m.name not in {x.name for x in self.measures}:
            raise BenchmarkError(f"Measure '{m.name}' was not computed in this benchmark")
        scored = [(lid, res.aggr[m.name]) for lid, res in self.results.items()]
        scored = [(lid, v) for lid, v in scored if not np.isnan(v)]
        if not scored:
            raise BenchmarkError(f"No learner has a finite {m.name}")
        best_id, best_v = scored[0]
        for lid, v in scored[1:]:
            if m.better(v, best_v):
                best_id, best_v = lid, v
        return best_id

def benchmark(
    learners: Sequence,
    task: RegressionTask,
    resampling: Union[ResampleDesc, ResampleInstance],
    measures=None,
    rows: Rows = None,
    n_jobs: int = 1,
    seed: int = 42,
) -> BenchmarkResult:
    """Resample every learner on one shared resampling instance.
    Each (learner, iteration) pair is a separate joblib job.
    """
    if not learners:
        raise BenchmarkError("No learners to benchmark")
    ids = [l.id for l in learners]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise BenchmarkError(f"Duplicate learner ids: {dupes}")
    measures = get_measures(measures)
    n = task.n_obs if rows is None else len(rows)
    instance = as_instance(resampling, n, seed)
    splits = instance.map_rows(rows)

    logger.info(
        "Benchmarking %s on task %s (%d iterations, n_jobs=%d)",
        ids, task.id, len(splits), n_jobs,
    )
    start = time.perf_counter()
    jobs = [(learner, i, tr, te) for learner in learners for i, (tr, te) in enumerate(splits)]
    outputs = Parallel(n_jobs=n_jobs)(
        delayed(run_iteration)(learner, task, i, tr, te, measures)
        for learner, i, tr, te in jobs
    )

    results: Dict[str, ResampleResult] = {}
    for (learner, _, _, _), it in zip(jobs, outputs):
        res = results.setdefault(
            learner.id,
            ResampleResult(learner_id=learner.id, task_id=task.id, measures=measures, iterations=[]),
        )
        res.iterations.append(it)
        res.runtime += it.train_time
    bmr = BenchmarkResult(
        task_id=task.id,
        measures=measures,
        results=results,
        instance=instance,
        runtime=time.perf_counter() - start,
    )
    for lid, res in results.items():
        logger.info("  %s: %s", lid, {k: round(v, 4) for k, v in res.aggr.items()})
    return bmr
