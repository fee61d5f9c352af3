from __future__ import annotations
import logging, time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
import optuna
import polars as pl

from .errors import ParamSetError, ResamplingError
from .learners import Learner, TrainedModel
from .measures import Measure, get_measure
from .params import ParamSet
from .resampling import ResampleDesc, ResampleInstance, as_instance, resample
from .task import RegressionTask, Rows

logger = logging.getLogger(__name__)

TUNE_METHODS = ("grid", "random", "tpe")

@dataclass(frozen=True)
class TuneControl:
    """Search strategy.
    - grid: every combination of `resolution` values per parameter
    - random: `maxit` uniformly sampled configurations
    - tpe: `maxit` configurations proposed by Optuna's TPE sampler
    """
    method: str = "random"
    resolution: int = 5
    maxit: int = 20
    seed: int = 42
    timeout: Optional[int] = None

    def __post_init__(self):
        if self.method not in TUNE_METHODS:
            raise ParamSetError(f"Unknown tuning method '{self.method}'. Available: {list(TUNE_METHODS)}")
        if self.maxit < 1:
            raise ParamSetError("maxit must be >= 1")

    def sampler(self, par_set: ParamSet) -> optuna.samplers.BaseSampler:
        if self.method == "grid":
            return optuna.samplers.GridSampler(par_set.grid(self.resolution), seed=self.seed)
        if self.method == "random":
            return optuna.samplers.RandomSampler(seed=self.seed)
        return optuna.samplers.TPESampler(seed=self.seed)

    def n_trials(self, par_set: ParamSet) -> int:
        if self.method == "grid":
            return par_set.grid_size(self.resolution)
        return self.maxit

def make_tune_control(method: str = "random", **kwargs) -> TuneControl:
    return TuneControl(method=method, **kwargs)

@dataclass
class TuneResult:
    learner_id: str
    x: Dict[str, Any]
    y: float
    measure: str
    opt_path: pl.DataFrame
    runtime: float = 0.0

    @property
    def n_evals(self) -> int:
        return self.opt_path.height

    def to_dict(self) -> Dict:
        return {
            "learner_id": self.learner_id,
            "x": self.x,
            "y": self.y,
            "measure": self.measure,
            "n_evals": self.n_evals,
            "runtime": self.runtime,
        }

def _opt_path(study: optuna.Study, measure: Measure) -> pl.DataFrame:
    records = []
    for t in study.trials:
        records.append({
            "trial": t.number,
            **t.params,
            measure.name: t.value,
            "state": t.state.name,
            "runtime": t.user_attrs.get("runtime"),
        })
    return pl.DataFrame(records, infer_schema_length=None)

def _resolve_param_set(learner: Learner, par_set: Optional[ParamSet]) -> ParamSet:
    if par_set is None:
        par_set = learner.default_param_set()
    if par_set is None:
        raise ParamSetError(f"Learner '{learner.id}' has no default parameter set; pass one explicitly")
    return par_set

def tune_params(
    learner: Learner,
    task: RegressionTask,
    resampling: Union[ResampleDesc, ResampleInstance],
    par_set: Optional[ParamSet] = None,
    control: Optional[TuneControl] = None,
    measure: Union[str, Measure] = "mse",
    rows: Rows = None,
) -> TuneResult:
    """Search par_set for the configuration with the best resampled measure.
    Every configuration is scored on the same resampling instance.
    """
    par_set = _resolve_param_set(learner, par_set)
    control = control or TuneControl()
    measure = get_measure(measure)
    n = task.n_obs if rows is None else len(rows)
    instance = as_instance(resampling, n, control.seed)

    def objective(trial: optuna.Trial) -> float:
        params = par_set.suggest(trial)
        res = resample(learner.with_params(**params), task, instance, [measure], rows=rows)
        trial.set_user_attr("runtime", res.runtime)
        return res.aggr[measure.name]

    start = time.perf_counter()
    # optuna logs every trial at INFO
    verbosity = optuna.logging.get_verbosity()
    optuna.logging.set_verbosity(optuna.logging.WARNING)
    try:
        study = optuna.create_study(
            direction="minimize" if measure.minimize else "maximize",
            sampler=control.sampler(par_set),
        )
        study.optimize(objective, n_trials=control.n_trials(par_set), timeout=control.timeout)
    finally:
        optuna.logging.set_verbosity(verbosity)

    result = TuneResult(
        learner_id=learner.id,
        x=dict(study.best_params),
        y=float(study.best_value),
        measure=measure.name,
        opt_path=_opt_path(study, measure),
        runtime=time.perf_counter() - start,
    )
    logger.info(
        "Tuned %s over %d configurations: %s=%.4f with %s",
        learner.id, result.n_evals, measure.name, result.y, result.x,
    )
    return result

class TunedLearner:
    """Learner that tunes itself on its training rows before the final fit.
    Resampling a TunedLearner gives nested cross-validation.
    """

    def __init__(
        self,
        learner: Learner,
        resampling: ResampleDesc,
        par_set: Optional[ParamSet] = None,
        control: Optional[TuneControl] = None,
        measure: Union[str, Measure] = "mse",
    ):
        if not isinstance(resampling, ResampleDesc):
            raise ResamplingError("Inner resampling must be a ResampleDesc, it is instantiated per training set")
        self.learner = learner
        self.resampling = resampling
        self.par_set = _resolve_param_set(learner, par_set)
        self.control = control or TuneControl()
        self.measure = get_measure(measure)
        self.id = f"{learner.id}.tuned"

    def __repr__(self) -> str:
        return f"TunedLearner(id={self.id!r}, par_set={self.par_set!r})"

    def train(self, task: RegressionTask, rows: Rows = None) -> TrainedModel:
        res = tune_params(self.learner, task, self.resampling, self.par_set, self.control, self.measure, rows=rows)
        model = self.learner.with_params(**res.x).train(task, rows)
        model.learner_id = self.id
        model.tune_result = res
        return model

def make_tune_wrapper(
    learner: Learner,
    resampling: ResampleDesc,
    par_set: Optional[ParamSet] = None,
    control: Optional[TuneControl] = None,
    measure: Union[str, Measure] = "mse",
) -> TunedLearner:
    return TunedLearner(learner, resampling, par_set=par_set, control=control, measure=measure)
