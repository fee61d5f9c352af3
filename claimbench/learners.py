from __future__ import annotations
import copy, logging, time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
import numpy as np
import pandas as pd
import polars as pl
from catboost import CatBoostRegressor
from catboost.utils import get_gpu_device_count
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.impute import SimpleImputer
from sklearn.linear_model import LinearRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder
from sklearn.tree import DecisionTreeRegressor

from .errors import LearnerError, SchemaError
from .params import DiscreteParam, IntParam, NumericParam, ParamSet
from .schema import categorical_features, coerce_like_schema, numeric_features
from .task import RegressionTask, Rows

logger = logging.getLogger(__name__)

def _catboost_defaults(random_state: int) -> Dict:
    # Detect GPU
    task_type = "GPU" if get_gpu_device_count() > 0 else "CPU"
    return {
        "loss_function": "RMSE",
        "iterations": 500,
        "random_seed": random_state,
        "task_type": task_type,
        "verbose": False,
        "allow_writing_files": False,
    }

@dataclass(frozen=True)
class LearnerSpec:
    cls: type
    description: str
    defaults: Callable[[int], Dict]
    param_set: Optional[Callable[[], ParamSet]] = None
    native_categoricals: bool = False

LEARNERS: Dict[str, LearnerSpec] = {
    "linear": LearnerSpec(
        LinearRegression,
        "Linear regression (ordinary least squares)",
        lambda seed: {},
    ),
    "tree": LearnerSpec(
        DecisionTreeRegressor,
        "CART regression tree",
        lambda seed: {"random_state": seed},
        lambda: ParamSet(
            IntParam("max_depth", 2, 12),
            IntParam("min_samples_leaf", 1, 50),
            IntParam("min_samples_split", 2, 40),
        ),
    ),
    "forest": LearnerSpec(
        RandomForestRegressor,
        "Random forest",
        lambda seed: {"n_estimators": 300, "random_state": seed},
        lambda: ParamSet(
            IntParam("n_estimators", 100, 500),
            NumericParam("max_features", 0.2, 1.0),
            IntParam("min_samples_leaf", 1, 20),
        ),
    ),
    "gbm": LearnerSpec(
        GradientBoostingRegressor,
        "Gradient boosting with regression trees",
        lambda seed: {"random_state": seed},
        lambda: ParamSet(
            IntParam("n_estimators", 50, 500),
            NumericParam("learning_rate", 0.01, 0.3, log=True),
            IntParam("max_depth", 1, 5),
            NumericParam("subsample", 0.5, 1.0),
        ),
    ),
    "catboost": LearnerSpec(
        CatBoostRegressor,
        "CatBoost gradient boosting with native categoricals",
        _catboost_defaults,
        lambda: ParamSet(
            IntParam("depth", 4, 10),
            NumericParam("l2_leaf_reg", 1e-2, 1e2, log=True),
            NumericParam("learning_rate", 0.01, 0.2, log=True),
            NumericParam("bagging_temperature", 0.0, 1.0),
            NumericParam("random_strength", 0.0, 1.0),
            DiscreteParam("grow_policy", ("SymmetricTree", "Lossguide")),
        ),
        native_categoricals=True,
    ),
}

def list_learners() -> List[str]:
    return list(LEARNERS)

def _spec(id: str) -> LearnerSpec:
    try:
        return LEARNERS[id]
    except KeyError:
        raise LearnerError(f"Unknown learner '{id}'. Available: {list_learners()}") from None

def default_param_set(id: str) -> Optional[ParamSet]:
    """Default search space for a learner id, None if it has nothing to tune."""
    spec = _spec(id)
    return None if spec.param_set is None else spec.param_set()

def _to_pandas(X: pl.DataFrame) -> pd.DataFrame:
    return X.to_pandas()

def _preprocessor(schema: Dict) -> ColumnTransformer:
    num_cols = numeric_features(schema)
    cat_cols = categorical_features(schema)
    transformers = []
    if num_cols:
        transformers.append(("num", SimpleImputer(strategy="median"), num_cols))
    if cat_cols:
        transformers.append(("cat", OneHotEncoder(handle_unknown="ignore", sparse_output=False), cat_cols))
    return ColumnTransformer(transformers)

@dataclass
class TrainedModel:
    """A fitted learner together with the schema it was trained on."""
    learner_id: str
    params: Dict[str, Any]
    schema: Dict
    target_col: str
    estimator: Any
    n_train: int
    train_time: float = 0.0
    tune_result: Any = field(default=None, repr=False)

    def feature_frame(self, data: Union[RegressionTask, pl.DataFrame, pd.DataFrame], rows: Rows) -> pl.DataFrame:
        if isinstance(data, RegressionTask):
            return data.features_frame(rows)
        if isinstance(data, pd.DataFrame):
            data = pl.from_pandas(data)
        missing = set(self.schema["features"]) - set(data.columns)
        if missing:
            raise SchemaError(f"Missing required features: {sorted(missing)}")
        if rows is not None:
            data = data[np.asarray(rows, dtype=np.int64).tolist(), :]
        return coerce_like_schema(data, self.schema)

    def predict(self, data: Union[RegressionTask, pl.DataFrame, pd.DataFrame], rows: Rows = None) -> np.ndarray:
        X = self.feature_frame(data, rows)
        if X.height == 0:
            return np.empty(0, dtype=np.float64)
        return np.asarray(self.estimator.predict(_to_pandas(X)), dtype=np.float64)

    def final_estimator(self) -> Any:
        if isinstance(self.estimator, Pipeline):
            return self.estimator.named_steps["model"]
        return self.estimator

class Learner:
    """Wraps one regression algorithm plus its hyperparameters."""

    def __init__(self, id: str, params: Optional[Dict[str, Any]] = None, random_state: int = 42):
        self.spec = _spec(id)
        self.id = id
        self.random_state = random_state
        self.params = dict(params or {})
        # fail early on unknown hyperparameters
        self._make_estimator()

    def __repr__(self) -> str:
        return f"Learner(id={self.id!r}, params={self.params!r})"

    @property
    def description(self) -> str:
        return self.spec.description

    def default_param_set(self) -> Optional[ParamSet]:
        return default_param_set(self.id)

    def with_params(self, **params) -> "Learner":
        merged = {**self.params, **params}
        return Learner(self.id, merged, random_state=self.random_state)

    def _make_estimator(self, cat_cols: Optional[List[str]] = None):
        kwargs = {**self.spec.defaults(self.random_state), **self.params}
        if self.spec.native_categoricals and cat_cols:
            kwargs["cat_features"] = cat_cols
        try:
            return self.spec.cls(**kwargs)
        except TypeError as e:
            raise LearnerError(f"Invalid parameters for learner '{self.id}': {e}") from e

    def build(self, schema: Dict):
        """Unfitted estimator for the given feature schema."""
        if self.spec.native_categoricals:
            return self._make_estimator(categorical_features(schema))
        return Pipeline([("prep", _preprocessor(schema)), ("model", self._make_estimator())])

    def train(self, task: RegressionTask, rows: Rows = None) -> TrainedModel:
        X = _to_pandas(task.features_frame(rows))
        y = task.target(rows)
        w = task.weights(rows)
        est = self.build(task.schema)
        fit_kwargs = {}
        if w is not None:
            key = "sample_weight" if self.spec.native_categoricals else "model__sample_weight"
            fit_kwargs[key] = w
        start = time.perf_counter()
        est.fit(X, y, **fit_kwargs)
        elapsed = time.perf_counter() - start
        logger.debug("Trained %s on %d rows in %.2fs", self.id, len(y), elapsed)
        return TrainedModel(
            learner_id=self.id,
            params=copy.deepcopy(self.params),
            schema=task.schema,
            target_col=task.target_col,
            estimator=est,
            n_train=len(y),
            train_time=elapsed,
        )

def make_learner(id: str, random_state: int = 42, **params) -> Learner:
    return Learner(id, params, random_state=random_state)

def make_learners(ids: Sequence[str], random_state: int = 42) -> List[Learner]:
    return [make_learner(i, random_state=random_state) for i in ids]
