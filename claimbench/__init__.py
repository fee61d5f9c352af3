"""claimbench: benchmark and tune regression models on insurance claims data.

Contains:
- tasks over Polars frames with schema inference + coercion
- learners: linear regression, decision tree, random forest, gradient boosting, CatBoost
- resampling (cv, repeated cv, holdout, subsampling) and benchmarking on shared splits
- hyperparameter tuning with Optuna, nested cross-validation via tune wrappers
- holdout evaluation on a later policy year
- matplotlib plots, SHAP explanations, model persistence
- CLI (typer)

Requires: polars, pandas, numpy, scikit-learn, catboost, optuna, joblib, matplotlib, shap, typer
"""

from .schema import infer_schema, coerce_like_schema, save_schema, load_schema
from .task import RegressionTask, load_dataset, make_task
from .learners import Learner, TrainedModel, default_param_set, list_learners, make_learner, make_learners
from .measures import Measure, get_measure, mae, mse, rmse, rsq
from .params import DiscreteParam, IntParam, NumericParam, ParamSet
from .resampling import ResampleDesc, ResampleInstance, ResampleResult, make_resample_desc, resample
from .tuning import TuneControl, TunedLearner, TuneResult, make_tune_control, make_tune_wrapper, tune_params
from .benchmark import BenchmarkResult, benchmark
from .holdout import HoldoutResult, evaluate_holdout, holdout_split
from .persistence import load_model, predict_with_model, save_model
from .config import AnalysisConfig, load_config
from .analysis import run_analysis
from .explainability import explain_model_with_shap

__all__ = [
    "make_task",
    "load_dataset",
    "make_learner",
    "make_resample_desc",
    "resample",
    "tune_params",
    "make_tune_wrapper",
    "benchmark",
    "evaluate_holdout",
    "run_analysis",
    "predict_with_model",
    "explain_model_with_shap",
]
