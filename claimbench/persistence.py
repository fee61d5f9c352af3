import os, json, logging
from typing import Dict, Union
import joblib
import pandas as pd
import polars as pl

from .learners import TrainedModel
from .schema import load_schema, save_schema

logger = logging.getLogger(__name__)

MODEL_FILE = "model.joblib"
SCHEMA_FILE = "schema.json"
METRICS_FILE = "metrics.json"

def save_model(model: TrainedModel, model_dir: str, extra: Dict = None) -> Dict[str, str]:
    """Persist estimator + schema + metrics in model_dir.
    Returns dict of written paths.
    """
    os.makedirs(model_dir, exist_ok=True)
    model_path = os.path.join(model_dir, MODEL_FILE)
    joblib.dump(model.estimator, model_path)

    schema_path = os.path.join(model_dir, SCHEMA_FILE)
    save_schema(model.schema, schema_path)

    metrics = {
        "learner_id": model.learner_id,
        "params": model.params,
        "target_col": model.target_col,
        "n_train": model.n_train,
        "train_time": model.train_time,
        "features": model.schema["features"],
        "cat_features_idx": model.schema["cat_features_idx"],
    }
    if model.tune_result is not None:
        metrics["tuning"] = model.tune_result.to_dict()
    if extra:
        metrics.update(extra)
    metrics_path = os.path.join(model_dir, METRICS_FILE)
    with open(metrics_path, "w") as f:
        json.dump(metrics, f, indent=2, default=str)
    logger.info("Saved %s model to %s", model.learner_id, model_dir)
    return {"model": model_path, "schema": schema_path, "metrics": metrics_path}

def load_model(model_dir: str) -> TrainedModel:
    model_file = os.path.join(model_dir, MODEL_FILE)
    schema_file = os.path.join(model_dir, SCHEMA_FILE)
    metrics_file = os.path.join(model_dir, METRICS_FILE)
    for path in (model_file, schema_file, metrics_file):
        if not os.path.exists(path):
            raise FileNotFoundError(f"Model artifact not found: {path}")

    with open(metrics_file, "r") as f:
        metrics = json.load(f)
    return TrainedModel(
        learner_id=metrics["learner_id"],
        params=metrics.get("params", {}),
        schema=load_schema(schema_file),
        target_col=metrics["target_col"],
        estimator=joblib.load(model_file),
        n_train=metrics.get("n_train", 0),
        train_time=metrics.get("train_time", 0.0),
    )

def predict_with_model(
    df: Union[pl.DataFrame, pd.DataFrame],
    model_path: str,
    prediction_col: str = "prediction",
) -> pl.DataFrame:
    """
    Generate predictions using a saved model.

    Parameters
    ----------
    df : pl.DataFrame
        Input dataframe containing features for prediction
    model_path : str
        Directory written by save_model:
        - model.joblib: fitted estimator
        - schema.json: feature schema and column roles
        - metrics.json: learner id, parameters, target column
    prediction_col : str, optional
        Name for the prediction column (default: "prediction")

    Returns
    -------
    pl.DataFrame
        Original dataframe with predictions appended as a new column

    Raises
    ------
    FileNotFoundError
        If model files are not found
    SchemaError
        If required feature columns are missing

    Examples
    --------
    >>> import polars as pl
    >>> import claimbench as cb
    >>> df = pl.read_csv("claims_2014.csv")
    >>> scored = cb.predict_with_model(df, "./analysis_run/best_model")
    >>> scored.write_csv("predictions.csv")
    """
    if isinstance(df, pd.DataFrame):
        df = pl.from_pandas(df)
    model = load_model(model_path)
    predictions = model.predict(df)
    return df.with_columns(pl.Series(name=prediction_col, values=predictions))
