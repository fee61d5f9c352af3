from __future__ import annotations
import os, logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union
import numpy as np
import pandas as pd
import polars as pl

from .errors import DataError, TaskError
from .schema import infer_schema, coerce_like_schema

logger = logging.getLogger(__name__)

Rows = Optional[Sequence[int]]

def load_dataset(path: str) -> pl.DataFrame:
    """Read a claims dataset from parquet or csv."""
    if not os.path.exists(path):
        raise DataError(f"Dataset not found: {path}")
    if path.endswith(".parquet"):
        df = pl.read_parquet(path)
    elif path.endswith(".csv"):
        df = pl.read_csv(path, infer_schema_length=10000)
    else:
        raise DataError("Only parquet or csv supported.")
    logger.info("Loaded %s: %d rows x %d columns", path, df.height, df.width)
    return df

def _as_polars(df: Union[pl.DataFrame, pd.DataFrame]) -> pl.DataFrame:
    if isinstance(df, pd.DataFrame):
        return pl.from_pandas(df)
    if isinstance(df, pl.DataFrame):
        return df
    raise TaskError(f"Expected a polars or pandas DataFrame, got {type(df).__name__}")

@dataclass(eq=False)
class RegressionTask:
    """Dataset + target column for supervised regression.
    Rows are addressed by position (0..n_obs-1) everywhere.
    """
    id: str
    data: pl.DataFrame
    target_col: str
    features: List[str]
    schema: Dict
    year_col: Optional[str] = None
    weight_col: Optional[str] = None
    _X: pl.DataFrame = field(default=None, repr=False)

    def __post_init__(self):
        if self._X is None:
            self._X = coerce_like_schema(self.data, self.schema)

    @property
    def n_obs(self) -> int:
        return self.data.height

    def _take(self, df: pl.DataFrame, rows: Rows) -> pl.DataFrame:
        if rows is None:
            return df
        return df[np.asarray(rows, dtype=np.int64).tolist(), :]

    def frame(self, rows: Rows = None) -> pl.DataFrame:
        return self._take(self.data, rows)

    def features_frame(self, rows: Rows = None) -> pl.DataFrame:
        """Schema-coerced feature columns."""
        return self._take(self._X, rows)

    def target(self, rows: Rows = None) -> np.ndarray:
        return self._take(self.data.select(self.target_col), rows)[self.target_col].to_numpy().astype(np.float64)

    def weights(self, rows: Rows = None) -> Optional[np.ndarray]:
        if self.weight_col is None:
            return None
        return self._take(self.data.select(self.weight_col), rows)[self.weight_col].to_numpy().astype(np.float64)

    def years(self, rows: Rows = None) -> np.ndarray:
        if self.year_col is None:
            raise TaskError(f"Task '{self.id}' has no year column")
        return self._take(self.data.select(self.year_col), rows)[self.year_col].to_numpy()

    def subset(self, rows: Sequence[int]) -> "RegressionTask":
        """New task over the given rows, sharing the parent schema."""
        return RegressionTask(
            id=self.id,
            data=self.frame(rows),
            target_col=self.target_col,
            features=self.features,
            schema=self.schema,
            year_col=self.year_col,
            weight_col=self.weight_col,
            _X=self.features_frame(rows),
        )

    def summary(self) -> Dict:
        y = self.target()
        out = {
            "id": self.id,
            "n_obs": self.n_obs,
            "n_features": len(self.features),
            "n_categorical": len(self.schema["cat_features_idx"]),
            "target": self.target_col,
            "target_mean": float(np.mean(y)) if y.size else None,
            "year_col": self.year_col,
            "weight_col": self.weight_col,
        }
        if self.year_col is not None:
            out["years"] = sorted(self.data[self.year_col].unique().to_list())
        return out

def make_task(
    df: Union[pl.DataFrame, pd.DataFrame],
    target_col: str,
    id: Optional[str] = None,
    year_col: Optional[str] = None,
    weight_col: Optional[str] = None,
    drop_cols: Optional[List[str]] = None,
    cat_cols: Optional[List[str]] = None,
) -> RegressionTask:
    """Build a regression task.
    - features = all columns except target/year/weight/drop columns
    - a missing target value is an error, it is never imputed
    """
    df = _as_polars(df)
    drop_cols = list(drop_cols or [])
    for role, col in (("target", target_col), ("year", year_col), ("weight", weight_col)):
        if col is not None and col not in df.columns:
            raise TaskError(f"{role.capitalize()} column '{col}' not found in DataFrame")
    unknown = [c for c in drop_cols if c not in df.columns]
    if unknown:
        raise TaskError(f"Drop columns not found in DataFrame: {unknown}")

    n_missing = df[target_col].null_count()
    if n_missing:
        raise TaskError(f"Target column '{target_col}' has {n_missing} missing values")
    try:
        df = df.with_columns(pl.col(target_col).cast(pl.Float64))
    except pl.exceptions.PolarsError as e:
        raise TaskError(f"Target column '{target_col}' is not numeric") from e
    if weight_col is not None:
        df = df.with_columns(pl.col(weight_col).cast(pl.Float64).fill_null(1.0))

    ignore = {target_col, *drop_cols}
    if year_col:
        ignore.add(year_col)
    if weight_col:
        ignore.add(weight_col)
    features = [c for c in df.columns if c not in ignore]
    if not features:
        raise TaskError("Task has no feature columns")

    schema = infer_schema(df, features, cat_cols=cat_cols)
    task = RegressionTask(
        id=id or target_col,
        data=df,
        target_col=target_col,
        features=features,
        schema=schema,
        year_col=year_col,
        weight_col=weight_col,
    )
    logger.debug("Task %s: %d obs, %d features", task.id, task.n_obs, len(features))
    return task
