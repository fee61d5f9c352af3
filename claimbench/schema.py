from __future__ import annotations
from typing import Dict, List, Optional
import polars as pl
import json

from .errors import SchemaError

SENTINEL_CAT = "__NA__"

def _pl_dtype_name(dt: pl.DataType) -> str:
    # Serialize Polars dtype to a stable string
    return str(dt)

def _is_categorical_dtype(dt: pl.DataType) -> bool:
    return dt == pl.Utf8 or dt == pl.Categorical or dt == pl.Enum or dt == pl.Boolean

def infer_schema(
    df: pl.DataFrame,
    feature_cols: List[str],
    cat_cols: Optional[List[str]] = None,
) -> Dict:
    """Infer a simple schema:
    - features: ordered list of feature names
    - roles: {col: 'numeric'|'categorical'}
    - dtypes: {col: dtype_name}
    - cat_features_idx: indices (relative to features) of categoricals
    - levels: {col: sorted observed categories}
    """
    missing = [c for c in feature_cols if c not in df.columns]
    if missing:
        raise SchemaError(f"Feature columns not found: {missing}")
    if cat_cols is None:
        # Auto-detect categoricals as string-like columns
        cat_cols = [c for c in feature_cols if _is_categorical_dtype(df.schema[c])]
    unknown = set(cat_cols) - set(feature_cols)
    if unknown:
        raise SchemaError(f"Categorical columns are not features: {sorted(unknown)}")
    cat_set = set(cat_cols)
    roles = {}
    dtypes = {}
    levels = {}
    for c in feature_cols:
        roles[c] = "categorical" if c in cat_set else "numeric"
        dtypes[c] = _pl_dtype_name(df.schema[c])
        if roles[c] == "categorical":
            values = df[c].cast(pl.Utf8).drop_nulls().unique().to_list()
            levels[c] = sorted(values)
    cat_idx = [i for i, c in enumerate(feature_cols) if roles[c] == "categorical"]
    schema = {
        "version": 2,
        "features": list(feature_cols),
        "roles": roles,
        "dtypes": dtypes,
        "cat_features_idx": cat_idx,
        "levels": levels,
        "sentinel_cat": SENTINEL_CAT,
    }
    return schema

def categorical_features(schema: Dict) -> List[str]:
    return [schema["features"][i] for i in schema["cat_features_idx"]]

def numeric_features(schema: Dict) -> List[str]:
    return [c for c in schema["features"] if schema["roles"][c] == "numeric"]

def coerce_like_schema(df: pl.DataFrame, schema: Dict) -> pl.DataFrame:
    """Coerce df to match schema (column order + types).
    Categoricals become strings with nulls set to the sentinel, numerics Float64.
    """
    sentinel = schema.get("sentinel_cat", SENTINEL_CAT)
    out = []
    for name in schema["features"]:
        if name not in df.columns:
            # Add missing column with default value
            if schema["roles"][name] == "categorical":
                out.append(pl.Series(name, [sentinel] * df.height, dtype=pl.Utf8))
            else:
                out.append(pl.Series(name, [None] * df.height, dtype=pl.Float64))
            continue

        s = df[name]
        if schema["roles"][name] == "categorical":
            out.append(s.cast(pl.Utf8).fill_null(sentinel))
        else:
            try:
                out.append(s.cast(pl.Float64))
            except pl.exceptions.PolarsError as e:
                raise SchemaError(f"Column '{name}' cannot be read as numeric: {e}") from e
    return pl.DataFrame(out)

def save_schema(schema: Dict, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2)

def load_schema(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
