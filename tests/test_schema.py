import os
import tempfile
import polars as pl
import pytest

import claimbench as cb
from claimbench.errors import SchemaError
from claimbench.schema import SENTINEL_CAT

def test_infer_schema_detects_string_columns(claims_df):
    features = ["driver_age", "vehicle_value", "region", "vehicle_type"]
    schema = cb.infer_schema(claims_df, features)
    assert schema["features"] == features
    assert schema["roles"]["region"] == "categorical"
    assert schema["roles"]["driver_age"] == "numeric"
    assert schema["cat_features_idx"] == [2, 3]
    assert schema["levels"]["vehicle_type"] == ["sedan", "suv", "van"]

def test_infer_schema_explicit_cat_cols(claims_df):
    schema = cb.infer_schema(claims_df, ["driver_age", "region"], cat_cols=["driver_age"])
    assert schema["roles"]["driver_age"] == "categorical"
    assert schema["roles"]["region"] == "numeric"

def test_infer_schema_rejects_unknown_columns(claims_df):
    with pytest.raises(SchemaError):
        cb.infer_schema(claims_df, ["driver_age", "not_there"])
    with pytest.raises(SchemaError):
        cb.infer_schema(claims_df, ["driver_age"], cat_cols=["region"])

def test_coerce_like_schema_fills_sentinel_and_missing_columns():
    df = pl.DataFrame({"region": ["north", None], "age": [30, None]})
    schema = cb.infer_schema(df, ["region", "age"])
    schema["features"].append("vehicle_value")
    schema["roles"]["vehicle_value"] = "numeric"
    out = cb.coerce_like_schema(df, schema)
    assert out.columns == ["region", "age", "vehicle_value"]
    assert out["region"].to_list() == ["north", SENTINEL_CAT]
    assert out["age"].dtype == pl.Float64
    assert out["vehicle_value"].null_count() == 2

def test_coerce_like_schema_rejects_non_numeric():
    train = pl.DataFrame({"age": [30, 40]})
    schema = cb.infer_schema(train, ["age"])
    with pytest.raises(SchemaError):
        cb.coerce_like_schema(pl.DataFrame({"age": ["old", "young"]}), schema)

def test_schema_json_roundtrip(claims_df):
    schema = cb.infer_schema(claims_df, ["driver_age", "region"])
    with tempfile.TemporaryDirectory() as temp_dir:
        path = os.path.join(temp_dir, "schema.json")
        cb.save_schema(schema, path)
        assert cb.load_schema(path) == schema
