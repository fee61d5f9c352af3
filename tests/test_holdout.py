import numpy as np
import polars as pl
import pytest

import claimbench as cb
from claimbench.errors import BenchmarkError, TaskError

def test_holdout_split_defaults_to_latest_year(claims_task):
    train, test = cb.holdout_split(claims_task)
    years = claims_task.years()
    assert set(years[test].tolist()) == {2013}
    assert set(years[train].tolist()) == {2010, 2011, 2012}

def test_holdout_split_explicit_year_drops_later_years(claims_task):
    train, test = cb.holdout_split(claims_task, 2012)
    years = claims_task.years()
    assert set(years[test].tolist()) == {2012}
    assert set(years[train].tolist()) == {2010, 2011}

def test_holdout_split_errors(claims_task, claims_df):
    with pytest.raises(TaskError):
        cb.holdout_split(claims_task, 2020)
    with pytest.raises(TaskError):
        cb.holdout_split(claims_task, 2010)
    with pytest.raises(TaskError):
        cb.holdout_split(cb.make_task(claims_df, target_col="claim_amount"))

def test_evaluate_holdout(claims_task, small_learners):
    res = cb.evaluate_holdout(small_learners, claims_task, measures=["rmse", "mae"])
    assert res.holdout_year == 2013
    assert res.n_train == 180
    assert res.n_test == 60
    assert set(res.models) == {"linear", "tree", "forest"}
    perf = res.performances()
    assert perf.height == 3
    assert {"rmse", "mae", "holdout_year"} <= set(perf.columns)
    assert res.predictions.height == 180
    assert res.best_learner() == "linear"
    assert all(np.isfinite(s["rmse"]) for s in res.scores.values())

def test_holdout_year_cast_to_year_column(claims_df, claims_task):
    task = cb.make_task(
        claims_df.with_columns(pl.col("policy_year").cast(pl.Utf8)),
        target_col="claim_amount", year_col="policy_year",
    )
    train, test = cb.holdout_split(task, 2012)
    assert set(task.years(test).tolist()) == {"2012"}
    assert set(task.years(train).tolist()) == {"2010", "2011"}
    res = cb.evaluate_holdout([cb.make_learner("linear")], task, 2012)
    assert res.holdout_year == "2012"

    train, test = cb.holdout_split(claims_task, "2012")
    assert set(claims_task.years(test).tolist()) == {2012}
    with pytest.raises(TaskError, match="does not match"):
        cb.holdout_split(claims_task, "last")

def test_best_learner_all_nan(claims_df):
    # a single holdout row leaves R^2 undefined for every learner
    extra = claims_df.head(1).with_columns(pl.col("policy_year") + 4)
    task = cb.make_task(pl.concat([claims_df, extra]), target_col="claim_amount", year_col="policy_year")
    res = cb.evaluate_holdout([cb.make_learner("linear")], task, measures=["rsq"])
    assert res.n_test == 1
    with pytest.raises(BenchmarkError):
        res.best_learner()
