import numpy as np
import pytest

import claimbench as cb
from claimbench.errors import ResamplingError

def test_cv_instance_partitions_rows():
    inst = cb.ResampleDesc("cv", iters=4).instantiate(20, seed=1)
    assert len(inst) == 4
    tests = np.concatenate([te for _, te in inst.splits])
    assert sorted(tests.tolist()) == list(range(20))
    for tr, te in inst.splits:
        assert not set(tr) & set(te)

def test_other_methods():
    assert len(cb.ResampleDesc("repcv", iters=3, reps=2).instantiate(30)) == 6
    holdout = cb.ResampleDesc("holdout", split=0.75).instantiate(40)
    assert len(holdout) == 1
    assert len(holdout.splits[0][0]) == 30
    assert len(cb.make_resample_desc("subsample", iters=3).instantiate(30)) == 3

def test_instantiate_is_reproducible():
    a = cb.ResampleDesc("cv", iters=3).instantiate(15, seed=7)
    b = cb.ResampleDesc("cv", iters=3).instantiate(15, seed=7)
    for (tr_a, te_a), (tr_b, te_b) in zip(a.splits, b.splits):
        assert te_a.tolist() == te_b.tolist()

@pytest.mark.parametrize("kwargs", [
    {"method": "bootstrap"},
    {"method": "cv", "iters": 1},
    {"method": "repcv", "reps": 0},
    {"method": "holdout", "split": 1.5},
])
def test_invalid_desc(kwargs):
    with pytest.raises(ResamplingError):
        cb.ResampleDesc(**kwargs)

def test_too_few_rows_for_folds():
    with pytest.raises(ResamplingError):
        cb.ResampleDesc("cv", iters=5).instantiate(3)

def test_map_rows():
    inst = cb.ResampleDesc("cv", iters=2).instantiate(4)
    rows = np.array([10, 11, 12, 13])
    mapped = inst.map_rows(rows)
    assert set(np.concatenate([te for _, te in mapped]).tolist()) == {10, 11, 12, 13}
    with pytest.raises(ResamplingError):
        inst.map_rows([1, 2])

def test_resample(claims_task):
    res = cb.resample(cb.make_learner("linear"), claims_task, cb.ResampleDesc("cv", iters=3), ["rmse", "rsq"])
    assert res.measures_test.height == 3
    assert set(res.aggr) == {"rmse", "rsq"}
    assert res.aggr["rsq"] > 0.5
    pred = res.pred
    assert pred.height == claims_task.n_obs
    assert sorted(pred["row_id"].to_list()) == list(range(claims_task.n_obs))

def test_resample_on_row_subset(claims_task):
    rows = np.arange(100, 160)
    res = cb.resample(cb.make_learner("tree"), claims_task, cb.ResampleDesc("cv", iters=3), rows=rows)
    assert set(res.pred["row_id"].to_list()) == set(rows.tolist())

def test_instance_size_must_match_task(claims_task):
    inst = cb.ResampleDesc("cv", iters=2).instantiate(50)
    with pytest.raises(ResamplingError, match="50 rows"):
        cb.resample(cb.make_learner("linear"), claims_task, inst)
    with pytest.raises(ResamplingError):
        cb.benchmark([cb.make_learner("linear")], claims_task, inst, rows=np.arange(60))
    res = cb.resample(cb.make_learner("linear"), claims_task, inst, rows=np.arange(50))
    assert res.pred.height == 50
