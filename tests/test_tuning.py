import numpy as np
import optuna
import pytest

import claimbench as cb
from claimbench.errors import ParamSetError, ResamplingError

def test_param_set_grid():
    ps = cb.ParamSet(
        cb.IntParam("max_depth", 2, 6),
        cb.NumericParam("learning_rate", 0.01, 1.0, log=True),
        cb.DiscreteParam("loss", ("squared_error", "huber")),
    )
    grid = ps.grid(3)
    assert grid["max_depth"] == [2, 4, 6]
    assert grid["learning_rate"] == pytest.approx([0.01, 0.1, 1.0])
    assert grid["loss"] == ["squared_error", "huber"]
    assert ps.grid_size(3) == 18
    assert ps.names == ["max_depth", "learning_rate", "loss"]

def test_int_grid_deduplicates():
    assert cb.IntParam("k", 1, 2).grid(5) == [1, 2]

@pytest.mark.parametrize("factory", [
    lambda: cb.ParamSet(),
    lambda: cb.IntParam("a", 5, 1),
    lambda: cb.NumericParam("a", 0.0, 1.0, log=True),
    lambda: cb.DiscreteParam("a", ()),
    lambda: cb.ParamSet(cb.IntParam("a", 1, 2), cb.IntParam("a", 1, 3)),
    lambda: cb.TuneControl(method="annealing"),
])
def test_invalid_param_definitions(factory):
    with pytest.raises(ParamSetError):
        factory()

def test_grid_search_evaluates_full_grid(claims_task):
    ps = cb.ParamSet(cb.IntParam("max_depth", 2, 6), cb.IntParam("min_samples_leaf", 1, 10))
    res = cb.tune_params(
        cb.make_learner("tree"), claims_task, cb.ResampleDesc("cv", iters=3), ps,
        control=cb.TuneControl("grid", resolution=2), measure="rmse",
    )
    assert res.n_evals == 4
    assert set(res.x) == {"max_depth", "min_samples_leaf"}
    assert res.y == pytest.approx(res.opt_path["rmse"].min())
    assert res.measure == "rmse"

def test_random_search_with_maximized_measure(claims_task):
    ps = cb.ParamSet(cb.IntParam("max_depth", 1, 8))
    res = cb.tune_params(
        cb.make_learner("tree"), claims_task, cb.ResampleDesc("cv", iters=3), ps,
        control=cb.make_tune_control("random", maxit=4, seed=1), measure="rsq",
    )
    assert res.n_evals == 4
    assert res.y == pytest.approx(res.opt_path["rsq"].max())

def test_default_param_set_used(claims_task):
    res = cb.tune_params(
        cb.make_learner("gbm", n_estimators=20), claims_task, cb.ResampleDesc("cv", iters=2),
        par_set=cb.default_param_set("gbm").subset(["max_depth", "learning_rate"]),
        control=cb.TuneControl("tpe", maxit=3),
    )
    assert set(res.x) == {"max_depth", "learning_rate"}

def test_linear_has_nothing_to_tune(claims_task):
    with pytest.raises(ParamSetError):
        cb.tune_params(cb.make_learner("linear"), claims_task, cb.ResampleDesc("cv", iters=2))

def test_tune_wrapper_trains_with_best_params(claims_task):
    ps = cb.ParamSet(cb.IntParam("max_depth", 2, 5))
    wrapper = cb.make_tune_wrapper(
        cb.make_learner("tree"), cb.ResampleDesc("cv", iters=2), ps,
        control=cb.TuneControl("grid", resolution=2),
    )
    assert wrapper.id == "tree.tuned"
    model = wrapper.train(claims_task, np.arange(150))
    assert model.learner_id == "tree.tuned"
    assert model.params["max_depth"] == model.tune_result.x["max_depth"]
    assert model.predict(claims_task, np.arange(150, 240)).shape == (90,)

def test_tune_wrapper_needs_description(claims_task):
    inst = cb.ResampleDesc("cv", iters=2).instantiate(10)
    with pytest.raises(ResamplingError):
        cb.make_tune_wrapper(cb.make_learner("tree"), inst)

def test_optuna_verbosity_restored_after_tuning(claims_task):
    previous = optuna.logging.get_verbosity()
    optuna.logging.set_verbosity(optuna.logging.INFO)
    try:
        cb.tune_params(
            cb.make_learner("tree"), claims_task, cb.ResampleDesc("cv", iters=2),
            cb.ParamSet(cb.IntParam("max_depth", 2, 3)), cb.TuneControl("random", maxit=1),
        )
        assert optuna.logging.get_verbosity() == optuna.logging.INFO
    finally:
        optuna.logging.set_verbosity(previous)
