import os

import claimbench as cb
from claimbench.plots import plot_benchmark, plot_holdout, plot_tuning_effect

def test_plot_benchmark(tmp_path, claims_task, small_learners):
    bmr = cb.benchmark(small_learners, claims_task, cb.ResampleDesc("cv", iters=2), ["rmse", "rsq"])
    paths = plot_benchmark(bmr, str(tmp_path))
    assert [os.path.basename(p) for p in paths] == ["benchmark_rmse.png", "benchmark_rsq.png"]
    assert all(os.path.exists(p) for p in paths)

def test_plot_tuning_effect(tmp_path, claims_task):
    ps = cb.ParamSet(cb.IntParam("max_depth", 2, 4), cb.DiscreteParam("criterion", ("squared_error", "friedman_mse")))
    res = cb.tune_params(
        cb.make_learner("tree"), claims_task, cb.ResampleDesc("cv", iters=2), ps,
        control=cb.TuneControl("grid", resolution=2),
    )
    paths = plot_tuning_effect(res, str(tmp_path))
    assert len(paths) == 2
    assert all(os.path.exists(p) for p in paths)

def test_plot_holdout(tmp_path, claims_task, small_learners):
    res = cb.evaluate_holdout(small_learners, claims_task)
    paths = plot_holdout(res, str(tmp_path), learner_ids=["linear"])
    assert paths == [os.path.join(str(tmp_path), "holdout_linear.png")]
    assert os.path.exists(paths[0])
