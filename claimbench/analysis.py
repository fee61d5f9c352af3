from __future__ import annotations
import os, json, logging, time
from typing import Dict, List

from .benchmark import BenchmarkResult, benchmark
from .config import AnalysisConfig, save_config
from .explainability import explain_model_with_shap
from .holdout import evaluate_holdout, holdout_split, latest_year
from .learners import Learner, make_learners
from .measures import get_measure, get_measures
from .persistence import save_model
from .plots import plot_benchmark, plot_holdout, plot_tuning_effect
from .resampling import ResampleDesc
from .task import load_dataset, make_task
from .tuning import TuneControl, TuneResult, make_tune_wrapper, tune_params

logger = logging.getLogger(__name__)

def _write_benchmark(bmr: BenchmarkResult, output_dir: str, name: str) -> List[str]:
    perf_path = os.path.join(output_dir, f"{name}.csv")
    aggr_path = os.path.join(output_dir, f"{name}_aggregated.csv")
    bmr.performances().write_csv(perf_path)
    bmr.aggregated().write_csv(aggr_path)
    return [perf_path, aggr_path]

def run_analysis(config: AnalysisConfig) -> Dict:
    """Run the full claims analysis once, top to bottom.
    - load data and build the task
    - split off the holdout year (when a year column is set)
    - benchmark untuned learners with cross-validation on the earlier years
    - tune every tunable learner with inner cross-validation
    - benchmark the tuned learners (nested cross-validation)
    - evaluate the tuned learners on the holdout year
    Writes tables, plots, the best model and report.json to config.output_dir.
    """
    config.validate()
    start = time.perf_counter()
    out = config.output_dir
    plots_dir = os.path.join(out, "plots")
    os.makedirs(plots_dir, exist_ok=True)
    save_config(config, os.path.join(out, "config.json"))
    files: Dict[str, List[str]] = {"tables": [], "plots": [], "model": []}

    df = load_dataset(config.data_path)
    task = make_task(
        df,
        target_col=config.target_col,
        year_col=config.year_col,
        weight_col=config.weight_col,
        drop_cols=config.drop_cols,
        cat_cols=config.cat_cols,
    )
    logger.info("Task: %s", task.summary())

    train_rows = None
    holdout_year = config.holdout_year
    if config.year_col:
        if holdout_year is None:
            holdout_year = latest_year(task)
        train_rows, _ = holdout_split(task, holdout_year)
    else:
        logger.info("No year column: skipping holdout evaluation")

    measures = get_measures(config.measures)
    tune_measure = get_measure(config.tune_measure)
    if tune_measure.name not in {m.name for m in measures}:
        measures = [tune_measure] + measures
    outer = ResampleDesc(config.resampling, iters=config.folds, reps=config.reps)
    inner = ResampleDesc("cv", iters=config.inner_folds)
    control = TuneControl(
        method=config.tune_method,
        resolution=config.tune_resolution,
        maxit=config.tune_maxit,
        seed=config.seed,
    )
    learners = make_learners(config.learners, random_state=config.seed)

    # untuned benchmark
    bmr = benchmark(learners, task, outer, measures, rows=train_rows, n_jobs=config.n_jobs, seed=config.seed)
    files["tables"] += _write_benchmark(bmr, out, "benchmark")
    files["plots"] += plot_benchmark(bmr, plots_dir, prefix="benchmark")

    # tuning
    if config.tune_learners is not None:
        tune_ids = list(config.tune_learners)
    else:
        tune_ids = [l.id for l in learners if l.default_param_set() is not None]
    tune_results: Dict[str, TuneResult] = {}
    final_learners: List[Learner] = []
    for learner in learners:
        if learner.id in tune_ids:
            res = tune_params(learner, task, inner, control=control, measure=tune_measure, rows=train_rows)
            tune_results[learner.id] = res
            opt_path = os.path.join(out, f"tuning_{learner.id}.csv")
            res.opt_path.write_csv(opt_path)
            files["tables"].append(opt_path)
            files["plots"] += plot_tuning_effect(res, plots_dir)
            final_learners.append(learner.with_params(**res.x))
        else:
            final_learners.append(learner)

    # nested cross-validation of the tuned learners
    tuned_bmr = None
    if tune_ids and config.nested_cv:
        wrapped = [
            make_tune_wrapper(l, inner, control=control, measure=tune_measure) if l.id in tune_ids else l
            for l in learners
        ]
        tuned_bmr = benchmark(wrapped, task, outer, measures, rows=train_rows, n_jobs=config.n_jobs, seed=config.seed)
        files["tables"] += _write_benchmark(tuned_bmr, out, "benchmark_tuned")
        files["plots"] += plot_benchmark(tuned_bmr, plots_dir, prefix="benchmark_tuned")

    # holdout year
    holdout = None
    if config.year_col:
        holdout = evaluate_holdout(final_learners, task, holdout_year, measures)
        path = os.path.join(out, "holdout.csv")
        holdout.performances().write_csv(path)
        files["tables"].append(path)
        path = os.path.join(out, "holdout_predictions.csv")
        holdout.predictions.write_csv(path)
        files["tables"].append(path)
        files["plots"] += plot_holdout(holdout, plots_dir)
        best_id = holdout.best_learner(tune_measure)
        best_model = holdout.models[best_id]
    else:
        best_id = (tuned_bmr or bmr).best_learner(tune_measure).split(".")[0]
        best_learner = next(l for l in final_learners if l.id == best_id)
        best_model = best_learner.train(task)
    if best_id in tune_results:
        best_model.tune_result = tune_results[best_id]
    model_dir = os.path.join(out, "best_model")
    files["model"] += list(save_model(best_model, model_dir).values())

    if config.explain:
        explain_rows = None
        if holdout is not None:
            _, explain_rows = holdout_split(task, holdout_year)
        shap_out = explain_model_with_shap(
            best_model, task.frame(explain_rows), os.path.join(out, "shap"), sample_rows=500,
        )
        files["plots"] += shap_out["plots"]
        files["tables"] += shap_out["tables"]

    report = {
        "task": task.summary(),
        "config": config.to_dict(),
        "benchmark": bmr.aggregated().to_dicts(),
        "benchmark_tuned": None if tuned_bmr is None else tuned_bmr.aggregated().to_dicts(),
        "tuning": {lid: r.to_dict() for lid, r in tune_results.items()},
        "holdout": None if holdout is None else {
            "year": holdout.holdout_year,
            "n_train": holdout.n_train,
            "n_test": holdout.n_test,
            "scores": holdout.scores,
        },
        "best_learner": best_id,
        "best_measure": tune_measure.name,
        "runtime": time.perf_counter() - start,
        "files": files,
    }
    report_path = os.path.join(out, "report.json")
    with open(report_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    logger.info("Analysis finished in %.1fs, best learner: %s", report["runtime"], best_id)
    return report
