from __future__ import annotations
import json
import typer
from typing import List, Optional

from .analysis import run_analysis
from .benchmark import benchmark as _benchmark
from .config import AnalysisConfig, load_config
from .errors import ClaimbenchError, DataError
from .explainability import explain_model_with_shap
from .holdout import evaluate_holdout
from .learners import make_learner, make_learners
from .logging_config import configure_logging
from .persistence import predict_with_model, save_model
from .resampling import ResampleDesc
from .task import load_dataset, make_task
from .tuning import TuneControl, tune_params

app = typer.Typer(add_completion=False, help="Benchmark and tune regression models on insurance claims data.")

def _split(value: Optional[str]) -> Optional[List[str]]:
    return None if value is None else [c.strip() for c in value.split(",") if c.strip()]

def _load(data_path: str):
    try:
        return load_dataset(data_path)
    except DataError as e:
        raise typer.BadParameter(str(e), param_hint="DATA_PATH")

def _fail(e: ClaimbenchError):
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(code=1)

@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, help="DEBUG, INFO, WARNING or ERROR (default: $CLAIMBENCH_LOG_LEVEL or INFO)"),
):
    configure_logging(log_level)

@app.command()
def benchmark(
    data_path: str = typer.Argument(..., help="Path to parquet/csv file."),
    target_col: str = typer.Option(...),
    learners: str = typer.Option("linear,tree,forest,gbm", help="Comma-separated learner ids"),
    year_col: Optional[str] = typer.Option(None, help="Excluded from the features"),
    weight_col: Optional[str] = typer.Option(None),
    drop_cols: Optional[str] = typer.Option(None, help="Comma-separated columns to ignore"),
    cat_cols: Optional[str] = typer.Option(None, help="Comma-separated categorical columns"),
    resampling: str = typer.Option("cv", help="cv, repcv, holdout or subsample"),
    folds: int = typer.Option(5),
    reps: int = typer.Option(1),
    measures: str = typer.Option("rmse,mse,mae,rsq"),
    n_jobs: int = typer.Option(1),
    random_state: int = typer.Option(42),
    output_path: Optional[str] = typer.Option(None, help="Write per-iteration results as csv"),
):
    """Cross-validated benchmark of several learners on the same splits."""
    df = _load(data_path)
    try:
        task = make_task(
            df, target_col, year_col=year_col, weight_col=weight_col,
            drop_cols=_split(drop_cols), cat_cols=_split(cat_cols),
        )
        desc = ResampleDesc(resampling, iters=folds, reps=reps)
        bmr = _benchmark(
            make_learners(_split(learners), random_state=random_state),
            task, desc, _split(measures), n_jobs=n_jobs, seed=random_state,
        )
        best = bmr.best_learner()
    except ClaimbenchError as e:
        _fail(e)
    if output_path:
        bmr.performances().write_csv(output_path)
    typer.echo(json.dumps({"aggregated": bmr.aggregated().to_dicts(), "best": best}, indent=2))

@app.command()
def tune(
    data_path: str = typer.Argument(..., help="Path to parquet/csv file."),
    target_col: str = typer.Option(...),
    learner: str = typer.Option("gbm"),
    year_col: Optional[str] = typer.Option(None),
    weight_col: Optional[str] = typer.Option(None),
    drop_cols: Optional[str] = typer.Option(None),
    cat_cols: Optional[str] = typer.Option(None),
    method: str = typer.Option("random", help="grid, random or tpe"),
    maxit: int = typer.Option(20),
    resolution: int = typer.Option(5),
    inner_folds: int = typer.Option(3),
    measure: str = typer.Option("rmse"),
    random_state: int = typer.Option(42),
    model_dir: Optional[str] = typer.Option(None, help="Refit with the best parameters and save here"),
    opt_path: Optional[str] = typer.Option(None, help="Write every evaluated configuration as csv"),
):
    """Tune one learner over its default search space."""
    df = _load(data_path)
    try:
        task = make_task(
            df, target_col, year_col=year_col, weight_col=weight_col,
            drop_cols=_split(drop_cols), cat_cols=_split(cat_cols),
        )
        base = make_learner(learner, random_state=random_state)
        res = tune_params(
            base, task, ResampleDesc("cv", iters=inner_folds),
            control=TuneControl(method, resolution=resolution, maxit=maxit, seed=random_state),
            measure=measure,
        )
    except ClaimbenchError as e:
        _fail(e)
    if opt_path:
        res.opt_path.write_csv(opt_path)
    if model_dir:
        model = base.with_params(**res.x).train(task)
        model.tune_result = res
        save_model(model, model_dir)
    typer.echo(json.dumps(res.to_dict(), indent=2, default=str))

@app.command()
def holdout(
    data_path: str = typer.Argument(..., help="Path to parquet/csv file."),
    target_col: str = typer.Option(...),
    year_col: str = typer.Option(...),
    holdout_year: Optional[str] = typer.Option(None, help="Defaults to the latest year"),
    learners: str = typer.Option("linear,tree,forest,gbm"),
    weight_col: Optional[str] = typer.Option(None),
    drop_cols: Optional[str] = typer.Option(None),
    cat_cols: Optional[str] = typer.Option(None),
    measures: str = typer.Option("rmse,mse,mae,rsq"),
    random_state: int = typer.Option(42),
    model_dir: Optional[str] = typer.Option(None, help="Save the best learner's model here"),
):
    """Train on earlier years, evaluate on the holdout year."""
    df = _load(data_path)
    try:
        task = make_task(
            df, target_col, year_col=year_col, weight_col=weight_col,
            drop_cols=_split(drop_cols), cat_cols=_split(cat_cols),
        )
        res = evaluate_holdout(
            make_learners(_split(learners), random_state=random_state),
            task, holdout_year, _split(measures),
        )
        best = res.best_learner()
    except ClaimbenchError as e:
        _fail(e)
    if model_dir:
        save_model(res.models[best], model_dir, extra={"holdout_year": res.holdout_year})
    typer.echo(json.dumps({"holdout_year": res.holdout_year, "scores": res.scores, "best": best}, indent=2, default=str))

@app.command()
def run(
    data_path: Optional[str] = typer.Argument(None, help="Path to parquet/csv file (overrides the config)."),
    config: Optional[str] = typer.Option(None, help="JSON config file"),
    target_col: Optional[str] = typer.Option(None),
    year_col: Optional[str] = typer.Option(None),
    holdout_year: Optional[str] = typer.Option(None),
    learners: Optional[str] = typer.Option(None, help="Comma-separated learner ids"),
    tune_method: Optional[str] = typer.Option(None),
    tune_maxit: Optional[int] = typer.Option(None),
    folds: Optional[int] = typer.Option(None),
    inner_folds: Optional[int] = typer.Option(None),
    n_jobs: Optional[int] = typer.Option(None),
    output_dir: Optional[str] = typer.Option(None),
    explain: Optional[bool] = typer.Option(None, "--explain/--no-explain"),
):
    """Run the whole analysis: benchmark, tune, nested CV, holdout year."""
    try:
        cfg = load_config(config) if config else AnalysisConfig()
        cfg = cfg.merged(
            data_path=data_path,
            target_col=target_col,
            year_col=year_col,
            holdout_year=holdout_year,
            learners=_split(learners),
            tune_method=tune_method,
            tune_maxit=tune_maxit,
            folds=folds,
            inner_folds=inner_folds,
            n_jobs=n_jobs,
            output_dir=output_dir,
            explain=explain,
        )
        report = run_analysis(cfg)
    except ClaimbenchError as e:
        _fail(e)
    typer.echo(json.dumps({
        "best_learner": report["best_learner"],
        "holdout": report["holdout"],
        "output_dir": cfg.output_dir,
    }, indent=2, default=str))

@app.command()
def predict(
    data_path: str = typer.Argument(..., help="Path to parquet/csv with features to score."),
    model_dir: str = typer.Option(...),
    output_path: str = typer.Option("./predictions.csv"),
    prediction_col: str = typer.Option("prediction"),
):
    """Generate predictions using a saved model."""
    df = _load(data_path)
    try:
        out = predict_with_model(df=df, model_path=model_dir, prediction_col=prediction_col)
    except (ClaimbenchError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if output_path.endswith(".parquet"):
        out.write_parquet(output_path)
    elif output_path.endswith(".csv"):
        out.write_csv(output_path)
    else:
        raise typer.BadParameter("Only parquet or csv supported.", param_hint="--output-path")
    typer.echo(f"Predictions saved to {output_path}")

@app.command()
def explain(
    model_dir: str = typer.Argument(...),
    data_path: str = typer.Argument(...),
    output_dir: str = typer.Argument(...),
    sample_rows: Optional[int] = typer.Option(None),
    top_n: int = typer.Option(5),
    interactions: bool = typer.Option(False, help="Also rank feature pairs (tree learners only)"),
):
    """Generate SHAP explanations for a saved model."""
    df = _load(data_path)
    try:
        explain_model_with_shap(
            model=model_dir, df=df, output_path=output_dir,
            sample_rows=sample_rows, top_n=top_n, interactions=interactions,
        )
    except (ClaimbenchError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"SHAP explanations saved to {output_dir}")

def main():
    app()

if __name__ == "__main__":
    main()
