import os, logging
import pandas as pd
import shap
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import polars as pl
import numpy as np
from typing import Dict, List, Optional, Union
from sklearn.pipeline import Pipeline

from .learners import TrainedModel

logger = logging.getLogger(__name__)

def _explain_frame(model: TrainedModel, df: pl.DataFrame, sample_rows: Optional[int]) -> pd.DataFrame:
    X = model.feature_frame(df, None)
    # Sample rows if specified
    if sample_rows is not None and sample_rows < X.height:
        X = X.sample(n=sample_rows, seed=42)
    X_pd = X.to_pandas()
    if isinstance(model.estimator, Pipeline):
        prep = model.estimator.named_steps["prep"]
        return pd.DataFrame(prep.transform(X_pd), columns=list(prep.get_feature_names_out()))
    # CatBoost: keep categoricals as pandas categories
    for name in (X.columns[i] for i in model.schema["cat_features_idx"]):
        X_pd[name] = X_pd[name].astype("category")
    return X_pd

def _explainer(model: TrainedModel, X: pd.DataFrame):
    final = model.final_estimator()
    if model.learner_id.split(".")[0] == "linear":
        return shap.LinearExplainer(final, X)
    return shap.TreeExplainer(final)

def _top_interactions(explainer, X: pd.DataFrame, output_path: str, top_n: int) -> str:
    interactions_dir = os.path.join(output_path, "interactions")
    os.makedirs(interactions_dir, exist_ok=True)
    feature_names = list(X.columns)
    shap_interaction_values = explainer.shap_interaction_values(X)
    n_features = shap_interaction_values.shape[1]
    interaction_scores = []
    for i in range(n_features):
        for j in range(i + 1, n_features):
            score = np.abs(shap_interaction_values[:, i, j]).mean()
            interaction_scores.append({
                "feature_1": feature_names[i],
                "feature_2": feature_names[j],
                "mean_abs_interaction": float(score),
            })
    top = sorted(interaction_scores, key=lambda x: x["mean_abs_interaction"], reverse=True)[:top_n]
    path = os.path.join(interactions_dir, "top_interactions.csv")
    pd.DataFrame(top, columns=["feature_1", "feature_2", "mean_abs_interaction"]).to_csv(path, index=False)
    return path

def explain_model_with_shap(
    model: Union[str, TrainedModel],
    df: pl.DataFrame,
    output_path: str,
    sample_rows: Optional[int] = None,
    top_n: int = 5,
    interactions: bool = False,
) -> Dict[str, List[str]]:
    """
    Generate SHAP explanations for a trained model.

    Writes a beeswarm summary, a bar summary, dependence plots for the top_n
    features and a feature importance CSV (mean |SHAP| per feature). With
    interactions=True (tree learners only) also writes the top_n feature pairs
    by mean absolute SHAP interaction value.

    `model` is a TrainedModel or a directory written by save_model.
    """
    if isinstance(model, str):
        from .persistence import load_model
        model = load_model(model)
    if isinstance(df, pd.DataFrame):
        df = pl.from_pandas(df)

    X = _explain_frame(model, df, sample_rows)
    explainer = _explainer(model, X)
    shap_values = np.asarray(explainer.shap_values(X))

    os.makedirs(output_path, exist_ok=True)
    written: Dict[str, List[str]] = {"plots": [], "tables": []}

    plt.figure(figsize=(10, 6))
    shap.summary_plot(shap_values, X, show=False)
    plt.tight_layout()
    path = os.path.join(output_path, "shap_summary.png")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    written["plots"].append(path)

    plt.figure(figsize=(10, 6))
    shap.summary_plot(shap_values, X, plot_type="bar", show=False)
    plt.tight_layout()
    path = os.path.join(output_path, "shap_summary_bar.png")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    written["plots"].append(path)

    feature_importance = np.abs(shap_values).mean(0)
    importance = (
        pd.DataFrame({"feature": list(X.columns), "mean_abs_shap": feature_importance})
        .sort_values("mean_abs_shap", ascending=False)
    )
    path = os.path.join(output_path, "feature_importance.csv")
    importance.to_csv(path, index=False)
    written["tables"].append(path)

    top_features_idx = feature_importance.argsort()[::-1][:top_n]
    for idx in top_features_idx:
        feature_name = str(X.columns[idx]).replace("/", "_")
        plt.figure(figsize=(10, 6))
        shap.dependence_plot(int(idx), shap_values, X, show=False)
        plt.tight_layout()
        path = os.path.join(output_path, f"shap_dependence_{feature_name}.png")
        plt.savefig(path, dpi=150, bbox_inches="tight")
        plt.close()
        written["plots"].append(path)

    if interactions:
        written["tables"].append(_top_interactions(explainer, X, output_path, top_n))

    logger.info("SHAP analysis for %s saved to %s", model.learner_id, output_path)
    return written
