from __future__ import annotations
import os, logging
from typing import List, Optional
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .benchmark import BenchmarkResult
from .holdout import HoldoutResult
from .tuning import TuneResult

logger = logging.getLogger(__name__)

def _save(fig, path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.debug("Saved plot %s", path)
    return path

def plot_benchmark(bmr: BenchmarkResult, output_dir: str, prefix: str = "benchmark") -> List[str]:
    """One boxplot per measure, learners side by side."""
    perf = bmr.performances()
    ids = bmr.learner_ids
    paths = []
    for m in bmr.measures:
        data = [perf.filter(perf["learner_id"] == lid)[m.name].drop_nans().to_numpy() for lid in ids]
        fig, ax = plt.subplots(figsize=(max(6, 1.5 * len(ids)), 5))
        ax.boxplot(data)
        ax.set_xticks(range(1, len(ids) + 1))
        ax.set_xticklabels(ids, rotation=30, ha="right")
        ax.set_ylabel(m.name)
        ax.set_title(f"{bmr.task_id}: {m.description or m.name} by learner")
        paths.append(_save(fig, os.path.join(output_dir, f"{prefix}_{m.name}.png")))
    return paths

def plot_tuning_effect(res: TuneResult, output_dir: str) -> List[str]:
    """Measure against each tuned parameter, best configuration highlighted."""
    path = res.opt_path.filter(res.opt_path["state"] == "COMPLETE")
    params = [c for c in path.columns if c not in {"trial", res.measure, "state", "runtime"}]
    paths = []
    y = path[res.measure].to_numpy()
    for p in params:
        x = path[p].to_list()
        fig, ax = plt.subplots(figsize=(7, 5))
        if all(isinstance(v, (int, float)) for v in x):
            ax.scatter(x, y, alpha=0.7)
            ax.scatter([res.x[p]], [res.y], color="red", marker="*", s=200, label="best")
        else:
            # discrete values on an index axis
            labels = sorted({str(v) for v in x})
            pos = [labels.index(str(v)) for v in x]
            ax.scatter(pos, y, alpha=0.7)
            ax.scatter([labels.index(str(res.x[p]))], [res.y], color="red", marker="*", s=200, label="best")
            ax.set_xticks(range(len(labels)))
            ax.set_xticklabels(labels)
        ax.set_xlabel(p)
        ax.set_ylabel(res.measure)
        ax.set_title(f"Tuning effect: {res.learner_id} / {p}")
        ax.legend()
        paths.append(_save(fig, os.path.join(output_dir, f"tuning_{res.learner_id}_{p}.png")))
    return paths

def plot_holdout(res: HoldoutResult, output_dir: str, learner_ids: Optional[List[str]] = None) -> List[str]:
    """Predicted vs. actual on the holdout year, one figure per learner."""
    paths = []
    for lid in learner_ids or list(res.models):
        pred = res.predictions.filter(res.predictions["learner_id"] == lid)
        truth = pred["truth"].to_numpy()
        response = pred["response"].to_numpy()
        lo = float(np.nanmin([truth.min(), response.min()]))
        hi = float(np.nanmax([truth.max(), response.max()]))
        fig, ax = plt.subplots(figsize=(6, 6))
        ax.scatter(truth, response, alpha=0.5, s=12)
        ax.plot([lo, hi], [lo, hi], color="grey", linestyle="--", linewidth=1)
        ax.set_xlabel("actual")
        ax.set_ylabel("predicted")
        ax.set_title(f"Holdout {res.holdout_year}: {lid}")
        paths.append(_save(fig, os.path.join(output_dir, f"holdout_{lid}.png")))
    return paths
