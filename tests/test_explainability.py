import os
import tempfile

import claimbench as cb

def test_explain_model_with_shap(claims_task, claims_df):
    model = cb.make_learner("forest", n_estimators=20).train(claims_task)
    with tempfile.TemporaryDirectory() as temp_dir:
        shap_dir = os.path.join(temp_dir, "shap")
        written = cb.explain_model_with_shap(model, claims_df, shap_dir, sample_rows=30, top_n=2)
        assert os.path.exists(os.path.join(shap_dir, "shap_summary.png"))
        assert os.path.exists(os.path.join(shap_dir, "feature_importance.csv"))
        assert len(written["plots"]) == 4

def test_explain_linear_model_from_directory(claims_task, claims_df):
    model = cb.make_learner("linear").train(claims_task)
    with tempfile.TemporaryDirectory() as temp_dir:
        model_dir = os.path.join(temp_dir, "model")
        shap_dir = os.path.join(temp_dir, "shap")
        cb.save_model(model, model_dir)
        cb.explain_model_with_shap(model_dir, claims_df, shap_dir, sample_rows=30, top_n=1)
        shap_files = os.listdir(shap_dir)
        assert len(shap_files) > 0

def test_explain_interactions(claims_task, claims_df):
    model = cb.make_learner("tree", max_depth=3).train(claims_task)
    with tempfile.TemporaryDirectory() as temp_dir:
        written = cb.explain_model_with_shap(model, claims_df, temp_dir, sample_rows=20, top_n=3, interactions=True)
        assert os.path.join(temp_dir, "interactions", "top_interactions.csv") in written["tables"]
