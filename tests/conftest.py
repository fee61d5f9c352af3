import os
import matplotlib
matplotlib.use("Agg")
import numpy as np
import polars as pl
import pytest

import claimbench as cb

YEARS = [2010, 2011, 2012, 2013]

def create_claims_dataframe(n_per_year: int = 60, seed: int = 0) -> pl.DataFrame:
    rng = np.random.RandomState(seed)
    n = n_per_year * len(YEARS)
    region = rng.choice(["north", "south", "east", "west"], n)
    vehicle_type = rng.choice(["sedan", "suv", "van"], n)
    driver_age = rng.randint(18, 80, n)
    vehicle_value = rng.gamma(2.0, 10.0, n)
    region_effect = {"north": 0.0, "south": 50.0, "east": -30.0, "west": 20.0}
    claim_amount = (
        500.0
        + 4.0 * (60 - driver_age)
        + 15.0 * vehicle_value
        + np.array([region_effect[r] for r in region])
        + rng.normal(0.0, 40.0, n)
    )
    return pl.DataFrame({
        "policy_year": np.repeat(YEARS, n_per_year),
        "driver_age": driver_age,
        "vehicle_value": vehicle_value,
        "region": region,
        "vehicle_type": vehicle_type,
        "exposure": rng.uniform(0.2, 1.0, n),
        "claim_amount": claim_amount,
    })

@pytest.fixture
def claims_df() -> pl.DataFrame:
    return create_claims_dataframe()

@pytest.fixture
def claims_task(claims_df) -> cb.RegressionTask:
    return cb.make_task(claims_df, target_col="claim_amount", year_col="policy_year", weight_col="exposure")

@pytest.fixture
def claims_csv(tmp_path, claims_df) -> str:
    path = os.path.join(str(tmp_path), "claims.csv")
    claims_df.write_csv(path)
    return path

@pytest.fixture
def small_learners():
    return [
        cb.make_learner("linear"),
        cb.make_learner("tree", max_depth=4),
        cb.make_learner("forest", n_estimators=20),
    ]
