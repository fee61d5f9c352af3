import numpy as np
import pytest

import claimbench as cb
from claimbench.errors import MeasureError
from claimbench.measures import get_measures

def test_measures_on_known_values():
    y = np.array([1.0, 2.0, 3.0, 4.0])
    p = np.array([1.0, 2.0, 3.0, 6.0])
    assert cb.mse(y, p) == pytest.approx(1.0)
    assert cb.rmse(y, p) == pytest.approx(1.0)
    assert cb.mae(y, p) == pytest.approx(0.5)
    assert cb.rsq(y, y) == pytest.approx(1.0)

def test_directions():
    assert cb.rmse.better(1.0, 2.0)
    assert cb.rsq.better(0.9, 0.5)

def test_rsq_single_observation_is_nan():
    assert np.isnan(cb.rsq([1.0], [2.0]))

def test_get_measure():
    assert cb.get_measure("mae") is cb.mae
    assert cb.get_measure(cb.mae) is cb.mae
    with pytest.raises(MeasureError):
        cb.get_measure("auc")
    with pytest.raises(MeasureError):
        get_measures([])
    assert get_measures(None) == [cb.mse]
