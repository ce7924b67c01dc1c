"""
Data sets shared by the tests.

R's ``cars`` data set: speed of cars (mph) and the distances taken to stop (ft), recorded in the 1920s.
"""

import numpy as np
import pandas as pd

SPEED = [4, 4, 7, 7, 8, 9, 10, 10, 10, 11, 11, 12, 12, 12, 12, 13, 13, 13, 13, 14, 14, 14, 14, 15, 15,
         15, 16, 16, 17, 17, 17, 18, 18, 18, 18, 19, 19, 19, 20, 20, 20, 20, 20, 22, 23, 24, 24, 24, 24, 25]

DIST = [2, 10, 4, 22, 16, 10, 18, 26, 34, 17, 28, 14, 20, 24, 28, 26, 34, 34, 46, 26, 36, 60, 80, 20, 26,
        54, 32, 40, 32, 40, 50, 42, 56, 76, 84, 36, 46, 68, 32, 48, 52, 56, 64, 66, 54, 70, 92, 93, 120, 85]


def load_cars() -> pd.DataFrame:
    return pd.DataFrame({"speed": SPEED, "dist": DIST}, dtype=float)


def make_heteroskedastic_data(n=1000, seed=42) -> pd.DataFrame:
    """Linear data whose error standard deviation grows with |x|: err ~ N(0, 5 + |x|)."""
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, 100.0, n)
    err = rng.normal(0.0, 5.0 + np.abs(x))
    return pd.DataFrame({"x": x, "y": 3.0 + 2.0 * x + err})
