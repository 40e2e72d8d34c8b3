"""
Python implementation of tradeSeq predictSmooth: predicted mean smoothers of lineage GAMs
on a uniform pseudotime grid.

Functions:
- predict_smooth: predicts smoothers from a shared fit (coefficient table + design + lpmatrix)
- predict_smooth_models: predicts smoothers from a mapping of per-gene fitted models
- get_predict_range_df: builds the prediction grid of one lineage
- predict_gam: evaluates a linear predictor matrix at new covariate rows
"""

from ._schema import *
from ._grid import *
from ._basis import *
from ._models import *
from ._output import *
from ._base import *
