from . import predict
from .predict import *
from ._config import *
from .reader import load_shared_fit, save_shared_fit
