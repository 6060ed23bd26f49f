"""Texel tuning of a tapered linear chess evaluation."""

from texel_tuner.data import NUM_PARAMS, DataPoint, FormatError, Offset, parse_record
from texel_tuner.evaluator import evaluate, squared_error
from texel_tuner.params import ParameterVector
from texel_tuner.score import TaperedScore
from texel_tuner.tuner import CalibrationError, Tuner

__all__ = [
    "NUM_PARAMS",
    "CalibrationError",
    "DataPoint",
    "FormatError",
    "Offset",
    "ParameterVector",
    "TaperedScore",
    "Tuner",
    "evaluate",
    "parse_record",
    "squared_error",
]
