"""Embedding fixtures with known cosine similarities."""
import math
from typing import List

BASE_VECTOR = [1.0, 0.0]


def unit_vector(cosine: float) -> List[float]:
    """2-d unit vector whose cosine with BASE_VECTOR is the given value."""
    return [cosine, math.sqrt(max(0.0, 1 - cosine * cosine))]
