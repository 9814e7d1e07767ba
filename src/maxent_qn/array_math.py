# ---------------------------------------------------------------------
# array_math.py
#
# Small vector helpers shared by the objective, the line search and the
# minimizer.  Every function takes 1-D float arrays and never mutates
# its input.
# ---------------------------------------------------------------------

import numpy as np


def inner_product(vec_a, vec_b) -> float:
    """
    Dot product of two equal-length vectors.

    Returns NaN (not an exception) when either vector is missing or the
    lengths differ.
    """
    if vec_a is None or vec_b is None:
        return float("nan")
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    if a.shape != b.shape:
        return float("nan")
    return float(a.dot(b))


def l1norm(v) -> float:
    return float(np.abs(np.asarray(v, dtype=float)).sum())


def l2norm(v) -> float:
    return float(np.sqrt(inner_product(v, v)))


def inv_l2norm(v) -> float:
    """1 / ||v||_2, ``inf`` at the origin."""
    norm = l2norm(v)
    with np.errstate(divide="ignore"):
        return float(np.float64(1.0) / np.float64(norm))


def argmax(x) -> int:
    """Index of the first maximal element (ties go to the lowest index)."""
    if x is None or len(x) == 0:
        raise ValueError("Vector x is null or empty")
    return int(np.argmax(np.asarray(x, dtype=float)))


def max_value(x) -> float:
    arr = np.asarray(x, dtype=float)
    return float(arr[argmax(arr)])


def log_sum_of_exps(x, axis=None):
    """
    Numerically stable  log(sum_i exp(x_i)).

    Uses  max + log(sum_i exp(x_i - max))  and skips ``-inf`` entries, so
    an all ``-inf`` input yields ``-inf``.  With ``axis`` given, the
    reduction runs along that axis of a 2-D array (one normalizer per
    row for ``axis=1``).
    """
    arr = np.asarray(x, dtype=float)
    if axis is None:
        arr = arr.ravel()
        if arr.size == 0:
            raise ValueError("Vector x is null or empty")
    top = np.max(arr, axis=axis, keepdims=True)
    finite = arr != -np.inf
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        shifted = np.where(finite, np.exp(arr - top), 0.0)
        result = top + np.log(shifted.sum(axis=axis, keepdims=True))
    if axis is None:
        return float(result.ravel()[0])
    return np.squeeze(result, axis=axis)
