"""Reading raw tensors and comparing arrays within tolerances."""

from __future__ import annotations

from dataclasses import dataclass
from os import PathLike
from typing import Any, Optional, Union

import numpy as np

MAX_SQ_ERROR_MAX = 5e-6
ERROR_MAX = 1e-9
INT_ERROR_MAX = 1e-5


def read_to_array(path: Union[str, PathLike], dtype: Any, size: int) -> np.ndarray:
    """Read ``size`` raw values of ``dtype`` from ``path``.

    Elements past the end of a short file are zero.
    """
    dtype = np.dtype(dtype)
    with open(path, "rb") as infile:
        raw = infile.read(size * dtype.itemsize)
    out = np.zeros(size, dtype=dtype)
    count = len(raw) // dtype.itemsize
    out[:count] = np.frombuffer(raw, dtype=dtype, count=count)
    return out


@dataclass(frozen=True)
class ErrorStats:
    """Mean squared error and the location of the largest squared difference."""

    mse: float
    max_sq_diff: float
    index: Optional[int]
    a1: Optional[float]
    a2: Optional[float]

    def __str__(self) -> str:
        return (
            f"MSE:{self.mse:g}, MAX SQ diff:{self.max_sq_diff:g}"
            f"@:{self.index},a1:{self.a1},a2:{self.a2}"
        )


def _diffs(array: Any, array2: Any) -> np.ndarray:
    a = np.asarray(array, dtype=np.float32).reshape(-1)
    b = np.asarray(array2, dtype=np.float32).reshape(-1)
    if a.shape != b.shape:
        raise ValueError(f"arrays differ in size: {a.size} and {b.size}")
    return a - b


def _mse(sq: np.ndarray) -> float:
    if sq.size == 0:
        return 0.0
    return float(sq.sum(dtype=np.float32) / np.float32(sq.size))


def mse_max_diff(a: Any, a2: Any) -> ErrorStats:
    """Error statistics between two arrays of equal size."""
    diff = _diffs(a, a2)
    sq = diff * diff
    if sq.size == 0 or not np.any(sq > 0):
        return ErrorStats(_mse(sq), 0.0, None, None, None)
    idx = int(np.argmax(sq))
    flat_a = np.asarray(a).reshape(-1)
    flat_a2 = np.asarray(a2).reshape(-1)
    return ErrorStats(_mse(sq), float(sq[idx]), idx, float(flat_a[idx]), float(flat_a2[idx]))


def check_two_equal(array: Any, array2: Any, error: float) -> bool:
    """True when the mean squared difference is within ``error`` and nothing is NaN."""
    diff = _diffs(array, array2)
    if np.isnan(diff).any():
        return False
    stats = mse_max_diff(array, array2)
    if stats.mse > error:
        print(stats)
        return False
    return True


def check_two_equal_strict(array: Any, array2: Any) -> bool:
    """True when every difference is within MAX_SQ_ERROR_MAX and the MSE within ERROR_MAX."""
    diff = _diffs(array, array2)
    sq = diff * diff
    too_far = np.flatnonzero(np.sqrt(sq) > MAX_SQ_ERROR_MAX)
    if too_far.size:
        i = int(too_far[0])
        print(
            f"i:{i},max_sqdiff:{float(np.sqrt(sq[: i + 1].max())):g}, "
            f"array[i]:{float(np.asarray(array).reshape(-1)[i]):g}, "
            f"array2[i]:{float(np.asarray(array2).reshape(-1)[i]):g}"
        )
        return False
    mse = _mse(sq)
    if mse > ERROR_MAX:
        print(f"MSE:{mse:g}, MAX SQ diff:{float(sq.max()):g}")
        return False
    return True


def check_ints_equal(array: Any, array2: Any) -> bool:
    """True when the mean squared difference of integer arrays is within INT_ERROR_MAX."""
    sq = _diffs(array, array2) ** 2
    mse = _mse(sq)
    if mse > INT_ERROR_MAX:
        print(f"MSE:{mse:g}")
        return False
    return True


def check_two_exact_equal(array: Any, array2: Any) -> bool:
    """True when the arrays match element for element."""
    a = np.asarray(array).reshape(-1)
    b = np.asarray(array2).reshape(-1)
    if a.shape != b.shape:
        raise ValueError(f"arrays differ in size: {a.size} and {b.size}")
    mismatches = np.flatnonzero(a != b)
    if mismatches.size:
        i = int(mismatches[0])
        print(f"i:{i}, array[i]:{int(a[i])}, array2[i]:{int(b[i])}")
        return False
    return True


def format_first_k(name: str, arr: Any, k: int, start_idx: int = 0) -> str:
    """``name:`` followed by elements ``start_idx`` up to ``k``, each ending in a comma."""
    values = np.asarray(arr).reshape(-1)[start_idx:k]
    if np.issubdtype(values.dtype, np.integer):
        items = (str(int(v)) for v in values)
    else:
        items = (f"{float(v):g}" for v in values)
    return f"{name}:" + "".join(f"{item}," for item in items)