"""Softmax, broadcast addition and arg-max over matrices."""

from __future__ import annotations

import numpy as np

from edgellm.matrix import Matrix3D

FLOAT_MIN = -1000000.0
"""Starting maximum for arg-max; values at or below it are never selected."""


def softmax(x: Matrix3D, dim: int) -> Matrix3D:
    """Softmax along the last dimension (``dim`` must be 2).

    Each row is shifted by the larger of its own maximum and the first
    element of the whole matrix, and divided by its sum plus 1e-10.
    """
    if dim != 2:
        raise ValueError("Unsupported dimension for softmax")
    values = x.data.astype(np.float32, copy=False)
    if values.size == 0:
        return Matrix3D(values.copy(), *x.shape)
    shift = np.maximum(values.max(axis=2, keepdims=True), values.reshape(-1)[0])
    with np.errstate(under="ignore", over="ignore", invalid="ignore"):
        exps = np.exp(values - shift)
        total = exps.sum(axis=2, keepdims=True, dtype=np.float32)
        out = (exps / (total + np.float32(1e-10))).astype(np.float32)
    return Matrix3D(out, *x.shape)


def batch_add(x: Matrix3D, x2: Matrix3D) -> Matrix3D:
    """``x`` plus ``x2`` broadcast over the batch; ``x2`` must have a batch of one."""
    if x.dim_y != x2.dim_y or x.dim_z != x2.dim_z:
        raise ValueError(f"batch_add: shapes {x.shape} and {x2.shape} do not match")
    if x.dim_x == x2.dim_x or x2.dim_x != 1:
        raise ValueError("Unsupported dimension for batch_add")
    return Matrix3D(x.data + x2.data[0], *x.shape)


def arg_max_dim2(x: Matrix3D) -> Matrix3D:
    """Index of the first maximum along the last dimension, as a (batch, 1, rows) int32 matrix.

    A row with no value above FLOAT_MIN gives -1.
    """
    values = x.data.astype(np.float32, copy=False)
    bz, sqlen, _ = x.shape
    out = np.full((bz, 1, sqlen), -1, dtype=np.int32)
    if values.size:
        cleaned = np.where(np.isnan(values), -np.inf, values)
        idx = cleaned.argmax(axis=2)
        best = np.take_along_axis(cleaned, idx[..., None], axis=2)[..., 0]
        out[:, 0, :] = np.where(best > FLOAT_MIN, idx, -1)
    return Matrix3D(out, bz, 1, sqlen)