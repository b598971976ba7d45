"""Batched float32 matrix multiplication."""

from __future__ import annotations

import os
from contextlib import nullcontext
from dataclasses import dataclass
from os import PathLike
from typing import ContextManager, Union

import numpy as np

from edgellm.matrix import Matrix3D
from edgellm.profiler import get_instance
from edgellm.utils import read_to_array


def _profiled(name: str, flops: int) -> ContextManager[None]:
    profiler = get_instance()
    if profiler.enabled:
        return profiler.section(name, flops)
    return nullcontext()


@dataclass
class BMMF32T:
    """Batched product of float32 matrices, scaled by ``alpha``."""

    alpha: float = 1.0

    def forward(self, x: Matrix3D, weight: Matrix3D) -> Matrix3D:
        """``alpha * x @ weight^T`` per batch.

        ``x`` is (batch, m, k), ``weight`` is (batch, n, k); the result is
        (batch, m, n).
        """
        if x.dim_x != weight.dim_x:
            raise ValueError(f"batch sizes differ: {x.dim_x} and {weight.dim_x}")
        if x.dim_z != weight.dim_z:
            raise ValueError(f"inner dimensions differ: {x.dim_z} and {weight.dim_z}")
        batch, m, k = x.shape
        n = weight.dim_y
        with _profiled("BMM_F32T", batch * 2 * m * n * k):
            a = x.data.astype(np.float32, copy=False)
            b = weight.data.astype(np.float32, copy=False)
            out = np.matmul(a, b.transpose(0, 2, 1)).astype(np.float32)
            out *= np.float32(self.alpha)
        return Matrix3D(np.ascontiguousarray(out), batch, m, n)

    def forward_weight_untransposed(self, x: Matrix3D, weight: Matrix3D) -> Matrix3D:
        """``x @ weight`` per batch, without scaling.

        ``x`` is (batch, m, k), ``weight`` is (batch, k, n); the result is
        (batch, m, n).
        """
        if x.dim_x != weight.dim_x:
            raise ValueError(f"batch sizes differ: {x.dim_x} and {weight.dim_x}")
        if x.dim_z != weight.dim_y:
            raise ValueError(f"inner dimensions differ: {x.dim_z} and {weight.dim_y}")
        batch, m, k = x.shape
        n = weight.dim_z
        with _profiled("BMM_F32T", batch * 2 * m * n * k):
            a = x.data.astype(np.float32, copy=False)
            b = weight.data.astype(np.float32, copy=False)
            out = np.matmul(a, b).astype(np.float32)
        return Matrix3D(np.ascontiguousarray(out), batch, m, n)

    @classmethod
    def load(cls, prefix: Union[str, PathLike]) -> "BMMF32T":
        """Read the scale from ``prefix/alpha.bin``."""
        alpha = read_to_array(os.path.join(prefix, "alpha.bin"), np.float32, 1)
        return cls(float(alpha[0]))