"""Dense linear layers over float32 matrices."""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from os import PathLike
from typing import ContextManager, Optional, Union

import numpy as np

from edgellm.matrix import Matrix3D
from edgellm.profiler import get_instance
from edgellm.utils import read_to_array


def _profiled(name: str, flops: int) -> ContextManager[None]:
    profiler = get_instance()
    if profiler.enabled:
        return profiler.section(name, flops)
    return nullcontext()


def linear(a: Matrix3D, b: Matrix3D) -> Matrix3D:
    """Batched ``a @ b^T`` in the dtype of ``a``.

    ``a`` is (batch, m, k), ``b`` is (batch, n, k); the result is (batch, m, n).
    """
    if a.dim_x != b.dim_x:
        raise ValueError(f"batch sizes differ: {a.dim_x} and {b.dim_x}")
    if a.dim_z != b.dim_z:
        raise ValueError(f"inner dimensions differ: {a.dim_z} and {b.dim_z}")
    batch, m, _ = a.shape
    n = b.dim_y
    dtype = a.dtype
    with np.errstate(over="ignore"):
        out = np.matmul(a.data, b.data.astype(dtype, copy=False).transpose(0, 2, 1))
    return Matrix3D(np.ascontiguousarray(out.astype(dtype, copy=False)), batch, m, n)


@dataclass
class LinearFP:
    """``y = x @ weight^T (+ bias)`` with a (1, out_features, in_features) weight."""

    weight: Matrix3D
    bias: Optional[Matrix3D] = None

    def __post_init__(self) -> None:
        if self.bias is not None and self.bias.dim_z != self.weight.dim_y:
            raise ValueError(
                f"bias has {self.bias.dim_z} features, weight has {self.weight.dim_y} outputs"
            )

    @property
    def has_bias(self) -> bool:
        return self.bias is not None

    def forward(self, x: Matrix3D) -> Matrix3D:
        """Apply the layer to a (1, m, in_features) matrix, giving (1, m, out_features)."""
        if x.dim_x != 1 or self.weight.dim_x != 1:
            raise ValueError("only a batch of one is supported")
        if x.dim_z != self.weight.dim_z:
            raise ValueError(
                f"input has {x.dim_z} features, weight expects {self.weight.dim_z}"
            )
        m, k = x.dim_y, x.dim_z
        n = self.weight.dim_y
        with _profiled("Linear_FP", 2 * m * n * k):
            a = x.data[0].astype(np.float32, copy=False)
            w = self.weight.data[0].astype(np.float32, copy=False)
            out = a @ w.T
            if self.bias is not None:
                out = out + self.bias.data[0].astype(np.float32, copy=False)
            out = out.astype(np.float32)
        return Matrix3D(np.ascontiguousarray(out), 1, m, n)

    @classmethod
    def load(
        cls,
        weight_path: Union[str, PathLike],
        out_features: int,
        in_features: int,
        bias_path: Optional[Union[str, PathLike]] = None,
    ) -> "LinearFP":
        """Read raw float32 weights, and a bias if ``bias_path`` is given."""
        weight = Matrix3D(
            read_to_array(weight_path, np.float32, out_features * in_features),
            1,
            out_features,
            in_features,
        )
        bias = None
        if bias_path is not None:
            bias = Matrix3D(read_to_array(bias_path, np.float32, out_features), 1, 1, out_features)
        return cls(weight, bias)