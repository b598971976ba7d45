"""A three-dimensional view over a flat numeric buffer."""

from __future__ import annotations

import operator
from os import PathLike
from typing import Any, Optional, Tuple, Union

import numpy as np

Index3 = Tuple[int, int, int]


class Matrix3D:
    """A (dim_x, dim_y, dim_z) window onto the front of a buffer.

    The buffer may be larger than the matrix; only its first
    ``dim_x * dim_y * dim_z`` elements are used, and they are shared,
    not copied, whenever the buffer is contiguous.
    """

    __slots__ = ("data",)

    def __init__(self, data: Any, dim_x: int, dim_y: int, dim_z: int) -> None:
        dims = (int(dim_x), int(dim_y), int(dim_z))
        if min(dims) < 0:
            raise ValueError(f"Matrix3D: negative dimension in {dims}")
        flat = np.asarray(data).reshape(-1)
        needed = dims[0] * dims[1] * dims[2]
        if flat.size < needed:
            raise ValueError(
                f"Matrix3D: buffer holds {flat.size} elements, {needed} needed for {dims}"
            )
        self.data: np.ndarray = flat[:needed].reshape(dims)

    @classmethod
    def zeros(cls, dim_x: int, dim_y: int, dim_z: int, dtype: Any = np.float32) -> "Matrix3D":
        """A new matrix filled with zeros."""
        return cls(np.zeros(int(dim_x) * int(dim_y) * int(dim_z), dtype=dtype), dim_x, dim_y, dim_z)

    @property
    def dim_x(self) -> int:
        return self.data.shape[0]

    @property
    def dim_y(self) -> int:
        return self.data.shape[1]

    @property
    def dim_z(self) -> int:
        return self.data.shape[2]

    @property
    def shape(self) -> Index3:
        return self.data.shape  # type: ignore[return-value]

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    def _checked(self, index: Any) -> Index3:
        if not isinstance(index, tuple) or len(index) != 3:
            raise TypeError("Matrix3D: index must be a tuple (x, y, z)")
        x, y, z = (operator.index(i) for i in index)
        if not (0 <= x < self.dim_x and 0 <= y < self.dim_y and 0 <= z < self.dim_z):
            raise IndexError(
                f"Matrix3D: Indices out of range. ({x}, {y}, {z}) not within "
                f"({self.dim_x}, {self.dim_y}, {self.dim_z})"
            )
        return x, y, z

    def __getitem__(self, index: Index3) -> Any:
        return self.data[self._checked(index)]

    def __setitem__(self, index: Index3, value: Any) -> None:
        self.data[self._checked(index)] = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix3D):
            return NotImplemented
        if self.shape != other.shape:
            return False
        return bool(np.array_equal(self.data, other.data))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Matrix3D(shape={self.shape}, dtype={self.dtype})"

    def length(self) -> int:
        """Number of elements."""
        return int(self.data.size)

    def sum(self, size: Optional[int] = None, start_idx: int = 0) -> Any:
        """Sum of ``size`` consecutive elements from ``start_idx``, in the matrix's dtype.

        With no size, sums every element from ``start_idx`` on.
        """
        flat = self.data.reshape(-1)
        if start_idx < 0 or start_idx > flat.size:
            raise IndexError("Matrix3D: start index out of range.")
        end = flat.size if size is None else start_idx + size
        if size is not None and (size < 0 or end > flat.size):
            raise IndexError("Matrix3D: sum range out of range.")
        return flat[start_idx:end].sum(dtype=self.data.dtype)

    def load(self, path: Union[str, PathLike]) -> "Matrix3D":
        """Fill the matrix with raw native-endian values read from ``path``.

        A file shorter than the matrix fills only the leading elements.
        """
        with open(path, "rb") as infile:
            raw = infile.read(self.data.nbytes)
        count = len(raw) // self.data.itemsize
        values = np.frombuffer(raw, dtype=self.data.dtype, count=count)
        flat = self.data.reshape(-1)
        flat[:count] = values
        return self