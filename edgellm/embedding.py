"""Token embedding lookup and rotary position embedding."""

from __future__ import annotations

import os
from dataclasses import dataclass
from os import PathLike
from typing import Tuple, Union

import numpy as np

from edgellm.matrix import Matrix3D


@dataclass
class Embedding:
    """Maps token ids to rows of a (1, voc_size, embed_dim) lookup table."""

    embed_dim: int
    voc_size: int
    padding_idx: int
    lookup: Matrix3D

    def __post_init__(self) -> None:
        if self.lookup.dim_y != self.voc_size or self.lookup.dim_z != self.embed_dim:
            raise ValueError(
                f"lookup shape {self.lookup.shape} does not fit "
                f"voc_size={self.voc_size}, embed_dim={self.embed_dim}"
            )

    def forward(self, input_ids: Matrix3D) -> Matrix3D:
        """Embeddings of a (1, 1, n) id matrix as a (1, n, embed_dim) float32 matrix."""
        if input_ids.dim_x != 1 or input_ids.dim_y != 1:
            raise ValueError(f"input ids must have shape (1, 1, n), got {input_ids.shape}")
        ids = input_ids.data[0, 0].astype(np.int64)
        bad = (ids < 0) | (ids >= self.voc_size)
        if bad.any():
            raise IndexError(f"token id {int(ids[bad][0])} outside vocabulary of {self.voc_size}")
        table = self.lookup.data[0].astype(np.float32, copy=False)
        return Matrix3D(table[ids], 1, ids.size, self.embed_dim)

    @classmethod
    def load(
        cls, prefix: Union[str, PathLike], voc_size: int, embed_dim: int, padding_idx: int
    ) -> "Embedding":
        """Read the lookup table from ``prefix/weight.bin``."""
        lookup = Matrix3D.zeros(1, voc_size, embed_dim, np.float32)
        lookup.load(os.path.join(prefix, "weight.bin"))
        return cls(embed_dim, voc_size, padding_idx, lookup)


@dataclass
class RotaryPosEmb:
    """Rotary position embedding from cached (1, max_sqlen, head_dim) cos and sin tables."""

    cos: Matrix3D
    sin: Matrix3D

    def __post_init__(self) -> None:
        if self.cos.shape != self.sin.shape:
            raise ValueError(f"cos {self.cos.shape} and sin {self.sin.shape} differ in shape")

    def forward(
        self, query: Matrix3D, key: Matrix3D, start_idx: int, length: int
    ) -> Tuple[Matrix3D, Matrix3D]:
        """Rotate the first ``length`` rows of every head of ``query`` and ``key`` in place.

        Row ``i`` uses position ``start_idx + i``. Returns the two matrices.
        """
        head_embed = self.cos.dim_z
        max_sqlen = self.cos.dim_y
        if query.dim_z != head_embed or key.dim_z != head_embed:
            raise ValueError(
                f"head dimension {head_embed} does not match query {query.dim_z} / key {key.dim_z}"
            )
        if not max_sqlen > length + start_idx:
            raise ValueError(
                f"positions up to {start_idx + length} exceed cached length {max_sqlen}"
            )
        if start_idx < 0 or length < 0:
            raise ValueError("start index and length must not be negative")
        num_heads = query.dim_x
        if key.dim_x < num_heads:
            raise IndexError(f"key has {key.dim_x} heads, query has {num_heads}")
        if length > query.dim_y or length > key.dim_y:
            raise IndexError(f"length {length} exceeds the number of rows")

        half = head_embed // 2
        cos = self.cos.data[0, start_idx:start_idx + length].astype(np.float32, copy=False)
        sin = self.sin.data[0, start_idx:start_idx + length].astype(np.float32, copy=False)
        for matrix in (query, key):
            rows = matrix.data[:num_heads, :length]
            rotated = np.concatenate(
                (-rows[..., half:2 * half], rows[..., :head_embed - half]), axis=-1
            )
            matrix.data[:num_heads, :length] = rows * cos + rotated * sin
        return query, key

    @classmethod
    def load(cls, path: Union[str, PathLike], max_sqlen: int, head_dim: int) -> "RotaryPosEmb":
        """Read ``cos_cached.bin`` and ``sin_cached.bin`` from ``path``."""
        cos = Matrix3D.zeros(1, max_sqlen, head_dim, np.float32)
        sin = Matrix3D.zeros(1, max_sqlen, head_dim, np.float32)
        cos.load(os.path.join(path, "cos_cached.bin"))
        sin.load(os.path.join(path, "sin_cached.bin"))
        return cls(cos, sin)