"""Layer normalisation, quantising layer normalisation and RMS normalisation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from os import PathLike
from typing import Any, Union

import numpy as np

from edgellm.matrix import Matrix3D
from edgellm.utils import read_to_array

LAYER_NORM_EPS = 1e-5
RMS_NORM_EPS = 1e-6


def _as_row(value: Any) -> Matrix3D:
    """A (1, 1, n) float32 matrix from a matrix or any flat sequence."""
    if isinstance(value, Matrix3D):
        return value
    flat = np.asarray(value, dtype=np.float32).reshape(-1)
    return Matrix3D(flat, 1, 1, flat.size)


def _check_last_dim(x: Matrix3D, name: str, param: Matrix3D) -> None:
    if x.dim_z != param.dim_z:
        raise ValueError(
            f"{name} has {param.dim_z} features but the input's last dimension is {x.dim_z}"
        )


def _standardise(x: Matrix3D, weight: Matrix3D, bias: Matrix3D, eps: float) -> np.ndarray:
    values = x.data.astype(np.float32, copy=False)
    mean = values.mean(axis=2, keepdims=True, dtype=np.float32)
    centred = values - mean
    var = (centred * centred).mean(axis=2, keepdims=True, dtype=np.float32)
    std_dev = np.sqrt(var + np.float32(eps))
    return (centred / std_dev) * weight.data[0, 0] + bias.data[0, 0]


def _round_half_away(values: np.ndarray) -> np.ndarray:
    magnitude = np.abs(values.astype(np.float64))
    whole = np.floor(magnitude)
    whole += (magnitude - whole) >= 0.5
    return np.copysign(whole, values)


def _load_pair(prefix: Union[str, PathLike], dim: int):
    weight = read_to_array(os.path.join(prefix, "weight.bin"), np.float32, dim)
    bias = read_to_array(os.path.join(prefix, "bias.bin"), np.float32, dim)
    return weight, bias


@dataclass
class LayerNorm:
    """Layer normalisation over the last dimension with a learned scale and shift."""

    weight: Matrix3D
    bias: Matrix3D

    def __post_init__(self) -> None:
        self.weight = _as_row(self.weight)
        self.bias = _as_row(self.bias)

    def forward(self, x: Matrix3D) -> Matrix3D:
        """Normalised float32 copy of ``x``."""
        _check_last_dim(x, "weight", self.weight)
        _check_last_dim(x, "bias", self.bias)
        out = _standardise(x, self.weight, self.bias, LAYER_NORM_EPS).astype(np.float32)
        return Matrix3D(out, *x.shape)

    @classmethod
    def load(cls, prefix: Union[str, PathLike], dim: int) -> "LayerNorm":
        """Read ``weight.bin`` and ``bias.bin`` of ``dim`` floats from ``prefix``."""
        weight, bias = _load_pair(prefix, dim)
        return cls(weight, bias)


@dataclass
class LayerNormQ:
    """Layer normalisation whose output is rounded to int8."""

    weight: Matrix3D
    bias: Matrix3D

    def __post_init__(self) -> None:
        self.weight = _as_row(self.weight)
        self.bias = _as_row(self.bias)

    def forward(self, x: Matrix3D) -> Matrix3D:
        """Normalised copy of ``x`` rounded half away from zero to int8."""
        _check_last_dim(x, "weight", self.weight)
        _check_last_dim(x, "bias", self.bias)
        fp_out = _standardise(x, self.weight, self.bias, LAYER_NORM_EPS)
        rounded = np.clip(_round_half_away(fp_out), -128, 127).astype(np.int8)
        return Matrix3D(rounded, *x.shape)

    @classmethod
    def load(cls, prefix: Union[str, PathLike], dim: int) -> "LayerNormQ":
        """Read ``weight.bin`` and ``bias.bin`` of ``dim`` floats from ``prefix``."""
        weight, bias = _load_pair(prefix, dim)
        return cls(weight, bias)


@dataclass
class LlamaRMSNorm:
    """Root-mean-square normalisation over the last dimension."""

    weight: Matrix3D
    eps: float = RMS_NORM_EPS

    def __post_init__(self) -> None:
        self.weight = _as_row(self.weight)

    def forward(self, x: Matrix3D) -> Matrix3D:
        """Float32 copy of ``x`` scaled to unit RMS per row, times the weight."""
        _check_last_dim(x, "weight", self.weight)
        values = x.data.astype(np.float32, copy=False)
        var = (values * values).mean(axis=2, keepdims=True, dtype=np.float32)
        inv_rms = np.float32(1.0) / np.sqrt(var + np.float32(self.eps))
        out = ((values * inv_rms) * self.weight.data[0, 0]).astype(np.float32)
        return Matrix3D(out, *x.shape)