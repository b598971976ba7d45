"""Model shapes and the presets for the supported models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

QK = 32
"""Number of weights sharing one scale in the 4-bit formats."""


@dataclass(frozen=True)
class ModelConfig:
    """Dimensions of a decoder-only transformer."""

    batch: int = 1
    num_heads: int = 12
    num_layers: int = 12
    max_sqlen: int = 512
    embed_dim: int = 768
    hidden_dim: int = 3072
    vocsize: int = 50272
    padding_idx: int = 1
    qk: int = QK


class ModelChoice(IntEnum):
    OPT_125M = 0
    OPT_1_3B = 1
    OPT_6_7B = 2
    LLAMA_7B = 3
    LLAMA_13B = 4


class Precision(IntEnum):
    FP32 = 0
    INT8 = 1
    INT4 = 2


OPT_6_7B = ModelConfig(1, 32, 32, 2048, 4096, 16384, 50272, 1)
OPT_1_3B = ModelConfig(1, 32, 24, 2048, 2048, 8192, 50272, 1)
OPT_125M = ModelConfig(1, 12, 12, 2048, 768, 3072, 50272, 1)
LLAMA_7B = ModelConfig(1, 32, 32, 2048, 4096, 11008, 32000, 1)
LLAMA_13B = ModelConfig(1, 40, 40, 2048, 5120, 13824, 32000, 1)

_PRESETS = {
    ModelChoice.OPT_125M: OPT_125M,
    ModelChoice.OPT_1_3B: OPT_1_3B,
    ModelChoice.OPT_6_7B: OPT_6_7B,
    ModelChoice.LLAMA_7B: LLAMA_7B,
    ModelChoice.LLAMA_13B: LLAMA_13B,
}


def get_opt_model_config(choice: int) -> ModelConfig:
    """The preset configuration for a model choice."""
    try:
        return _PRESETS[ModelChoice(choice)]
    except ValueError:
        raise ValueError("Unsupported model choice.") from None