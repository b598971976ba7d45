"""Multi-head self-attention with rotary positions and a key/value cache."""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from typing import ContextManager, Optional, Protocol, Tuple

import numpy as np

from edgellm.bmm import BMMF32T
from edgellm.config import ModelConfig
from edgellm.elementwise import batch_add, softmax
from edgellm.embedding import RotaryPosEmb
from edgellm.matrix import Matrix3D
from edgellm.profiler import get_instance

_LOWEST = np.finfo(np.float32).min


class Projection(Protocol):
    """Anything that maps a (1, m, k) matrix to a (1, m, n) matrix."""

    def forward(self, x: Matrix3D) -> Matrix3D: ...


def _profiled(name: str) -> ContextManager[None]:
    profiler = get_instance()
    if profiler.enabled:
        return profiler.section(name)
    return nullcontext()


@dataclass
class AttentionOutput:
    """Result of one attention pass.

    ``past_key_value`` holds the rotated keys and the values of every
    position seen so far, each of shape (num_heads, total_len, head_dim).
    """

    attn_output: Matrix3D
    past_key_value: Tuple[Matrix3D, Matrix3D]
    attn_probs_reshaped: Optional[Matrix3D] = None


class LlamaAttention:
    """Causal self-attention with rotary position embedding, as used by LLaMA."""

    profile_name = "Int4llamaAttention"

    def __init__(
        self,
        config: ModelConfig,
        q_proj: Projection,
        k_proj: Projection,
        v_proj: Projection,
        o_proj: Projection,
        rotary_pos_emb: RotaryPosEmb,
        qk_alpha: float,
    ) -> None:
        if config.num_heads <= 0 or config.embed_dim % config.num_heads != 0:
            raise ValueError(
                f"embed_dim {config.embed_dim} is not divisible by num_heads {config.num_heads}"
            )
        self.embed_dim = config.embed_dim
        self.num_heads = config.num_heads
        self.head_dim = config.embed_dim // config.num_heads
        self.q_proj = q_proj
        self.k_proj = k_proj
        self.v_proj = v_proj
        self.o_proj = o_proj
        self.rotary_pos_emb = rotary_pos_emb
        self.qk_bmm = BMMF32T(float(qk_alpha))
        self.pv_bmm = BMMF32T(1.0)

    def _check_unshaped(self, unshaped: Matrix3D, sqlen: int) -> None:
        expected = (1, sqlen, self.num_heads * self.head_dim)
        if tuple(unshaped.shape) != expected:
            raise ValueError(f"expected shape {expected}, got {tuple(unshaped.shape)}")

    def _check_shaped(self, shaped: Matrix3D, sqlen: int) -> None:
        expected = (self.num_heads, sqlen, self.head_dim)
        if tuple(shaped.shape) != expected:
            raise ValueError(f"expected shape {expected}, got {tuple(shaped.shape)}")

    def shape(self, unshaped: Matrix3D, sqlen: int) -> Matrix3D:
        """Split a (1, sqlen, embed_dim) matrix into (num_heads, sqlen, head_dim)."""
        self._check_unshaped(unshaped, sqlen)
        heads = unshaped.data[0].reshape(sqlen, self.num_heads, self.head_dim)
        shaped = np.ascontiguousarray(heads.transpose(1, 0, 2))
        return Matrix3D(shaped, self.num_heads, sqlen, self.head_dim)

    def unshape(self, shaped: Matrix3D, sqlen: int) -> Matrix3D:
        """Join a (num_heads, sqlen, head_dim) matrix back into (1, sqlen, embed_dim)."""
        self._check_shaped(shaped, sqlen)
        joined = np.ascontiguousarray(shaped.data.transpose(1, 0, 2)).reshape(
            sqlen, self.num_heads * self.head_dim
        )
        return Matrix3D(joined, 1, sqlen, self.num_heads * self.head_dim)

    def forward(
        self,
        hidden_states: Matrix3D,
        attention_mask: Matrix3D,
        past_key: Optional[Matrix3D] = None,
        past_value: Optional[Matrix3D] = None,
    ) -> AttentionOutput:
        """Attend over the cached positions and the ``sqlen`` new ones.

        ``hidden_states`` is (1, sqlen, embed_dim); ``attention_mask`` is
        (1, sqlen, past_len + sqlen) and is added to the scores.
        """
        if (past_key is None) != (past_value is None):
            raise ValueError("past_key and past_value must be given together")
        has_past = past_key is not None
        b, sqlen = hidden_states.dim_x, hidden_states.dim_y
        if b != 1:
            raise ValueError(f"only a batch of one is supported, got {b}")

        with _profiled(self.profile_name):
            query = self.shape(self.q_proj.forward(hidden_states), sqlen)
            key = self.shape(self.k_proj.forward(hidden_states), sqlen)
            value = self.shape(self.v_proj.forward(hidden_states), sqlen)

            start_idx = past_key.dim_y if has_past else 0
            self.rotary_pos_emb.forward(query, key, start_idx, sqlen)

            final_key, final_value = self._concat_past(key, value, past_key, past_value)
            tgz = final_key.dim_y

            attn_weights = self.qk_bmm.forward(query, final_key)
            attn_weights = batch_add(attn_weights, attention_mask)
            scores = attn_weights.data
            scores[np.isinf(scores)] = _LOWEST

            attn_probs = softmax(attn_weights, 2)
            if attn_probs.shape != (self.num_heads, sqlen, tgz):
                raise ValueError(f"unexpected attention shape {attn_probs.shape}")

            attn_output = self.pv_bmm.forward_weight_untransposed(attn_probs, final_value)
            attn_output_transpose = self.unshape(attn_output, sqlen)
            attn_output_fp = self.o_proj.forward(attn_output_transpose)

        return AttentionOutput(attn_output_fp, (final_key, final_value))

    def _concat_past(
        self,
        key: Matrix3D,
        value: Matrix3D,
        past_key: Optional[Matrix3D],
        past_value: Optional[Matrix3D],
    ) -> Tuple[Matrix3D, Matrix3D]:
        if past_key is None or past_value is None:
            return key, value
        with _profiled(self.profile_name + "::cat_past_keys_values"):
            if past_key.dim_z != self.head_dim or past_value.dim_z != self.head_dim:
                raise ValueError(
                    f"cached head dimension {past_key.dim_z} does not match {self.head_dim}"
                )
            if past_key.shape != past_value.shape:
                raise ValueError(
                    f"cached keys {past_key.shape} and values {past_value.shape} differ in shape"
                )
            if past_key.dim_x != self.num_heads:
                raise ValueError(
                    f"cache has {past_key.dim_x} heads, attention has {self.num_heads}"
                )
            keys = np.concatenate(
                (past_key.data.astype(np.float32, copy=False), key.data), axis=1
            )
            values = np.concatenate(
                (past_value.data.astype(np.float32, copy=False), value.data), axis=1
            )
        tgz = keys.shape[1]
        return (
            Matrix3D(keys, self.num_heads, tgz, self.head_dim),
            Matrix3D(values, self.num_heads, tgz, self.head_dim),
        )