# edgellm

Small, readable building blocks for running LLaMA-style transformer layers on
the CPU with numpy. Each operator takes `Matrix3D` values and gives new
`Matrix3D` values back, so every piece can be checked on its own against
known outputs, and the pieces can be combined into a self-attention block.

## Installation

```
pip install edgellm
```

To run the tests as well:

```
pip install "edgellm[test]"
pytest
```

## What is inside

- `edgellm.matrix.Matrix3D`: a bounds-checked three-dimensional tensor over a
  numpy buffer. `Matrix3D.zeros` makes an empty one, `load` fills it from a
  raw binary file, and `sum` adds up a run of its elements.
- `edgellm.config`: `ModelConfig`, the `ModelChoice` and `Precision` enums,
  and `get_opt_model_config`, which gives the built-in sizes for OPT-125M,
  OPT-1.3B, OPT-6.7B, LLaMA-7B and LLaMA-13B.
- `edgellm.profiler`: a `Profiler` that collects section timings in
  microseconds, call counts and FLOP counts; `get_instance()` returns the
  shared one. The operators only time themselves while its `enabled` flag is
  set.
- `edgellm.utils`: reading raw binary arrays (`read_to_array`) and comparing
  outputs within tolerances (`check_two_equal`, `check_two_equal_strict`,
  `check_ints_equal`, `check_two_exact_equal`, `mse_max_diff`,
  `format_first_k`).
- `edgellm.normalization`: `LayerNorm`, `LayerNormQ` (output rounded to int8)
  and `LlamaRMSNorm`.
- `edgellm.elementwise`: `softmax` over the last dimension, `batch_add` (adds
  a batch-of-one matrix to every batch) and `arg_max_dim2`.
- `edgellm.embedding`: `Embedding` token lookup and `RotaryPosEmb`, which
  rotates query and key heads in place.
- `edgellm.bmm`: batched float32 products (`BMMF32T`), with the weight either
  transposed (`forward`, scaled by `alpha`) or not
  (`forward_weight_untransposed`).
- `edgellm.linear`: `linear` and the fully connected layer `LinearFP`.
- `edgellm.attention`: `LlamaAttention`, multi-head causal self-attention
  with rotary positions and a key/value cache. Its `forward` returns an
  `AttentionOutput` holding the projected output and the keys and values of
  every position seen so far; pass them back as `past_key` and `past_value`
  to decode one token at a time.

Layers with weights on disk have a `load` class method: `LayerNorm.load`,
`LayerNormQ.load`, `Embedding.load`, `RotaryPosEmb.load`, `BMMF32T.load` and
`LinearFP.load`.

## Example

```python
import numpy as np

from edgellm.elementwise import arg_max_dim2, softmax
from edgellm.matrix import Matrix3D
from edgellm.normalization import LlamaRMSNorm

values = np.random.default_rng(0).standard_normal(4 * 8).astype(np.float32)
hidden = Matrix3D(values, 1, 4, 8)

norm = LlamaRMSNorm(np.ones(8, dtype=np.float32))
normed = norm.forward(hidden)

probs = softmax(normed, 2)
best = arg_max_dim2(probs)  # shape (1, 1, 4): the largest column of each row
```

## What it does not do

The package stops at the attention block. It has no decoder layer or full
decoder stack, no language-model head that turns hidden states into logits,
no 4-bit or 8-bit quantised linear layers, no tokenizer and no text
generation or sampling loop, and it installs no command. Those parts are to be
built on top of `LlamaAttention`, `LlamaRMSNorm`, `Embedding` and `LinearFP`.