import numpy as np
import pytest

from edgellm.embedding import Embedding, RotaryPosEmb
from edgellm.matrix import Matrix3D


def _table(voc, dim, seed=0):
    rng = np.random.default_rng(seed)
    return Matrix3D(rng.normal(size=(1, voc, dim)).astype(np.float32), 1, voc, dim)


def _ids(values):
    arr = np.array(values, np.int32)
    return Matrix3D(arr, 1, 1, arr.size)


def test_embedding_selects_rows():
    table = _table(10, 4)
    emb = Embedding(4, 10, 1, table)
    out = emb.forward(_ids([3, 0, 9, 3]))
    assert out.shape == (1, 4, 4)
    for i, token in enumerate([3, 0, 9, 3]):
        assert np.array_equal(out.data[0, i], table.data[0, token])


def test_embedding_rejects_bad_table_shape():
    with pytest.raises(ValueError):
        Embedding(4, 11, 1, _table(10, 4))


def test_embedding_rejects_out_of_range_id():
    emb = Embedding(4, 10, 1, _table(10, 4))
    with pytest.raises(IndexError):
        emb.forward(_ids([10]))
    with pytest.raises(IndexError):
        emb.forward(_ids([-1]))


def test_embedding_rejects_batched_ids():
    emb = Embedding(4, 10, 1, _table(10, 4))
    with pytest.raises(ValueError):
        emb.forward(Matrix3D(np.zeros(4, np.int32), 1, 2, 2))


def test_embedding_load_round_trip(tmp_path):
    table = _table(6, 3, seed=1)
    table.data.tofile(tmp_path / "weight.bin")
    emb = Embedding.load(tmp_path, 6, 3, 1)
    assert emb.lookup == table
    assert emb.padding_idx == 1


def _rotary(max_sqlen, head_dim, seed=0):
    rng = np.random.default_rng(seed)
    theta = rng.uniform(0, 2 * np.pi, size=(1, max_sqlen, head_dim // 2))
    theta = np.concatenate((theta, theta), axis=-1)
    cos = Matrix3D(np.cos(theta).astype(np.float32), 1, max_sqlen, head_dim)
    sin = Matrix3D(np.sin(theta).astype(np.float32), 1, max_sqlen, head_dim)
    return RotaryPosEmb(cos, sin)


def _states(heads, rows, dim, seed):
    rng = np.random.default_rng(seed)
    return Matrix3D(rng.normal(size=(heads, rows, dim)).astype(np.float32), heads, rows, dim)


def test_rotary_identity_when_angle_zero():
    rope = RotaryPosEmb(
        Matrix3D(np.ones(8 * 4, np.float32), 1, 8, 4),
        Matrix3D(np.zeros(8 * 4, np.float32), 1, 8, 4),
    )
    q, k = _states(2, 3, 4, 1), _states(2, 3, 4, 2)
    q0, k0 = q.data.copy(), k.data.copy()
    rope.forward(q, k, 0, 3)
    assert np.array_equal(q.data, q0)
    assert np.array_equal(k.data, k0)


def test_rotary_quarter_turn_rotates_halves():
    rope = RotaryPosEmb(
        Matrix3D(np.zeros(8 * 4, np.float32), 1, 8, 4),
        Matrix3D(np.ones(8 * 4, np.float32), 1, 8, 4),
    )
    q, k = _states(1, 2, 4, 3), _states(1, 2, 4, 4)
    q0 = q.data.copy()
    out_q, out_k = rope.forward(q, k, 1, 2)
    assert out_q is q and out_k is k
    assert np.allclose(q.data[..., :2], -q0[..., 2:])
    assert np.allclose(q.data[..., 2:], q0[..., :2])


def test_rotary_preserves_pair_norms():
    rope = _rotary(16, 6, seed=5)
    q, k = _states(3, 4, 6, 6), _states(3, 4, 6, 7)
    q0 = q.data.copy()
    rope.forward(q, k, 2, 4)
    before = q0[..., :3] ** 2 + q0[..., 3:] ** 2
    after = q.data[..., :3] ** 2 + q.data[..., 3:] ** 2
    assert np.allclose(before, after, atol=1e-4)


def test_rotary_leaves_rows_past_length():
    rope = _rotary(16, 4, seed=8)
    q, k = _states(2, 5, 4, 9), _states(2, 5, 4, 10)
    q0 = q.data.copy()
    rope.forward(q, k, 0, 2)
    assert np.array_equal(q.data[:, 2:], q0[:, 2:])
    assert not np.array_equal(q.data[:, :2], q0[:, :2])


def test_rotary_rejects_positions_beyond_cache():
    rope = _rotary(4, 4)
    with pytest.raises(ValueError):
        rope.forward(_states(1, 2, 4, 0), _states(1, 2, 4, 1), 2, 2)


def test_rotary_rejects_head_dim_mismatch():
    rope = _rotary(8, 4)
    with pytest.raises(ValueError):
        rope.forward(_states(1, 1, 6, 0), _states(1, 1, 6, 1), 0, 1)


def test_rotary_load_round_trip(tmp_path):
    rope = _rotary(5, 4, seed=11)
    rope.cos.data.tofile(tmp_path / "cos_cached.bin")
    rope.sin.data.tofile(tmp_path / "sin_cached.bin")
    loaded = RotaryPosEmb.load(tmp_path, 5, 4)
    assert loaded.cos == rope.cos
    assert loaded.sin == rope.sin