import numpy as np
import pytest

from edgellm.bmm import BMMF32T
from edgellm.matrix import Matrix3D


def _m(values, dtype=np.float32):
    arr = np.asarray(values, dtype=dtype)
    return Matrix3D(arr, *arr.shape)


def test_forward_with_identity_weight_scales_input():
    x = _m([[[1.0, 2.0], [3.0, 4.0]]])
    eye = _m([np.eye(2)])
    out = BMMF32T(0.5).forward(x, eye)
    assert out.shape == (1, 2, 2)
    np.testing.assert_allclose(out.data, x.data * 0.5)


def test_forward_dot_product_value():
    x = _m([[[1.0, 2.0]]])
    w = _m([[[3.0, 4.0]]])
    out = BMMF32T(1.0).forward(x, w)
    assert out[0, 0, 0] == pytest.approx(11.0)


def test_forward_output_shape_uses_weight_rows():
    x = _m(np.ones((2, 3, 4)))
    w = _m(np.ones((2, 5, 4)))
    out = BMMF32T(1.0).forward(x, w)
    assert out.shape == (2, 3, 5)
    assert out.dtype == np.float32


def test_forward_batches_are_independent():
    rng = np.random.default_rng(0)
    x = rng.standard_normal((2, 3, 4)).astype(np.float32)
    w = rng.standard_normal((2, 5, 4)).astype(np.float32)
    op = BMMF32T(0.25)
    whole = op.forward(_m(x), _m(w))
    for b in range(2):
        part = op.forward(_m(x[b:b + 1]), _m(w[b:b + 1]))
        np.testing.assert_allclose(whole.data[b], part.data[0], rtol=1e-6)


def test_untransposed_ignores_alpha_and_matches_transposed_form():
    rng = np.random.default_rng(1)
    x = rng.standard_normal((2, 3, 4)).astype(np.float32)
    w = rng.standard_normal((2, 4, 5)).astype(np.float32)
    op = BMMF32T(2.0)
    plain = op.forward_weight_untransposed(_m(x), _m(w))
    transposed = op.forward(_m(x), _m(np.ascontiguousarray(w.transpose(0, 2, 1))))
    assert plain.shape == (2, 3, 5)
    np.testing.assert_allclose(transposed.data, plain.data * 2.0, rtol=1e-5)


def test_untransposed_identity_returns_input():
    x = _m([[[1.0, -2.0, 3.0]]])
    eye = _m([np.eye(3)])
    out = BMMF32T(7.0).forward_weight_untransposed(x, eye)
    np.testing.assert_array_equal(out.data, x.data)


def test_forward_rejects_batch_mismatch():
    with pytest.raises(ValueError):
        BMMF32T(1.0).forward(_m(np.ones((2, 1, 3))), _m(np.ones((1, 1, 3))))


def test_forward_rejects_inner_mismatch():
    with pytest.raises(ValueError):
        BMMF32T(1.0).forward(_m(np.ones((1, 2, 3))), _m(np.ones((1, 2, 4))))


def test_untransposed_rejects_inner_mismatch():
    with pytest.raises(ValueError):
        BMMF32T(1.0).forward_weight_untransposed(_m(np.ones((1, 2, 3))), _m(np.ones((1, 2, 3))))


def test_load_reads_alpha(tmp_path):
    np.array([0.125], dtype=np.float32).tofile(tmp_path / "alpha.bin")
    op = BMMF32T.load(tmp_path)
    assert op.alpha == 0.125


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        BMMF32T.load(tmp_path / "absent")