import numpy as np
import pytest

from edgellm.utils import (
    check_ints_equal,
    check_two_equal,
    check_two_equal_strict,
    check_two_exact_equal,
    format_first_k,
    mse_max_diff,
    read_to_array,
)


def test_read_round_trip(tmp_path):
    values = np.array([1.5, -2.0, 3.25], dtype=np.float32)
    path = tmp_path / "a.bin"
    values.tofile(path)
    out = read_to_array(path, np.float32, 3)
    assert np.array_equal(out, values)
    assert out.dtype == np.float32


def test_read_short_file_pads(tmp_path):
    path = tmp_path / "b.bin"
    np.array([7, 8], dtype=np.int32).tofile(path)
    assert read_to_array(path, np.int32, 4).tolist() == [7, 8, 0, 0]


def test_read_missing(tmp_path):
    with pytest.raises(OSError):
        read_to_array(tmp_path / "nope.bin", np.float32, 1)


def test_check_two_equal():
    a = np.arange(10, dtype=np.float32)
    assert check_two_equal(a, a.copy(), 1e-9) is True
    b = a.copy()
    b[3] += 10.0
    assert check_two_equal(a, b, 1e-3) is False
    b = a.copy()
    b[0] = np.nan
    assert check_two_equal(a, b, 1e9) is False


def test_check_two_equal_int8():
    a = np.array([1, 2, 3], dtype=np.int8)
    b = np.array([1, 2, 4], dtype=np.int8)
    assert check_two_equal(a, b, 1.0) is True
    assert check_two_equal(a, b, 0.1) is False


def test_check_two_equal_strict():
    a = np.zeros(4, dtype=np.float32)
    near = np.full(4, 1e-6, dtype=np.float32)
    far = np.array([0, 0, 1e-4, 0], dtype=np.float32)
    assert check_two_equal_strict(a, near) is True
    assert check_two_equal_strict(a, far) is False


def test_check_ints_equal():
    a = np.arange(5, dtype=np.int32)
    assert check_ints_equal(a, a.copy()) is True
    b = a.copy()
    b[2] = 100
    assert check_ints_equal(a, b) is False


def test_check_two_exact_equal():
    a = np.array([1, -2, 3], dtype=np.int8)
    assert check_two_exact_equal(a, a.copy()) is True
    assert check_two_exact_equal(a, np.array([1, -2, 4], dtype=np.int8)) is False
    with pytest.raises(ValueError):
        check_two_exact_equal(a, np.array([1], dtype=np.int8))


def test_mse_max_diff_locates_largest():
    a = np.array([0, 0, 0, 0], dtype=np.float32)
    b = np.array([0.5, 0, -3.0, 1.0], dtype=np.float32)
    stats = mse_max_diff(a, b)
    assert stats.index == 2
    assert stats.a2 == pytest.approx(-3.0)
    assert stats.max_sq_diff == pytest.approx(9.0)
    assert stats.mse == pytest.approx(np.mean((a - b) ** 2))


def test_mse_max_diff_identical():
    a = np.ones(3, dtype=np.float32)
    stats = mse_max_diff(a, a)
    assert stats.mse == 0.0
    assert stats.index is None


def test_format_first_k():
    assert format_first_k("a", np.array([1, 2, 3, 4], dtype=np.int8), 3) == "a:1,2,3,"
    assert format_first_k("b", np.array([1, 2, 3, 4], dtype=np.int32), 4, 2) == "b:3,4,"
    assert format_first_k("f", np.array([0.5, 1.25], dtype=np.float32), 2) == "f:0.5,1.25,"