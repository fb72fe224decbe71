# tests/test_io_field.py
import numpy as np
import pytest

from specconv.core.field import Field
from specconv.io import as_uint8, read_field, write_field


def test_npy_roundtrip(tmp_path):
    f = Field(np.arange(24, dtype=np.float32).reshape(2, 3, 4))
    write_field(tmp_path / "f.npy", f)
    g = read_field(tmp_path / "f.npy")
    assert g.origin == (0, 0, 0)
    np.testing.assert_array_equal(g.data, f.data)


def test_npz_keeps_origin(tmp_path):
    f = Field(np.ones((3, 5), dtype=np.int16), origin=(-2, 7))
    write_field(tmp_path / "f.npz", f)
    g = read_field(tmp_path / "f.npz")
    assert g.origin == (-2, 7)
    assert g.dtype == np.int16


def test_png_is_greyscale_uint8(tmp_path):
    data = np.linspace(0, 255, 48).astype(np.uint8).reshape(6, 8)
    write_field(tmp_path / "f.png", Field(data))
    g = read_field(tmp_path / "f.png")
    assert g.dtype == np.uint8
    np.testing.assert_array_equal(g.data, data)


def test_png_needs_2d(tmp_path):
    with pytest.raises(ValueError):
        write_field(tmp_path / "f.png", Field(np.zeros((2, 2, 2))))


def test_as_uint8():
    np.testing.assert_array_equal(as_uint8(np.array([0.0, 0.5, 1.0])), [0, 127, 255])
    np.testing.assert_array_equal(as_uint8(np.array([-3, 300])), [0, 255])
