# tests/test_field.py
import numpy as np
import pytest

from specconv.core.field import Field, FieldFactory, IncompatibleTypeError, as_field


def test_field_bounds():
    f = Field(np.zeros((4, 7)), origin=(-2, 5))
    assert f.ndim == 2
    assert f.shape == (4, 7)
    assert f.dimension(1) == 7
    assert (f.min(0), f.max(0)) == (-2, 1)
    assert (f.min(1), f.max(1)) == (5, 11)


def test_field_default_origin_and_validation():
    assert Field(np.zeros((2, 3, 4))).origin == (0, 0, 0)
    with pytest.raises(ValueError):
        Field(np.zeros((2, 3)), origin=(1,))


def test_as_field():
    assert as_field(None) is None
    f = Field(np.ones(3))
    assert as_field(f) is f
    assert as_field([1.0, 2.0]).shape == (2,)


def test_factory_allocates_zeros():
    f = FieldFactory("int16").create((3, 2), origin=(1, 1))
    assert f.dtype == np.int16
    assert f.origin == (1, 1)
    assert not f.data.any()


@pytest.mark.parametrize(
    "dtype, expected",
    [
        (np.uint8, np.complex64),
        (np.int16, np.complex64),
        (np.float32, np.complex64),
        (np.int32, np.complex128),
        (np.float64, np.complex128),
    ],
)
def test_complex_factory(dtype, expected):
    assert FieldFactory.complex_for(Field(np.zeros(2, dtype=dtype))).dtype == expected


@pytest.mark.parametrize("dtype", [bool, np.complex64, object])
def test_complex_factory_rejects(dtype):
    with pytest.raises(IncompatibleTypeError):
        FieldFactory.complex_for(Field(np.zeros(2, dtype=dtype)))
