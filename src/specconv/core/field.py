# src/specconv/core/field.py
"""N-dimensional scalar fields with an origin offset, and their allocators."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

ArrayLike = np.ndarray
DTypeLike = Union[np.dtype, type, str]

__all__ = [
    "Field",
    "FieldFactory",
    "IncompatibleTypeError",
    "as_field",
]


class IncompatibleTypeError(TypeError):
    """Raised when a dtype cannot be adapted to a complex floating-point spectrum."""


@dataclass
class Field:
    """
    Array container with an explicit minimum coordinate.

    Attributes
    ----------
    data : np.ndarray
        Samples; axis ``d`` is dimension ``d``.
    origin : tuple[int, ...]
        Minimum coordinate per dimension. Defaults to all zeros.
    """
    data: np.ndarray
    origin: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        self.data = np.asarray(self.data)
        if not self.origin:
            self.origin = (0,) * self.data.ndim
        self.origin = tuple(int(o) for o in self.origin)
        if len(self.origin) != self.data.ndim:
            raise ValueError(
                f"origin has {len(self.origin)} entries, data has {self.data.ndim} dimensions"
            )

    @property
    def ndim(self) -> int:
        return int(self.data.ndim)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(int(n) for n in self.data.shape)

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    def dimension(self, d: int) -> int:
        return int(self.data.shape[d])

    def min(self, d: int) -> int:
        return self.origin[d]

    def max(self, d: int) -> int:
        return self.origin[d] + self.dimension(d) - 1


def as_field(x: Union[Field, ArrayLike, None]) -> Optional[Field]:
    """Wrap plain arrays as zero-origin fields; pass fields and None through."""
    if x is None or isinstance(x, Field):
        return x
    return Field(np.asarray(x))


# ---------------------------------------------------------------------------
# Allocation strategies
# ---------------------------------------------------------------------------

def _complex_dtype_for(dtype: np.dtype) -> np.dtype:
    """
    Pick the complex dtype able to hold the spectrum of a real ``dtype``.

    Small integers and single/half floats map to complex64; everything wider
    to complex128. bool, complex and non-numeric dtypes are rejected.
    """
    dtype = np.dtype(dtype)
    if dtype.kind == "f":
        return np.dtype(np.complex64) if dtype.itemsize <= 4 else np.dtype(np.complex128)
    if dtype.kind in ("i", "u"):
        return np.dtype(np.complex64) if dtype.itemsize <= 2 else np.dtype(np.complex128)
    raise IncompatibleTypeError(
        f"Cannot adapt element type {dtype} to a complex floating-point representation"
    )


class FieldFactory:
    """
    Allocates zero-filled fields of one dtype.

    Parameters
    ----------
    dtype : numpy dtype or str
        Element type of every field this factory creates.
    """

    def __init__(self, dtype: DTypeLike) -> None:
        self.dtype = np.dtype(dtype)

    def __repr__(self) -> str:
        return f"FieldFactory({self.dtype})"

    def create(self, shape: Sequence[int], origin: Optional[Sequence[int]] = None) -> Field:
        shape_t = tuple(int(n) for n in shape)
        if any(n < 0 for n in shape_t):
            raise ValueError(f"Negative extent in shape {shape_t}")
        data = np.zeros(shape_t, dtype=self.dtype)
        return Field(data=data, origin=tuple(origin) if origin is not None else ())

    @classmethod
    def like(cls, f: Field) -> "FieldFactory":
        """Factory producing fields with the element type of ``f``."""
        return cls(f.dtype)

    @classmethod
    def complex_for(cls, f: Field) -> "FieldFactory":
        """
        Factory for spectra of ``f``.

        Raises
        ------
        IncompatibleTypeError
            If ``f``'s element type has no complex floating-point counterpart.
        """
        return cls(_complex_dtype_for(f.dtype))
