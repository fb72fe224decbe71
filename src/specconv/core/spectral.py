# src/specconv/core/spectral.py
"""Kernel templates for circular convolution and spectrum multiplication."""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from specconv.core.field import Field, FieldFactory

__all__ = [
    "kernel_template_shape",
    "wrap_indices",
    "wrap_kernel",
    "multiply_spectra",
]


def kernel_template_shape(spectrum_shape: Sequence[int]) -> Tuple[int, ...]:
    """
    Spatial shape behind a real-to-complex spectrum.

    Dimension 0 is the halved one: ``(s0 - 1) * 2``. The others are unchanged.
    """
    shape = [int(n) for n in spectrum_shape]
    shape[0] = (shape[0] - 1) * 2
    return tuple(shape)


def wrap_indices(kernel_extent: int, template_extent: int) -> np.ndarray:
    """
    Template positions of the samples ``0 .. kernel_extent-1`` along one axis.

    The center sample ``kernel_extent // 2`` lands on 0; samples left of it
    wrap around to the end of the template.
    """
    local = np.arange(kernel_extent)
    return (local - kernel_extent // 2 + template_extent) % template_extent


def wrap_kernel(
    kernel: Field,
    template_shape: Sequence[int],
    factory: Optional[FieldFactory] = None,
) -> Field:
    """
    Place ``kernel`` into a zero-filled template with its center at the origin.

    Every sample at local position ``p`` (relative to ``kernel.origin``) is
    written to ``(p[d] - extent[d] // 2 + template[d]) % template[d]``.

    Parameters
    ----------
    kernel : Field
        Kernel with odd extents; its origin may be non-zero.
    template_shape : sequence[int]
        Target shape, at least as large as the kernel along each dimension.
    factory : FieldFactory | None
        Allocates the template. Default: the kernel's element type.

    Returns
    -------
    Field
        Zero-origin template of shape ``template_shape``.
    """
    template_shape = tuple(int(n) for n in template_shape)
    if len(template_shape) != kernel.ndim:
        raise ValueError(
            f"Template has {len(template_shape)} dimensions, kernel has {kernel.ndim}"
        )
    for d, (k, t) in enumerate(zip(kernel.shape, template_shape)):
        if k > t:
            raise ValueError(f"Kernel extent {k} exceeds template extent {t} in dim {d}")

    if factory is None:
        factory = FieldFactory.like(kernel)
    template = factory.create(template_shape)

    idx = [wrap_indices(k, t) for k, t in zip(kernel.shape, template_shape)]
    template.data[np.ix_(*idx)] = kernel.data
    return template


def multiply_spectra(
    a: np.ndarray,
    b: np.ndarray,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Elementwise complex product of two equally shaped spectra.

    ``out=None`` allocates the product; ``out=a`` multiplies in place. The
    operand not passed as ``out`` is left unchanged.
    """
    return np.multiply(a, b, out=out)
