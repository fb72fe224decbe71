# src/specconv/kernels.py
"""Separable Gaussian kernels in any number of dimensions."""
from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np

from specconv.core.field import Field, FieldFactory

ArrayLike = np.ndarray

__all__ = [
    "gaussian_1d",
    "gaussian_kernel",
]


def gaussian_1d(
    sigma: float,
    radius: Optional[int] = None,
    truncate: float = 3.0,
    normalize: bool = True,
) -> ArrayLike:
    """
    1D Gaussian kernel.

    Parameters
    ----------
    sigma : float
        Standard deviation of the Gaussian.
    radius : int | None
        Number of samples on each side of zero. If None, computed as
        round(truncate * sigma), at least 1.
    truncate : float
        Truncation in standard deviations if radius is None.
    normalize : bool
        If True, kernel sums to 1.

    Returns
    -------
    w : ndarray, shape (2*radius+1,)
    """
    if sigma <= 0:
        raise ValueError("sigma must be positive")

    if radius is None:
        radius = max(1, int(truncate * sigma + 0.5))
    elif radius < 0:
        raise ValueError("radius must be non-negative")

    x = np.arange(-radius, radius + 1, dtype=np.float64)
    g = np.exp(-0.5 * (x / sigma) ** 2)

    if normalize:
        g_sum = g.sum()
        if g_sum != 0:
            g /= g_sum
    return g


def gaussian_kernel(
    sigmas: Union[float, Sequence[float]],
    ndim: Optional[int] = None,
    factory: Optional[FieldFactory] = None,
    truncate: float = 3.0,
    normalize: bool = True,
) -> Field:
    """
    Separable N-D Gaussian kernel: the outer product of one 1D Gaussian per
    dimension.

    Parameters
    ----------
    sigmas : float | sequence[float]
        One sigma per dimension, or a single sigma replicated ``ndim`` times.
    ndim : int | None
        Dimension count when ``sigmas`` is a scalar.
    factory : FieldFactory | None
        Allocates the kernel. Default: float32 fields.
    truncate, normalize
        See `gaussian_1d`. Each 1D factor is normalized, so the product sums
        to 1 as well.

    Returns
    -------
    Field
        Zero-origin kernel with odd extent ``2*round(truncate*sigma)+1`` per
        dimension, centered at ``extent // 2``.
    """
    if np.isscalar(sigmas):
        if ndim is None:
            raise ValueError("ndim is required with a scalar sigma")
        sigmas = [float(sigmas)] * int(ndim)
    sigmas = [float(s) for s in sigmas]
    if ndim is not None and len(sigmas) != ndim:
        raise ValueError(f"Got {len(sigmas)} sigmas for {ndim} dimensions")
    if not sigmas:
        raise ValueError("At least one sigma is required")

    factors = [gaussian_1d(s, truncate=truncate, normalize=normalize) for s in sigmas]
    k = factors[0]
    for g in factors[1:]:
        k = np.multiply.outer(k, g)

    if factory is None:
        factory = FieldFactory(np.float32)
    out = factory.create(k.shape)
    out.data[...] = k
    return out
