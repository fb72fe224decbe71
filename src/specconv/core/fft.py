# src/specconv/core/fft.py
"""FFT utilities and the forward/inverse transform adapters."""
from __future__ import annotations

import logging
import os
import time
from enum import Enum
from typing import Optional, Protocol, Sequence, Tuple, Union

import numpy as np
import scipy.fft as sfft

from specconv.core.field import Field, FieldFactory
from specconv.core.result import Result

logger = logging.getLogger(__name__)

ArrayLike = np.ndarray
AxesLike = Optional[Union[int, Sequence[int]]]

__all__ = [
    "next_fast_len_ge",
    "fftnd",
    "ifftnd",
    "transform_axes",
    "PreProcessing",
    "Rearrangement",
    "SpectralTransform",
    "ForwardTransform",
    "InverseTransform",
    "default_num_threads",
]

# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------

def default_num_threads() -> int:
    return os.cpu_count() or 1


def next_fast_len_ge(n: int, even: bool = False) -> int:
    """
    Return a fast FFT length >= n.

    Parameters
    ----------
    n : int
        Minimum length.
    even : bool
        If True, the returned length is also even (needed for the halved
        dimension of a real-to-complex transform).

    Returns
    -------
    int
        Fast length >= n.
    """
    if n <= 1:
        return 2 if even else 1
    m = int(sfft.next_fast_len(int(n), real=True))
    while even and m % 2:
        m = int(sfft.next_fast_len(m + 1, real=True))
    return m


def _normalize_axes(x: ArrayLike, axes: AxesLike) -> Tuple[int, ...]:
    if axes is None:
        return tuple(range(x.ndim))
    if isinstance(axes, int):
        axes = (axes,)
    # normalize negatives and remove duplicates preserving order
    norm = []
    for a in axes:
        a = int(a)
        if a < 0:
            a += x.ndim
        if a not in norm:
            norm.append(a)
    return tuple(norm)


def transform_axes(ndim: int) -> Tuple[int, ...]:
    """
    Axis order for real transforms: reversed, so dimension 0 is the one
    scipy halves (it halves the last listed axis).
    """
    return tuple(range(ndim - 1, -1, -1))


# ---------------------------------------------------------------------------
# FFT wrappers
# ---------------------------------------------------------------------------

def fftnd(
    x: ArrayLike,
    axes: AxesLike = None,
    real_input: bool = False,
    n: Optional[Sequence[int]] = None,
    workers: Optional[int] = None,
) -> ArrayLike:
    """
    Multi-dimensional FFT wrapper.

    Parameters
    ----------
    x : ndarray
        Input.
    axes : int | sequence[int] | None
        Axes to transform. Default: all axes. With ``real_input`` the last
        listed axis is halved.
    real_input : bool
        If True, use real-to-complex FFT (rfftn). Otherwise use complex FFT (fftn).
    n : sequence[int] | None
        Optional FFT lengths per axis (in the same order as `axes`).
    workers : int | None
        Parallel workers handed to scipy.fft.

    Returns
    -------
    ndarray
        Frequency-domain array.
    """
    axes_t = _normalize_axes(x, axes)
    if real_input:
        return sfft.rfftn(x, s=n, axes=axes_t, workers=workers)
    return sfft.fftn(x, s=n, axes=axes_t, workers=workers)


def ifftnd(
    X: ArrayLike,
    axes: AxesLike = None,
    real_output: bool = False,
    n: Optional[Sequence[int]] = None,
    workers: Optional[int] = None,
) -> ArrayLike:
    """
    Multi-dimensional inverse FFT wrapper.

    Parameters
    ----------
    X : ndarray
        Frequency-domain input.
    axes : int | sequence[int] | None
        Axes to transform. Default: all axes.
    real_output : bool
        If True, use irfftn (expects last listed axis to be rfft-sized).
        Otherwise use ifftn.
    n : sequence[int] | None
        Optional output lengths per axis (in the same order as `axes`).
    workers : int | None
        Parallel workers handed to scipy.fft.

    Returns
    -------
    ndarray
        Spatial-domain array. For `real_output=True` the dtype will be real.
    """
    axes_t = _normalize_axes(X, axes)
    if real_output:
        return sfft.irfftn(X, s=n, axes=axes_t, workers=workers)
    return sfft.ifftn(X, s=n, axes=axes_t, workers=workers)


# ---------------------------------------------------------------------------
# Transform policies
# ---------------------------------------------------------------------------

class PreProcessing(str, Enum):
    """How a field is extended beyond its bounds before transforming."""

    NONE = "none"
    EXTEND_MIRROR = "extend-mirror"
    EXTEND_ZERO = "extend-zero"


class Rearrangement(str, Enum):
    """Whether spectrum quadrants are swapped after the forward transform."""

    UNCHANGED = "unchanged"
    REARRANGE_QUADRANTS = "rearrange-quadrants"


_NP_PAD_MODES = {
    PreProcessing.EXTEND_MIRROR: "reflect",
    PreProcessing.EXTEND_ZERO: "constant",
}


def _shift_axes(ndim: int) -> Tuple[int, ...]:
    # dimension 0 is halved by the real transform and is never shifted
    return tuple(range(1, ndim))


def _real_dtype_for(spectrum_dtype: np.dtype) -> np.dtype:
    return np.dtype(np.float32) if np.dtype(spectrum_dtype) == np.complex64 else np.dtype(np.float64)


class SpectralTransform(Protocol):
    """Run/inspect contract shared by the transform adapters and the orchestrator."""

    num_threads: int

    def check_input(self) -> Result: ...

    def process(self) -> Result: ...

    @property
    def result(self) -> Optional[Field]: ...

    @property
    def error_message(self) -> str: ...

    @property
    def processing_time(self) -> float: ...


# ---------------------------------------------------------------------------
# Forward transform
# ---------------------------------------------------------------------------

class ForwardTransform:
    """
    Real-to-complex N-D transform of a field, with boundary extension.

    The padded size along each dimension is ``extent + image_extension`` rounded
    up to a fast FFT length (dimension 0 additionally even). Dimension 0 of the
    spectrum is halved: ``padded[0] // 2 + 1``.

    Parameters
    ----------
    field : Field
        Real-valued input.
    spectrum_factory : FieldFactory
        Allocates the complex spectrum.
    pre_processing : PreProcessing
        Boundary policy. With ``NONE`` the field is transformed at its own size.
    rearrangement : Rearrangement
        Quadrant policy for the produced spectrum.
    image_extension : sequence[int] | None
        Extra samples per dimension (split before/after the field).
    fast_lengths : bool
        Round padded sizes up to fast FFT lengths.
    """

    def __init__(
        self,
        field: Optional[Field],
        spectrum_factory: FieldFactory,
        pre_processing: PreProcessing = PreProcessing.EXTEND_MIRROR,
        rearrangement: Rearrangement = Rearrangement.UNCHANGED,
        image_extension: Optional[Sequence[int]] = None,
        fast_lengths: bool = True,
        num_threads: Optional[int] = None,
    ) -> None:
        self.field = field
        self.spectrum_factory = spectrum_factory
        self.pre_processing = PreProcessing(pre_processing)
        self.rearrangement = Rearrangement(rearrangement)
        self.image_extension = tuple(image_extension) if image_extension is not None else None
        self.fast_lengths = bool(fast_lengths)
        self.num_threads = num_threads or default_num_threads()

        self.padded_shape: Optional[Tuple[int, ...]] = None
        self.offsets: Optional[Tuple[int, ...]] = None
        self._result: Optional[Field] = None
        self._error_message = ""
        self._processing_time = 0.0

    @property
    def result(self) -> Optional[Field]:
        return self._result

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def processing_time(self) -> float:
        return self._processing_time

    @property
    def source_shape(self) -> Tuple[int, ...]:
        return self.field.shape

    @property
    def source_origin(self) -> Tuple[int, ...]:
        return self.field.origin

    def _fail(self, message: str) -> Result:
        self._error_message = message
        return Result.failure(None, message)

    def _extension(self) -> Tuple[int, ...]:
        if self.image_extension is None:
            return (0,) * self.field.ndim
        return tuple(int(e) for e in self.image_extension)

    def _plan(self) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        """Padded shape and per-dimension offset of the field inside it."""
        shape = self.field.shape
        if self.pre_processing is PreProcessing.NONE:
            return shape, (0,) * len(shape)

        padded = []
        for d, (n, e) in enumerate(zip(shape, self._extension())):
            target = n + e
            if self.fast_lengths:
                target = next_fast_len_ge(target, even=(d == 0))
            elif d == 0 and target % 2:
                target += 1
            padded.append(target)
        offsets = tuple((p - n) // 2 for p, n in zip(padded, shape))
        return tuple(padded), offsets

    def check_input(self) -> Result:
        if self._error_message:
            return Result.failure(None, self._error_message)
        if self.field is None:
            return self._fail("Input field is missing")
        if self.field.ndim == 0:
            return self._fail("Input field has no dimensions")
        if any(n == 0 for n in self.field.shape):
            return self._fail(f"Input field is empty (shape {self.field.shape})")
        if self.field.dtype.kind not in ("i", "u", "f"):
            return self._fail(f"Input field has non-real element type {self.field.dtype}")

        ext = self._extension()
        if len(ext) != self.field.ndim:
            return self._fail(
                f"Image extension has {len(ext)} entries, field has {self.field.ndim} dimensions"
            )
        if any(e < 0 for e in ext):
            return self._fail(f"Image extension must be non-negative, got {ext}")

        if self.pre_processing is PreProcessing.NONE:
            if any(ext):
                return self._fail("Image extension requires a pre-processing policy other than NONE")
            if self.field.dimension(0) % 2:
                return self._fail(
                    f"Dimension 0 must be even without pre-processing ({self.field.dimension(0)})"
                )
        return Result.success()

    def process(self) -> Result:
        start = time.perf_counter()

        padded_shape, offsets = self._plan()
        real_dtype = _real_dtype_for(self.spectrum_factory.dtype)
        x = self.field.data.astype(real_dtype, copy=False)

        if self.pre_processing is not PreProcessing.NONE:
            pads = tuple((o, p - n - o) for p, n, o in zip(padded_shape, x.shape, offsets))
            x = np.pad(x, pad_width=pads, mode=_NP_PAD_MODES[self.pre_processing])

        logger.debug(
            "forward transform %s -> padded %s (%s, %s)",
            self.field.shape, padded_shape, self.pre_processing.value, self.rearrangement.value,
        )

        axes = transform_axes(x.ndim)
        try:
            X = fftnd(x, axes=axes, real_input=True, workers=self.num_threads)
        except (ValueError, MemoryError) as exc:
            logger.warning("forward transform of %s failed: %s", padded_shape, exc)
            return self._fail(str(exc))

        if self.rearrangement is Rearrangement.REARRANGE_QUADRANTS and X.ndim > 1:
            X = sfft.fftshift(X, axes=_shift_axes(X.ndim))

        spectrum = self.spectrum_factory.create(X.shape)
        spectrum.data[...] = X

        self.padded_shape = padded_shape
        self.offsets = offsets
        self._result = spectrum
        self._processing_time = time.perf_counter() - start
        return Result.success(spectrum)


# ---------------------------------------------------------------------------
# Inverse transform
# ---------------------------------------------------------------------------

class InverseTransform:
    """
    Complex-to-real inverse of a :class:`ForwardTransform`.

    Recovers the padded size, the crop offsets and the quadrant policy from the
    forward adapter that produced ``spectrum`` so the result has the original
    field's extent and origin, in the element type of ``image_factory``.
    """

    def __init__(
        self,
        spectrum: Optional[Field],
        image_factory: FieldFactory,
        forward: Optional[ForwardTransform],
        num_threads: Optional[int] = None,
    ) -> None:
        self.spectrum = spectrum
        self.image_factory = image_factory
        self.forward = forward
        self.num_threads = num_threads or default_num_threads()

        self._result: Optional[Field] = None
        self._error_message = ""
        self._processing_time = 0.0

    @property
    def result(self) -> Optional[Field]:
        return self._result

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def processing_time(self) -> float:
        return self._processing_time

    def _fail(self, message: str) -> Result:
        self._error_message = message
        return Result.failure(None, message)

    def check_input(self) -> Result:
        if self._error_message:
            return Result.failure(None, self._error_message)
        if self.spectrum is None:
            return self._fail("Spectrum is missing")
        if self.forward is None or self.forward.padded_shape is None:
            return self._fail("Forward transform has not been processed")
        if self.spectrum.dtype.kind != "c":
            return self._fail(f"Spectrum has non-complex element type {self.spectrum.dtype}")

        padded = self.forward.padded_shape
        expected = (padded[0] // 2 + 1,) + tuple(padded[1:])
        if self.spectrum.shape != expected:
            return self._fail(
                f"Spectrum shape {self.spectrum.shape} does not match forward transform {expected}"
            )
        return Result.success()

    def _cast(self, y: np.ndarray) -> np.ndarray:
        dtype = self.image_factory.dtype
        if dtype.kind in ("i", "u"):
            info = np.iinfo(dtype)
            return np.clip(np.rint(y), info.min, info.max).astype(dtype)
        return y.astype(dtype, copy=False)

    def process(self) -> Result:
        start = time.perf_counter()

        fwd = self.forward
        X = self.spectrum.data
        if fwd.rearrangement is Rearrangement.REARRANGE_QUADRANTS and X.ndim > 1:
            X = sfft.ifftshift(X, axes=_shift_axes(X.ndim))

        axes = transform_axes(X.ndim)
        s = tuple(fwd.padded_shape[a] for a in axes)
        try:
            y = ifftnd(X, axes=axes, real_output=True, n=s, workers=self.num_threads)
        except (ValueError, MemoryError) as exc:
            logger.warning("inverse transform to %s failed: %s", fwd.padded_shape, exc)
            return self._fail(str(exc))

        crop = tuple(slice(o, o + n) for o, n in zip(fwd.offsets, fwd.source_shape))
        out = self.image_factory.create(fwd.source_shape, origin=fwd.source_origin)
        out.data[...] = self._cast(y[crop])

        self._result = out
        self._processing_time = time.perf_counter() - start
        return Result.success(out)
