"""
specconv.core
=============

Building blocks of Fourier-space convolution.

Submodules
----------
- :mod:`specconv.core.field`    : Fields with an origin offset and their factories.
- :mod:`specconv.core.result`   : Stage-tagged success/failure values.
- :mod:`specconv.core.fft`      : FFT wrappers and the forward/inverse transform adapters.
- :mod:`specconv.core.spectral` : Wrapped kernel templates and spectrum multiplication.
"""

from .field import Field, FieldFactory, IncompatibleTypeError, as_field
from .result import Stage, Result, ConvolutionError
from .fft import (
    next_fast_len_ge,
    fftnd,
    ifftnd,
    PreProcessing,
    Rearrangement,
    SpectralTransform,
    ForwardTransform,
    InverseTransform,
)
from .spectral import (
    kernel_template_shape,
    wrap_kernel,
    multiply_spectra,
)

__all__ = [
    # field
    "Field",
    "FieldFactory",
    "IncompatibleTypeError",
    "as_field",
    # result
    "Stage",
    "Result",
    "ConvolutionError",
    # fft
    "next_fast_len_ge",
    "fftnd",
    "ifftnd",
    "PreProcessing",
    "Rearrangement",
    "SpectralTransform",
    "ForwardTransform",
    "InverseTransform",
    # spectral
    "kernel_template_shape",
    "wrap_kernel",
    "multiply_spectra",
]
