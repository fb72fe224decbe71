"""
specconv
Convolution of N-dimensional fields in Fourier space.
"""

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("specconv")
except _metadata.PackageNotFoundError:
    # Not installed (dev mode)
    __version__ = "0.0.0.dev0"

from .core import Field, FieldFactory, Result, Stage, ConvolutionError  # noqa: E402
from .config import ConvolutionSettings, load_settings, save_settings  # noqa: E402
from .convolution import FourierConvolution, fourier_convolve  # noqa: E402
from .kernels import gaussian_1d, gaussian_kernel  # noqa: E402

__all__ = [
    "Field",
    "FieldFactory",
    "Result",
    "Stage",
    "ConvolutionError",
    "ConvolutionSettings",
    "load_settings",
    "save_settings",
    "FourierConvolution",
    "fourier_convolve",
    "gaussian_1d",
    "gaussian_kernel",
    "__version__",
]
