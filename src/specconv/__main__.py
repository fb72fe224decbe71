"""
Command-line diagnostics for the specconv package.

Usage
-----
$ python -m specconv
"""

import numpy as np

from . import __version__
from .convolution import FourierConvolution
from .core import Field, fftnd, ifftnd
from .kernels import gaussian_kernel


def _diagnostics():
    print(f"specconv Fourier convolution v{__version__}\n")

    print("FFT sanity check:")
    x = np.random.randn(8)
    X = fftnd(x)
    x_rec = ifftnd(X)
    print(f"  input shape: {x.shape}")
    print(f"  reconstructed (real) error: {np.max(np.abs(x - x_rec.real)):.2e}")

    print("\nIdentity kernel:")
    img = Field(np.random.rand(17, 12), origin=(3, -2))
    ident = np.zeros((3, 5))
    ident[1, 2] = 1.0
    conv = FourierConvolution(img, ident)
    if not (conv.check_input() and conv.process()):
        print(f"  failed: {conv.error_message}")
        return
    print(f"  max error: {np.max(np.abs(conv.result.data - img.data)):.2e}")
    print(f"  origin kept: {conv.result.origin}")

    print("\nKernel reuse:")
    cold = conv.processing_time
    conv.replace_kernel(gaussian_kernel([0.3, 0.6]))
    conv.check_input()
    conv.process()
    print(f"  cold run: {1e3 * cold:.2f} ms, cached image spectrum: {1e3 * conv.processing_time:.2f} ms")


if __name__ == "__main__":
    _diagnostics()
