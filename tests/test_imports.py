import specconv
from specconv import io, cli
from specconv.core import ForwardTransform, InverseTransform, wrap_kernel, multiply_spectra


def test_public_api():
    assert specconv.__version__
    assert callable(specconv.FourierConvolution)
    assert callable(specconv.gaussian_kernel)
    assert callable(io.read_field)
    assert callable(cli.main)
    assert ForwardTransform and InverseTransform and wrap_kernel and multiply_spectra
