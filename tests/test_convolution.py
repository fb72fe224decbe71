# tests/test_convolution.py
import numpy as np
import pytest
from scipy import ndimage

from specconv import ConvolutionSettings, FourierConvolution, fourier_convolve
from specconv.core.fft import ForwardTransform, InverseTransform, PreProcessing, Rearrangement
from specconv.core.field import Field, FieldFactory, IncompatibleTypeError
from specconv.core.result import ConvolutionError, Stage
from specconv.kernels import gaussian_kernel


def _delta(shape, value=1.0, dtype=np.float64):
    k = np.zeros(shape, dtype=dtype)
    k[tuple(n // 2 for n in shape)] = value
    return k


def _run(conv):
    res = conv.check_input()
    assert res, res.message
    res = conv.process()
    assert res, res.message
    return res.value


class CountingForward(ForwardTransform):
    calls = []

    def process(self):
        CountingForward.calls.append(self.pre_processing)
        return super().process()


class FailingKernelForward(ForwardTransform):
    def process(self):
        if self.pre_processing is PreProcessing.NONE:
            return self._fail("out of memory")
        return super().process()


class FailingInverse(InverseTransform):
    def process(self):
        return self._fail("boom")


@pytest.mark.parametrize("shape", [(20,), (21,), (12, 17), (13, 8), (6, 7, 5)])
def test_identity_kernel_returns_input(shape):
    rng = np.random.default_rng(0)
    img = rng.standard_normal(shape)
    out = _run(FourierConvolution(img, _delta((3,) * len(shape))))
    assert out.shape == img.shape
    np.testing.assert_allclose(out.data, img, rtol=1e-10, atol=1e-10)


def test_scaled_delta_scales_input():
    rng = np.random.default_rng(1)
    img = rng.random((16, 11))
    out = _run(FourierConvolution(img, _delta((5, 3), value=2.5)))
    np.testing.assert_allclose(out.data, 2.5 * img, rtol=1e-10, atol=1e-10)


def test_matches_spatial_mirror_convolution():
    rng = np.random.default_rng(2)
    img = rng.standard_normal((20, 17))
    ker = rng.standard_normal((5, 7))
    out = _run(FourierConvolution(img, ker))
    ref = ndimage.convolve(img, ker, mode="mirror")
    np.testing.assert_allclose(out.data, ref, rtol=1e-9, atol=1e-9)


def test_zero_extension_matches_spatial_constant_convolution():
    rng = np.random.default_rng(11)
    img = rng.standard_normal((13, 10))
    ker = rng.standard_normal((5, 3))
    out = _run(FourierConvolution(
        img, ker, settings=ConvolutionSettings(pre_processing="extend-zero")
    ))
    ref = ndimage.convolve(img, ker, mode="constant", cval=0.0)
    np.testing.assert_allclose(out.data, ref, rtol=1e-9, atol=1e-9)


def test_asymmetric_kernel_is_not_shifted():
    img = np.zeros((9, 9))
    img[4, 4] = 1.0
    ker = np.zeros((3, 3))
    ker[0, 2] = 1.0
    out = _run(FourierConvolution(img, ker))
    # convolving a centered impulse reproduces the (flipped-index) kernel around it
    expected = np.zeros((9, 9))
    expected[3, 5] = 1.0
    np.testing.assert_allclose(out.data, expected, atol=1e-12)


def test_quadrant_rearrangement_gives_same_result():
    rng = np.random.default_rng(3)
    img = rng.standard_normal((14, 9))
    ker = rng.standard_normal((3, 5))
    a = _run(FourierConvolution(img, ker))
    b = _run(FourierConvolution(
        img, ker, settings=ConvolutionSettings(rearrangement=Rearrangement.REARRANGE_QUADRANTS)
    ))
    np.testing.assert_allclose(a.data, b.data, rtol=1e-10, atol=1e-10)


def test_result_keeps_origin_and_dtype():
    img = Field(np.arange(60, dtype=np.uint8).reshape(6, 10), origin=(5, -4))
    out = _run(FourierConvolution(img, Field(_delta((3, 3)), origin=(-1, -1))))
    assert out.origin == (5, -4)
    assert out.dtype == np.uint8
    np.testing.assert_array_equal(out.data, img.data)


def test_even_kernel_is_rejected():
    conv = FourierConvolution(np.ones((8, 8)), np.ones((3, 4)))
    res = conv.check_input()
    assert not res
    assert res.stage is Stage.INPUT
    assert conv.error_message == "Kernel has NO odd dimensionality in dim 1 (4)"
    # sticky until an operand is replaced
    assert not conv.check_input()


def test_missing_operands_and_dimension_mismatch():
    conv = FourierConvolution(None, np.ones((3, 3)))
    assert not conv.check_input()
    assert conv.error_message == "Input image is missing"

    conv = FourierConvolution(np.ones((4, 4)), None)
    assert not conv.check_input()
    assert conv.error_message == "Kernel image is missing"

    conv = FourierConvolution(np.ones((4, 4)), np.ones((3,)))
    assert not conv.check_input()
    assert "dimensions" in conv.error_message


def test_process_requires_check_input():
    conv = FourierConvolution(np.ones((4, 4)), np.ones((3, 3)))
    res = conv.process()
    assert not res
    assert res.stage is Stage.INPUT
    assert conv.result is None


def test_spectrum_factory_derivation_can_fail():
    with pytest.raises(IncompatibleTypeError):
        FourierConvolution(np.ones((4, 4), dtype=bool), np.ones((3, 3)))


def test_replace_kernel_reuses_image_spectrum():
    CountingForward.calls = []
    rng = np.random.default_rng(4)
    img = rng.standard_normal((24, 20))
    conv = FourierConvolution(img, _delta((3, 3)), forward_transform=CountingForward)
    first = _run(conv)
    image_spectrum = conv.image_spectrum
    kernel_spectrum = conv.kernel_spectrum

    conv.replace_kernel(_delta((3, 3), value=3.0))
    assert conv.kernel_spectrum is None
    assert conv.image_spectrum is image_spectrum

    second = _run(conv)
    assert conv.image_spectrum is image_spectrum
    assert conv.kernel_spectrum is not kernel_spectrum
    np.testing.assert_allclose(second.data, 3.0 * first.data, rtol=1e-10, atol=1e-10)
    # the image is not transformed again: only the kernel template goes through the adapter
    assert CountingForward.calls == [PreProcessing.EXTEND_MIRROR, PreProcessing.NONE, PreProcessing.NONE]
    assert conv.processing_time > 0


def test_replace_kernel_with_larger_kernel_rebuilds_image_spectrum():
    CountingForward.calls = []
    rng = np.random.default_rng(9)
    img = rng.standard_normal((20, 20))
    conv = FourierConvolution(img, _delta((3, 3)), forward_transform=CountingForward)
    _run(conv)
    image_spectrum = conv.image_spectrum

    ker = rng.standard_normal((11, 11))
    conv.replace_kernel(ker)
    out = _run(conv)
    assert conv.image_spectrum is not image_spectrum
    assert CountingForward.calls[2:] == [PreProcessing.EXTEND_MIRROR, PreProcessing.NONE]
    np.testing.assert_allclose(out.data, ndimage.convolve(img, ker, mode="mirror"), rtol=1e-9, atol=1e-9)


def test_replace_kernel_with_smaller_kernel_keeps_image_spectrum():
    rng = np.random.default_rng(10)
    img = rng.standard_normal((15, 12))
    conv = FourierConvolution(img, rng.standard_normal((7, 5)))
    _run(conv)
    image_spectrum = conv.image_spectrum

    ker = rng.standard_normal((3, 3))
    conv.replace_kernel(ker)
    out = _run(conv)
    assert conv.image_spectrum is image_spectrum
    np.testing.assert_allclose(out.data, ndimage.convolve(img, ker, mode="mirror"), rtol=1e-9, atol=1e-9)


def test_kernel_larger_than_tiny_image_after_replace():
    img = np.array([[1.0, 2.0], [3.0, 4.0]])
    conv = FourierConvolution(img, _delta((3, 3)))
    _run(conv)

    conv.replace_kernel(np.ones((9, 9)))
    assert conv.check_input()
    res = conv.process()
    assert res, res.message
    assert res.value.shape == (2, 2)
    np.testing.assert_allclose(
        res.value.data, ndimage.convolve(img, np.ones((9, 9)), mode="mirror"), rtol=1e-9, atol=1e-9
    )


def test_replace_input_reuses_kernel_spectrum_without_revalidation():
    CountingForward.calls = []
    rng = np.random.default_rng(5)
    ker = gaussian_kernel(1.0, ndim=2, factory=FieldFactory(np.float64))
    conv = FourierConvolution(rng.random((16, 16)), ker, forward_transform=CountingForward)
    _run(conv)
    kernel_spectrum = conv.kernel_spectrum
    assert len(CountingForward.calls) == 2

    img2 = rng.random((16, 16))
    assert conv.replace_input(img2)
    assert conv.image_spectrum is None
    assert conv.kernel_spectrum is kernel_spectrum

    # no check_input() between the calls
    res = conv.process()
    assert res, res.message
    assert conv.kernel_spectrum is kernel_spectrum
    assert CountingForward.calls[2:] == [PreProcessing.EXTEND_MIRROR]
    ref = ndimage.convolve(img2, ker.data, mode="mirror")
    np.testing.assert_allclose(res.value.data, ref, rtol=1e-9, atol=1e-9)


def test_repeated_process_gives_identical_results():
    rng = np.random.default_rng(6)
    img = rng.standard_normal((10, 12))
    ker = rng.standard_normal((3, 3))
    conv = FourierConvolution(img, ker)
    a = _run(conv)
    b = conv.process().value
    assert a is not b
    np.testing.assert_allclose(a.data, b.data, rtol=0, atol=1e-12)


def test_replace_input_with_other_size_rebuilds_kernel_spectrum():
    rng = np.random.default_rng(7)
    ker = rng.standard_normal((3, 3))
    conv = FourierConvolution(rng.standard_normal((10, 10)), ker)
    _run(conv)
    img2 = rng.standard_normal((31, 7))
    conv.replace_input(img2)
    res = conv.process()
    assert res, res.message
    np.testing.assert_allclose(
        res.value.data, ndimage.convolve(img2, ker, mode="mirror"), rtol=1e-9, atol=1e-9
    )


def test_image_fft_failure_is_reported():
    img = np.zeros((6, 6), dtype=np.complex128)
    conv = FourierConvolution(img, np.ones((3, 3)), spectrum_factory=FieldFactory(np.complex128))
    assert conv.check_input()
    res = conv.process()
    assert not res
    assert res.stage is Stage.IMAGE_FFT
    assert res.message.startswith("FFT of image failed: ")
    assert "non-real" in conv.error_message
    assert conv.image_spectrum is None
    assert conv.result is None


def test_kernel_fft_failure_keeps_image_spectrum_for_retry():
    rng = np.random.default_rng(8)
    img = rng.standard_normal((12, 12))
    conv = FourierConvolution(img, _delta((3, 3)), forward_transform=FailingKernelForward)
    assert conv.check_input()
    res = conv.process()
    assert not res
    assert res.stage is Stage.KERNEL_FFT
    assert conv.error_message == "FFT of kernel failed: out of memory"
    image_spectrum = conv.image_spectrum
    assert image_spectrum is not None
    assert conv.kernel_spectrum is None
    assert conv.result is None

    conv.forward_transform = ForwardTransform
    res = conv.process()
    assert res, res.message
    assert conv.image_spectrum is image_spectrum
    assert conv.error_message == ""
    np.testing.assert_allclose(res.value.data, img, rtol=1e-10, atol=1e-10)


class NoMarginForward(ForwardTransform):
    def __init__(self, field, spectrum_factory, **kwargs):
        kwargs["image_extension"] = None
        super().__init__(field, spectrum_factory, **kwargs)


def test_kernel_not_fitting_template_is_a_kernel_fft_failure():
    conv = FourierConvolution(np.ones((2, 2)), np.ones((3, 3)), forward_transform=NoMarginForward)
    assert conv.check_input()
    res = conv.process()
    assert not res
    assert res.stage is Stage.KERNEL_FFT
    assert conv.error_message.startswith("FFT of kernel failed: Kernel extent 3 exceeds template extent")
    assert conv.kernel_spectrum is None
    assert conv.result is None


def test_inverse_failure_keeps_both_spectra():
    conv = FourierConvolution(np.ones((8, 8)), _delta((3, 3)), inverse_transform=FailingInverse)
    assert conv.check_input()
    res = conv.process()
    assert not res
    assert res.stage is Stage.INVERSE_FFT
    assert conv.error_message == "InverseFFT of image failed: boom"
    assert conv.image_spectrum is not None
    assert conv.kernel_spectrum is not None
    assert conv.result is None


def test_num_threads():
    conv = FourierConvolution(np.ones((4, 4)), np.ones((3, 3)), settings=ConvolutionSettings(num_threads=2))
    assert conv.num_threads == 2
    conv.set_num_threads(1)
    assert conv.num_threads == 1
    conv.set_num_threads()
    assert conv.num_threads >= 1


def test_fourier_convolve_raises_on_failure():
    with pytest.raises(ConvolutionError) as excinfo:
        fourier_convolve(np.ones((4, 4)), np.ones((2, 3)))
    assert excinfo.value.result.stage is Stage.INPUT

    out = fourier_convolve(np.ones((4, 5)), _delta((3, 3)))
    np.testing.assert_allclose(out.data, 1.0, atol=1e-12)

    out = fourier_convolve(
        np.ones((4, 5)), _delta((3, 3)), image_factory=FieldFactory(np.float32)
    )
    assert out.dtype == np.float32
