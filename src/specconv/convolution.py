# src/specconv/convolution.py
"""
Convolution of N-D fields in Fourier space.

:class:`FourierConvolution` keeps the spectra of the image and of the kernel
between calls, so a series of images can be convolved with one kernel (or one
image with a series of kernels) without transforming the fixed operand again.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple, Union

import numpy as np

from specconv.config import ConvolutionSettings
from specconv.core.fft import (
    ForwardTransform,
    InverseTransform,
    PreProcessing,
    default_num_threads,
)
from specconv.core.field import Field, FieldFactory, as_field
from specconv.core.result import ConvolutionError, Result, Stage
from specconv.core.spectral import kernel_template_shape, multiply_spectra, wrap_kernel

logger = logging.getLogger(__name__)

FieldLike = Union[Field, np.ndarray]

__all__ = [
    "FourierConvolution",
    "ConvolutionError",
    "fourier_convolve",
]


class FourierConvolution:
    """
    Convolve ``image`` with ``kernel`` through the convolution theorem.

    The image is mirror-extended by ``kernel_extent - 1`` samples per dimension
    before transforming, so the wraparound of the circular convolution only
    touches the extension, which is cropped away again.

    Parameters
    ----------
    image : Field | ndarray
        Real-valued input. Never modified.
    kernel : Field | ndarray
        Kernel with an odd extent in every dimension. Never modified.
    image_factory : FieldFactory | None
        Allocates the convolved result. Default: the image's element type.
    kernel_factory : FieldFactory | None
        Allocates the kernel template. Default: the kernel's element type.
    spectrum_factory : FieldFactory | None
        Allocates spectra. Default: derived from the image's element type.
    settings : ConvolutionSettings | None
        Threads, boundary and quadrant policies.
    forward_transform, inverse_transform : callable
        Adapter classes (see :class:`~specconv.core.fft.SpectralTransform`).

    Raises
    ------
    IncompatibleTypeError
        When ``spectrum_factory`` is derived and the image's element type has
        no complex floating-point counterpart.
    """

    def __init__(
        self,
        image: Optional[FieldLike],
        kernel: Optional[FieldLike],
        image_factory: Optional[FieldFactory] = None,
        kernel_factory: Optional[FieldFactory] = None,
        spectrum_factory: Optional[FieldFactory] = None,
        *,
        settings: Optional[ConvolutionSettings] = None,
        forward_transform: Callable[..., ForwardTransform] = ForwardTransform,
        inverse_transform: Callable[..., InverseTransform] = InverseTransform,
    ) -> None:
        self.image = as_field(image)
        self.kernel = as_field(kernel)
        self.settings = settings if settings is not None else ConvolutionSettings()

        if image_factory is None and self.image is not None:
            image_factory = FieldFactory.like(self.image)
        if kernel_factory is None and self.kernel is not None:
            kernel_factory = FieldFactory.like(self.kernel)
        if spectrum_factory is None and self.image is not None:
            spectrum_factory = FieldFactory.complex_for(self.image)
        self.image_factory = image_factory
        self.kernel_factory = kernel_factory
        self.spectrum_factory = spectrum_factory

        self.forward_transform = forward_transform
        self.inverse_transform = inverse_transform

        self.image_spectrum: Optional[Field] = None
        self.kernel_spectrum: Optional[Field] = None
        self._image_fft: Optional[ForwardTransform] = None
        # margin the cached image spectrum was padded with
        self._image_extension: Tuple[int, ...] = ()

        self._result: Optional[Field] = None
        self._error_message = ""
        self._processing_time = 0.0
        self._validated = False
        self.num_threads = self.settings.num_threads or default_num_threads()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def result(self) -> Optional[Field]:
        return self._result

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def processing_time(self) -> float:
        """Wall-clock seconds of the last successful ``process()`` call."""
        return self._processing_time

    def set_num_threads(self, num_threads: Optional[int] = None) -> None:
        """Set the transform workers; None restores the number of CPUs."""
        self.num_threads = num_threads or default_num_threads()

    # ------------------------------------------------------------------
    # Operand replacement
    # ------------------------------------------------------------------

    def replace_input(self, image: Optional[FieldLike]) -> Result:
        """Swap the image; only the image spectrum has to be recomputed."""
        self.image = as_field(image)
        self.image_spectrum = None
        self._image_fft = None
        self._image_extension = ()
        self._error_message = ""
        # kernel oddness still holds, only the new image needs a look
        self._validated = (
            self._validated
            and self.image is not None
            and self.kernel is not None
            and self.image.ndim == self.kernel.ndim
        )
        logger.debug("image replaced, image spectrum invalidated")
        return Result.success()

    def replace_kernel(self, kernel: Optional[FieldLike]) -> Result:
        """Swap the kernel; only the kernel spectrum has to be recomputed."""
        self.kernel = as_field(kernel)
        self.kernel_spectrum = None
        self._error_message = ""
        self._validated = False
        logger.debug("kernel replaced, kernel spectrum invalidated")
        return Result.success()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _fail(self, stage: Stage, message: str) -> Result:
        self._error_message = message
        logger.warning("%s failed: %s", stage.value, message)
        return Result.failure(stage, message)

    def check_input(self) -> Result:
        if self._error_message:
            return Result.failure(Stage.INPUT, self._error_message)
        if self.image is None:
            return self._fail(Stage.INPUT, "Input image is missing")
        if self.kernel is None:
            return self._fail(Stage.INPUT, "Kernel image is missing")
        if self.image.ndim != self.kernel.ndim:
            return self._fail(
                Stage.INPUT,
                f"Kernel has {self.kernel.ndim} dimensions, image has {self.image.ndim}",
            )
        for d in range(self.kernel.ndim):
            if self.kernel.dimension(d) % 2 != 1:
                return self._fail(
                    Stage.INPUT,
                    f"Kernel has NO odd dimensionality in dim {d} ({self.kernel.dimension(d)})",
                )
        if self.image_factory is None:
            self.image_factory = FieldFactory.like(self.image)
        if self.kernel_factory is None:
            self.kernel_factory = FieldFactory.like(self.kernel)
        if self.spectrum_factory is None:
            self.spectrum_factory = FieldFactory.complex_for(self.image)

        self._validated = True
        return Result.success()

    def _transform_image(self) -> Result:
        # kernel extents are odd: extent - 1 splits evenly before/after
        extension = tuple(n - 1 for n in self.kernel.shape)
        fft = self.forward_transform(
            self.image,
            self.spectrum_factory,
            pre_processing=self.settings.pre_processing,
            rearrangement=self.settings.rearrangement,
            image_extension=extension,
            fast_lengths=self.settings.fast_lengths,
            num_threads=self.num_threads,
        )
        if not fft.check_input() or not fft.process():
            return self._fail(Stage.IMAGE_FFT, "FFT of image failed: " + fft.error_message)

        self._image_fft = fft
        self.image_spectrum = fft.result
        self._image_extension = extension
        logger.debug("image spectrum computed, shape %s", self.image_spectrum.shape)
        return Result.success()

    def _transform_kernel(self) -> Result:
        try:
            template = wrap_kernel(
                self.kernel,
                kernel_template_shape(self.image_spectrum.shape),
                self.kernel_factory,
            )
        except ValueError as exc:
            return self._fail(Stage.KERNEL_FFT, "FFT of kernel failed: " + str(exc))
        fft = self.forward_transform(
            template,
            self.spectrum_factory,
            pre_processing=PreProcessing.NONE,
            rearrangement=self._image_fft.rearrangement,
            num_threads=self.num_threads,
        )
        if not fft.check_input() or not fft.process():
            return self._fail(Stage.KERNEL_FFT, "FFT of kernel failed: " + fft.error_message)

        self.kernel_spectrum = fft.result
        logger.debug("kernel spectrum computed, shape %s", self.kernel_spectrum.shape)
        return Result.success()

    def _needs_wider_extension(self) -> bool:
        if len(self._image_extension) != self.kernel.ndim:
            return True
        return any(n - 1 > e for n, e in zip(self.kernel.shape, self._image_extension))

    def process(self) -> Result:
        """
        Run the convolution.

        Returns
        -------
        Result
            Success carrying the convolved :class:`Field`, or a failure naming
            the stage (image FFT, kernel FFT, inverse FFT) that broke.
        """
        start = time.perf_counter()
        self._error_message = ""

        if not self._validated:
            return self._fail(Stage.INPUT, "check_input() has not succeeded")

        if self.image_spectrum is not None and self._needs_wider_extension():
            # a larger kernel reaches past the margin the cached spectrum was padded with
            logger.debug(
                "kernel %s needs more than extension %s, rebuilding image spectrum",
                self.kernel.shape, self._image_extension,
            )
            self.image_spectrum = None
            self._image_fft = None
            self._image_extension = ()

        if self.image_spectrum is None:
            res = self._transform_image()
            if not res:
                return res
        else:
            logger.debug("reusing cached image spectrum")

        if self.kernel_spectrum is not None and self.kernel_spectrum.shape != self.image_spectrum.shape:
            # a replaced image of another size needs a template of another size
            logger.debug(
                "kernel spectrum %s does not fit image spectrum %s, rebuilding",
                self.kernel_spectrum.shape, self.image_spectrum.shape,
            )
            self.kernel_spectrum = None

        if self.kernel_spectrum is None:
            res = self._transform_kernel()
            if not res:
                return res
        else:
            logger.debug("reusing cached kernel spectrum")

        product = self.spectrum_factory.create(self.image_spectrum.shape)
        multiply_spectra(self.image_spectrum.data, self.kernel_spectrum.data, out=product.data)

        inv = self.inverse_transform(
            product,
            self.image_factory,
            self._image_fft,
            num_threads=self.num_threads,
        )
        if not inv.check_input() or not inv.process():
            return self._fail(Stage.INVERSE_FFT, "InverseFFT of image failed: " + inv.error_message)

        self._result = inv.result
        self._processing_time = time.perf_counter() - start
        logger.debug("convolution done in %.3f ms", 1e3 * self._processing_time)
        return Result.success(self._result)


def fourier_convolve(
    image: FieldLike,
    kernel: FieldLike,
    settings: Optional[ConvolutionSettings] = None,
    **kwargs,
) -> Field:
    """
    One-shot convolution of ``image`` with ``kernel``.

    Extra keyword arguments (factories, transform adapters) are passed on to
    :class:`FourierConvolution`.

    Raises
    ------
    ConvolutionError
        If validation or any transform stage fails.
    """
    conv = FourierConvolution(image, kernel, settings=settings, **kwargs)
    res = conv.check_input()
    if res:
        res = conv.process()
    return res.unwrap()
