# src/specconv/cli/main.py
"""Command line: Fourier convolution of fields and Gaussian kernel synthesis.

Usage:
    specconv convolve INPUT OUTPUT (--kernel KERNEL | --sigma S [--sigma S ...]) [OPTIONS...]
    specconv gaussian OUTPUT --sigma S [--sigma S ...] [--ndim N]
"""
from __future__ import annotations

import logging
from dataclasses import replace

import click

from specconv import __version__
from specconv.config import ConvolutionSettings, load_settings, save_settings
from specconv.convolution import FourierConvolution
from specconv.core.fft import PreProcessing, Rearrangement
from specconv.io import read_field, write_field
from specconv.kernels import gaussian_kernel

logger = logging.getLogger(__name__)


def _sigma_kernel(sigmas, ndim):
    if len(sigmas) == 1:
        return gaussian_kernel(sigmas[0], ndim=ndim)
    if len(sigmas) != ndim:
        raise click.BadParameter(
            f"got {len(sigmas)} sigmas for a {ndim}-dimensional input", param_hint="--sigma"
        )
    return gaussian_kernel(list(sigmas))


@click.group()
@click.version_option(__version__, prog_name="specconv")
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG logging.")
def main(verbose):
    """Convolution of N-dimensional fields in Fourier space."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", type=click.Path(dir_okay=False))
@click.option("--kernel", "kernel_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Kernel field (odd extent in every dimension).")
@click.option("--sigma", "sigmas", multiple=True, type=float,
              help="Gaussian kernel sigma; once for all dimensions or once per dimension.")
@click.option("--threads", "num_threads", default=None, type=click.IntRange(min=1),
              help="FFT workers (default: all CPUs).")
@click.option("--pre-processing", default=None,
              type=click.Choice([p.value for p in PreProcessing]),
              help="Boundary extension of the image.")
@click.option("--rearrangement", default=None,
              type=click.Choice([r.value for r in Rearrangement]),
              help="Spectrum quadrant policy.")
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Load option defaults from a settings file (json or csv).")
@click.option("--save-settings", "save_settings_path", default=None, type=click.Path(dir_okay=False),
              help="Save the effective settings to a file (json or csv).")
def convolve(input_path, output_path, kernel_path, sigmas, num_threads, pre_processing,
             rearrangement, settings_path, save_settings_path):
    """Convolve INPUT with a kernel and write the result to OUTPUT."""
    if (kernel_path is None) == (not sigmas):
        raise click.UsageError("Give exactly one of --kernel or --sigma.")

    settings = load_settings(settings_path) if settings_path else ConvolutionSettings()
    overrides = {}
    if num_threads is not None:
        overrides["num_threads"] = num_threads
    if pre_processing is not None:
        overrides["pre_processing"] = PreProcessing(pre_processing)
    if rearrangement is not None:
        overrides["rearrangement"] = Rearrangement(rearrangement)
    settings = replace(settings, **overrides)

    if save_settings_path:
        save_settings(save_settings_path, settings)
        logger.info("settings saved to %s", save_settings_path)

    image = read_field(input_path)
    kernel = read_field(kernel_path) if kernel_path else _sigma_kernel(sigmas, image.ndim)

    conv = FourierConvolution(image, kernel, settings=settings)
    res = conv.check_input()
    if res:
        res = conv.process()
    if not res:
        raise click.ClickException(res.message)

    write_field(output_path, conv.result)
    click.echo(f"Saved convolution → {output_path} ({1e3 * conv.processing_time:.1f} ms)")


@main.command()
@click.argument("output_path", type=click.Path(dir_okay=False))
@click.option("--sigma", "sigmas", multiple=True, type=float, required=True,
              help="Sigma; once per dimension, or once together with --ndim.")
@click.option("--ndim", default=None, type=click.IntRange(min=1),
              help="Dimension count for a single --sigma.")
def gaussian(output_path, sigmas, ndim):
    """Write a separable Gaussian kernel to OUTPUT."""
    if len(sigmas) == 1:
        kernel = gaussian_kernel(sigmas[0], ndim=ndim or 1)
    else:
        if ndim is not None and ndim != len(sigmas):
            raise click.UsageError(f"--ndim {ndim} does not match {len(sigmas)} sigmas.")
        kernel = gaussian_kernel(list(sigmas))
    write_field(output_path, kernel)
    click.echo(f"Saved kernel {kernel.shape} → {output_path}")


if __name__ == "__main__":
    main()
