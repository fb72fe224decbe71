"""
specconv.io
===========

Reading and writing fields (``.npy``, ``.npz``, TIFF stacks, raster images).
"""

from .field import read_field, write_field, as_uint8

__all__ = [
    "read_field",
    "write_field",
    "as_uint8",
]
