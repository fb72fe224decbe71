# src/specconv/io/field.py
"""
Field I/O.

- ``.npy``: bare array, origin zero.
- ``.npz``: arrays ``data`` and ``origin``.
- ``.tif`` / ``.tiff``: N-D stacks via imageio.
- other raster formats: 2D greyscale via Pillow.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

import imageio.v3 as iio
import numpy as np
from PIL import Image

from specconv.core.field import Field

ArrayLike = np.ndarray
PathLike = Union[str, Path]

__all__ = [
    "read_field",
    "write_field",
    "as_uint8",
]

_STACK_EXTS = (".tif", ".tiff")


def _pathify(path: PathLike) -> Path:
    return Path(path).expanduser()


def read_field(path: PathLike) -> Field:
    """
    Read a field from disk; the format follows the file suffix.

    Raster images are converted to greyscale ("L") and returned as uint8.
    """
    p = _pathify(path)
    suffix = p.suffix.lower()

    if suffix == ".npy":
        return Field(np.load(p, allow_pickle=False))

    if suffix == ".npz":
        with np.load(p, allow_pickle=False) as archive:
            data = archive["data"]
            origin = tuple(int(o) for o in archive["origin"]) if "origin" in archive.files else ()
        return Field(data, origin=origin)

    if suffix in _STACK_EXTS:
        return Field(np.asarray(iio.imread(p)))

    with Image.open(p) as im:
        arr = np.asarray(im.convert("L"))
    return Field(arr)


def as_uint8(x: ArrayLike) -> np.ndarray:
    """
    Convert an array to uint8 for deterministic image saving.

    Rules
    -----
    - uint8: unchanged
    - float: if min>=0 and max<=1 → scale by 255; else clip to [0, 255]
    - other ints: clipped to [0, 255]
    """
    arr = np.asarray(x)

    if arr.dtype == np.uint8:
        return arr

    if np.issubdtype(arr.dtype, np.floating):
        arr_f = arr.astype(np.float64)
        vmin = float(np.nanmin(arr_f))
        vmax = float(np.nanmax(arr_f))
        if np.isfinite(vmin) and np.isfinite(vmax) and 0.0 <= vmin and vmax <= 1.0 + 1e-8:
            arr_f = arr_f * 255.0
        return np.clip(np.nan_to_num(arr_f), 0.0, 255.0).astype(np.uint8)

    return np.clip(arr.astype(np.float64), 0.0, 255.0).astype(np.uint8)


def write_field(path: PathLike, f: Field) -> None:
    """
    Write ``f`` to disk; the format follows the file suffix.

    Raster formats other than TIFF only take 2D fields and lose the origin
    and the element type (saved as 8-bit greyscale).
    """
    p = _pathify(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = p.suffix.lower()

    if suffix == ".npy":
        np.save(p, f.data, allow_pickle=False)
        return

    if suffix == ".npz":
        np.savez(p, data=f.data, origin=np.asarray(f.origin, dtype=np.int64))
        return

    if suffix in _STACK_EXTS:
        iio.imwrite(p, f.data)
        return

    if f.ndim != 2:
        raise ValueError(f"{suffix} images must be 2D, got shape {f.shape}")
    Image.fromarray(as_uint8(f.data)).save(p)
