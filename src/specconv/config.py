# src/specconv/config.py
"""Convolution settings and their JSON / CSV settings files."""
from __future__ import annotations

import csv
import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional, Union

from specconv.core.fft import PreProcessing, Rearrangement

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

__all__ = [
    "ConvolutionSettings",
    "load_settings",
    "save_settings",
]


@dataclass
class ConvolutionSettings:
    """
    Tunables of a :class:`~specconv.convolution.FourierConvolution`.

    Attributes
    ----------
    num_threads : int | None
        Workers for the transforms. None: number of available CPUs.
    pre_processing : PreProcessing
        Boundary policy for the image transform.
    rearrangement : Rearrangement
        Quadrant policy shared by all transforms of one run.
    fast_lengths : bool
        Round padded sizes up to fast FFT lengths.
    """
    num_threads: Optional[int] = None
    pre_processing: PreProcessing = PreProcessing.EXTEND_MIRROR
    rearrangement: Rearrangement = Rearrangement.UNCHANGED
    fast_lengths: bool = True

    def __post_init__(self) -> None:
        self.pre_processing = PreProcessing(self.pre_processing)
        self.rearrangement = Rearrangement(self.rearrangement)
        if self.num_threads is not None:
            self.num_threads = int(self.num_threads)
            if self.num_threads < 1:
                raise ValueError(f"num_threads must be >= 1, got {self.num_threads}")
        self.fast_lengths = _as_bool(self.fast_lengths)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConvolutionSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.debug("ignoring unknown settings keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["pre_processing"] = self.pre_processing.value
        out["rearrangement"] = self.rearrangement.value
        return out


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off", ""):
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return bool(value)


def _parse_csv_value(raw: str) -> Any:
    text = raw.strip()
    if text == "":
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _load_csv(path: Path) -> dict[str, Any]:
    data: dict[str, Any] = {}
    with path.open("r", newline="", encoding="utf-8") as handle:
        for row in csv.reader(handle):
            if not row or not row[0].strip():
                continue
            key = row[0].strip()
            # optional header row
            if key.lower() == "key" and len(row) > 1 and row[1].strip().lower() == "value":
                continue
            data[key] = _parse_csv_value(row[1]) if len(row) > 1 else None
    return data


def load_settings(path: PathLike) -> ConvolutionSettings:
    """
    Read settings from a ``.json`` object or a ``.csv`` key/value file.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the JSON document is not an object or a value is invalid.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Settings file not found: {p}")

    if p.suffix.lower() == ".csv":
        data = _load_csv(p)
    else:
        with p.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must be a JSON object: {p}")

    logger.debug("loaded settings from %s", p)
    return ConvolutionSettings.from_dict(data)


def save_settings(path: PathLike, settings: ConvolutionSettings) -> None:
    """Write ``settings`` as JSON (default) or CSV, chosen by file suffix."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = settings.to_dict()

    if p.suffix.lower() == ".csv":
        with p.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(["key", "value"])
            for key in sorted(data):
                writer.writerow([key, json.dumps(data[key], ensure_ascii=True)])
        return

    with p.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, sort_keys=True, ensure_ascii=True)
        handle.write("\n")
