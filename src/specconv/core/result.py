# src/specconv/core/result.py
"""Success/failure values carrying the stage that failed."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

__all__ = ["Stage", "Result", "ConvolutionError"]


class Stage(str, Enum):
    """Where in a convolution run a failure happened."""

    INPUT = "input"
    IMAGE_FFT = "image-fft"
    KERNEL_FFT = "kernel-fft"
    INVERSE_FFT = "inverse-fft"


@dataclass(frozen=True)
class Result:
    """
    Outcome of ``check_input`` / ``process`` calls.

    Truthy on success, so ``if not conv.process(): ...`` reads naturally.
    ``value`` holds the produced object on success; ``stage`` and ``message``
    describe a failure.
    """
    ok: bool
    value: Any = None
    stage: Optional[Stage] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, stage: Optional[Stage], message: str) -> "Result":
        return cls(ok=False, stage=stage, message=message)

    def unwrap(self) -> Any:
        """Return ``value`` or raise ``ConvolutionError`` for failures."""
        if not self.ok:
            raise ConvolutionError(self)
        return self.value


class ConvolutionError(RuntimeError):
    """A failed ``Result`` escalated to an exception."""

    def __init__(self, result: Result) -> None:
        stage = result.stage.value if result.stage is not None else "unknown"
        super().__init__(f"[{stage}] {result.message}")
        self.result = result
