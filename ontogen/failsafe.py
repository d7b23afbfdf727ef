"""Fail-safe wrappers so one failing layer never aborts the others."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple, TypeVar

from .logging import get_logger
from .models import BuildResult

logger = get_logger("failsafe")

T = TypeVar("T")


def safe_layer_build(
    layer: str, build: Callable[[], Tuple[T, BuildResult]]
) -> Tuple[Optional[T], BuildResult]:
    """Run ``build`` and convert any exception into a failed result for ``layer``."""
    started = time.perf_counter()
    try:
        return build()
    except Exception as exc:
        message = _format_error(exc)
        logger.warning("%s layer build failed: %s", layer.capitalize(), message)
        logger.debug("Layer failure details", exc_info=True)
        return None, BuildResult(
            layer=layer,
            success=False,
            duration=int((time.perf_counter() - started) * 1000),
            error=message,
        )


def _format_error(exc: BaseException) -> str:
    text = " ".join(str(exc).split())
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


__all__ = ["safe_layer_build"]
