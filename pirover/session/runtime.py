"""
Process-wide, initialize-once pipeline runtime.

Media libraries need one-time global setup (GStreamer's ``Gst.init``) before
the first pipeline is built. The first session start performs it through the
backend's ``query_runtime``; afterwards the runtime is frozen and never mutated.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pirover.errors import SessionInitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineRuntime:
    name: str
    version: str


_runtime_lock = threading.Lock()
_runtime: Optional[PipelineRuntime] = None


def ensure_runtime(query_runtime: Callable[[], Tuple[str, str]]) -> PipelineRuntime:
    """Run ``query_runtime`` once per process and return the resulting runtime."""
    global _runtime
    with _runtime_lock:
        if _runtime is not None:
            return _runtime
        try:
            name, version = query_runtime()
        except Exception as exc:
            raise SessionInitError(f"pipeline runtime unavailable: {exc}") from exc
        _runtime = PipelineRuntime(str(name), str(version))
        logger.info("pipeline runtime %s %s initialized", _runtime.name, _runtime.version)
        return _runtime


def get_runtime() -> PipelineRuntime:
    runtime = _runtime
    if runtime is None:
        raise SessionInitError("pipeline runtime has not been initialized")
    return runtime


__all__ = ["PipelineRuntime", "ensure_runtime", "get_runtime"]
