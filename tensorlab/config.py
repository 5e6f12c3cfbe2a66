from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

BACKENDS = ("fast", "simple")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass
class EngineConfig:
    """
    Switches for the element-wise engine.

    * ``backend`` selects how generated kernels run: ``"fast"`` compiles them
      with numba, ``"simple"`` executes the generated Python directly.
    * ``log_kernel_source`` emits every generated kernel at DEBUG level.
    """

    backend: str = "fast"  # "fast" | "simple"
    log_kernel_source: bool = False

    def normalized(self) -> "EngineConfig":
        backend = (self.backend or "fast").lower()
        if backend not in BACKENDS:
            raise ValueError(f"Unsupported backend: {self.backend}")
        log_source = self.log_kernel_source
        if isinstance(log_source, str):
            log_source = _parse_flag(log_source, "log_kernel_source")
        return EngineConfig(backend=backend, log_kernel_source=bool(log_source))

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if environ is None else environ
        config = cls()
        if "TENSORLAB_BACKEND" in env:
            config.backend = env["TENSORLAB_BACKEND"].strip()
        if "TENSORLAB_LOG_KERNEL_SOURCE" in env:
            config.log_kernel_source = _parse_flag(
                env["TENSORLAB_LOG_KERNEL_SOURCE"], "TENSORLAB_LOG_KERNEL_SOURCE"
            )
        return config.normalized()


def _parse_flag(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"Unsupported value for {name}: {value!r}")
