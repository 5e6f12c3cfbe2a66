from __future__ import annotations

from typing import Any, Callable, Dict

import numpy as np
from numba import njit, prange

from . import operators
from .tensor_ops import TensorOps, _exec_source

# Helper functions for njit kernels.
_JIT_HELPERS: Dict[str, Callable] = {
    name: njit(error_model="numpy")(fn) for name, fn in operators.KERNEL_HELPERS.items()
}


class FastOps(TensorOps):
    """Compiles the generated kernel source with numba."""

    name = "fast"

    @staticmethod
    def compile_kernel(source: str, fn_name: str) -> Callable[..., None]:
        namespace: Dict[str, Any] = {"np": np, "prange": prange}
        namespace.update(_JIT_HELPERS)
        fn = _exec_source(source, fn_name, namespace)
        return njit(parallel=True, error_model="numpy")(fn)

    @staticmethod
    def run(kernel: Callable[..., None], *args: Any) -> None:
        kernel(*args)
