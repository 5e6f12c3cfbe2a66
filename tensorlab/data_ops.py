from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import numpy as np

from .dtype import DType, wider_type
from .errors import InvalidInputKind, ShapeMismatchError, UnsupportedDTypeCombination
from .tensor import Tensor, tensor
from .tensor_ops import to_scalar

logger = logging.getLogger(__name__)


def as_tensor(x: Any) -> Tensor:
    """Returns tensors unchanged and converts anything else, keeping its dtype."""
    if isinstance(x, Tensor):
        return x
    return tensor(x, dtype=None)


def _split(t: Tensor) -> tuple:
    re = t.real_data.reshape(t.shape)
    im = None if t.imag_data is None else t.imag_data.reshape(t.shape)
    return re, im


def _from_arrays(re: np.ndarray, im: Optional[np.ndarray], dtype: DType) -> Tensor:
    shape = re.shape or (1,)
    np_dtype = dtype.numpy_dtype
    re = np.ascontiguousarray(re, dtype=np_dtype).reshape(-1)
    if im is not None:
        im = np.ascontiguousarray(im, dtype=np_dtype).reshape(-1)
    return Tensor.from_buffers(re, im, shape, dtype)


def _accumulated_dtype(dtype: DType) -> DType:
    return DType.FLOAT32 if dtype == DType.FLOAT32 else DType.FLOAT64


class DataOps:
    """Shape manipulation and reductions that work directly on buffers."""

    def tile(self, x: Any, reps: Sequence[int]) -> Tensor:
        t = as_tensor(x)
        reps = tuple(int(r) for r in reps)
        if any(r < 0 for r in reps):
            raise ShapeMismatchError(f"Repetitions {reps} must be nonnegative.")
        re, im = _split(t)
        re = np.tile(re, reps)
        im = None if im is None else np.tile(im, reps)
        return _from_arrays(re, im, t.dtype)

    def reshape(self, x: Any, shape: Sequence[int]) -> Tensor:
        return as_tensor(x).reshape(tuple(shape))

    def flatten(self, x: Any) -> Tensor:
        t = as_tensor(x)
        return t.reshape((t.size,))

    def squeeze(self, x: Any) -> Tensor:
        t = as_tensor(x)
        shape = tuple(d for d in t.shape if d != 1) or (1,)
        return t.reshape(shape)

    def concat(self, tensors: Sequence[Any], axis: int = 0) -> Tensor:
        items = [as_tensor(x) for x in tensors]
        if not items:
            raise ShapeMismatchError("At least one tensor is required.")
        ndim = items[0].ndim
        if any(t.ndim != ndim for t in items):
            raise ShapeMismatchError(
                f"Cannot concatenate shapes {[t.shape for t in items]} along axis {axis}."
            )
        if axis < -ndim or axis >= ndim:
            raise ShapeMismatchError(f"Axis {axis} is out of range for {ndim} dimensions.")
        axis = axis % ndim
        rest = items[0].shape[:axis] + items[0].shape[axis + 1 :]
        for t in items[1:]:
            if t.shape[:axis] + t.shape[axis + 1 :] != rest:
                raise ShapeMismatchError(
                    f"Cannot concatenate shapes {[t.shape for t in items]} along axis {axis}."
                )
        dtype = items[0].dtype
        for t in items[1:]:
            dtype = wider_type(dtype, t.dtype)
        is_complex = any(t.has_complex_storage() for t in items)
        if is_complex and dtype == DType.LOGIC:
            raise UnsupportedDTypeCombination(
                "Cannot concatenate complex data into a logic tensor."
            )
        re = np.concatenate([_split(t)[0] for t in items], axis=axis)
        im = None
        if is_complex:
            parts = []
            for t in items:
                part = _split(t)[1]
                parts.append(np.zeros(t.shape) if part is None else part)
            im = np.concatenate(parts, axis=axis)
        return _from_arrays(re, im, dtype)

    def sum(self, x: Any, axis: Optional[int] = None, keep_dims: bool = False) -> Any:
        return self._reduce(x, axis, keep_dims, np.sum, "sum")

    def prod(self, x: Any, axis: Optional[int] = None, keep_dims: bool = False) -> Any:
        return self._reduce(x, axis, keep_dims, np.prod, "prod")

    def _reduce(self, x: Any, axis: Optional[int], keep_dims: bool, fn: Any, name: str) -> Any:
        t = as_tensor(x)
        dtype = _accumulated_dtype(t.dtype)
        re, im = _split(t)
        data = re.astype(np.float64)
        if im is not None:
            data = data + 1j * im.astype(np.float64)
        if axis is None:
            total = fn(data)
            return to_scalar(np.real(total), np.imag(total) if im is not None else None, dtype)
        if not isinstance(axis, (int, np.integer)) or isinstance(axis, bool):
            raise InvalidInputKind(f"Axis must be an integer, got {axis!r}.")
        if axis < -t.ndim or axis >= t.ndim:
            raise ShapeMismatchError(f"Axis {axis} is out of range for {t.ndim} dimensions.")
        out = fn(data, axis=int(axis), keepdims=keep_dims)
        logger.debug("%s over axis %d of shape %s", name, axis, t.shape)
        out = np.asarray(out)
        if np.iscomplexobj(out):
            return _from_arrays(out.real, out.imag, dtype)
        return _from_arrays(out, None, dtype)

    def find(self, x: Any) -> Tensor:
        """Flat positions of the nonzero elements as an Int32 tensor."""
        t = as_tensor(x)
        flags = t.real_data != 0
        if t.imag_data is not None:
            flags = flags | (t.imag_data != 0)
        positions = np.flatnonzero(flags).astype(np.int32)
        return Tensor.from_buffers(positions, None, (len(positions),), DType.INT32)
