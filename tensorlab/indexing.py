"""
Advanced indexing for tensors.

A get or set call takes either one specifier per dimension or a single
specifier addressing the row-major flattened elements. Surface forms (ints,
``":"``, slice strings, native slices, index lists, masks, predicates) are
parsed once into the `Specifier` union below and resolved to position arrays
against the extent they index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .dtype import DType
from .errors import (
    BroadcastError,
    IndexOutOfBounds,
    InvalidInputKind,
    ShapeMismatchError,
    UnsupportedDTypeCombination,
)
from .operand import unify
from .tensor_data import shape_broadcast, wrap_index
from .tensor_helpers import cartesian_offsets
from .tensor_ops import to_scalar

if TYPE_CHECKING:
    from .tensor import Tensor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Full:
    pass


@dataclass(frozen=True)
class Index:
    value: int


@dataclass(frozen=True)
class Slice:
    start: Optional[int]
    stop: Optional[int]
    step: Optional[int]


@dataclass(frozen=True)
class IndexList:
    positions: np.ndarray
    shape: Tuple[int, ...]


@dataclass(frozen=True)
class Mask:
    flags: np.ndarray
    shape: Tuple[int, ...]


@dataclass(frozen=True)
class Predicate:
    fn: Callable[..., Any]


Specifier = Union[Full, Index, Slice, IndexList, Mask, Predicate]


def parse_specifier(spec: Any, single: bool) -> Specifier:
    """Converts one user-supplied index into a `Specifier`."""
    from .tensor import Tensor

    if isinstance(spec, (bool, np.bool_)):
        raise InvalidInputKind("A bare boolean is not a valid index.")
    if isinstance(spec, (int, np.integer)):
        return Index(int(spec))
    if isinstance(spec, (float, np.floating)):
        if not float(spec).is_integer():
            raise InvalidInputKind(f"Index must be an integer, got {spec!r}.")
        return Index(int(spec))
    if isinstance(spec, str):
        return _parse_slice_string(spec)
    if isinstance(spec, slice):
        if spec.step == 0:
            raise InvalidInputKind("Slice step cannot be zero.")
        return Slice(_slice_part(spec.start), _slice_part(spec.stop), _slice_part(spec.step))
    if isinstance(spec, Tensor) or isinstance(spec, (list, tuple, np.ndarray)):
        d = unify(spec)
        if d.is_complex:
            raise InvalidInputKind("Complex values cannot be used as indices.")
        if not single and len(d.original_shape) > 1 and not isinstance(spec, Tensor):
            raise InvalidInputKind("Nested index lists are only allowed in the single-index form.")
        if d.original_dtype == DType.LOGIC:
            return Mask(d.re_array != 0, d.original_shape)
        positions = d.re_array
        if d.original_dtype.is_float:
            if not np.all(np.floor(positions) == positions):
                raise InvalidInputKind("Index lists must contain integers only.")
        return IndexList(positions.astype(np.int64), d.original_shape)
    if callable(spec):
        if not single:
            raise InvalidInputKind("Predicates are only allowed in the single-index form.")
        return Predicate(spec)
    raise InvalidInputKind(f"Cannot use a value of type {type(spec).__name__} as an index.")


def _slice_part(v: Any) -> Optional[int]:
    if v is None:
        return None
    if isinstance(v, (bool, np.bool_)) or not isinstance(v, (int, np.integer)):
        raise InvalidInputKind(f"Slice bounds must be integers, got {v!r}.")
    return int(v)


def _parse_slice_string(text: str) -> Specifier:
    stripped = text.strip()
    if stripped == ":":
        return Full()
    parts = stripped.split(":")
    if len(parts) == 1:
        # A lone number selects a single position and drops the dimension.
        try:
            return Index(int(stripped))
        except ValueError:
            raise InvalidInputKind(f"Invalid slice string {text!r}.") from None
    if len(parts) > 3:
        raise InvalidInputKind(f"Invalid slice string {text!r}.")
    values: List[Optional[int]] = []
    for part in parts:
        part = part.strip()
        if part == "":
            values.append(None)
            continue
        try:
            values.append(int(part))
        except ValueError:
            raise InvalidInputKind(f"Invalid slice string {text!r}.") from None
    while len(values) < 3:
        values.append(None)
    if values[2] == 0:
        raise InvalidInputKind("Slice step cannot be zero.")
    return Slice(values[0], values[1], values[2])


def _resolve(spec: Specifier, extent: int, dim: Optional[int]) -> np.ndarray:
    if isinstance(spec, Full):
        return np.arange(extent, dtype=np.int64)
    if isinstance(spec, Index):
        return np.array([wrap_index(spec.value, extent, dim)], dtype=np.int64)
    if isinstance(spec, Slice):
        return np.arange(*slice(spec.start, spec.stop, spec.step).indices(extent), dtype=np.int64)
    if isinstance(spec, IndexList):
        positions = spec.positions
        bad = (positions < -extent) | (positions >= extent)
        if np.any(bad):
            raise IndexOutOfBounds(int(positions[np.argmax(bad)]), extent, dim=dim)
        return np.where(positions < 0, positions + extent, positions).astype(np.int64)
    if isinstance(spec, Mask):
        if spec.flags.size != extent:
            where = "the tensor size" if dim is None else f"dimension {dim}"
            raise ShapeMismatchError(
                f"Mask of shape {spec.shape} does not match {where} ({extent})."
            )
        return np.flatnonzero(spec.flags).astype(np.int64)
    raise InvalidInputKind("Predicates are only allowed in the single-index form.")


@dataclass
class _Selection:
    offsets: np.ndarray
    shape: Tuple[int, ...]
    reduced_shape: Tuple[int, ...]


def _select(t: "Tensor", specs: Sequence[Any]) -> _Selection:
    if len(specs) == 1:
        spec = parse_specifier(specs[0], single=True)
        if isinstance(spec, Predicate):
            offsets = _apply_predicate(t, spec.fn)
            return _Selection(offsets, (len(offsets),), (len(offsets),))
        offsets = _resolve(spec, t.size, None)
        if isinstance(spec, Index):
            return _Selection(offsets, (1,), ())
        if isinstance(spec, IndexList):
            return _Selection(offsets, spec.shape, spec.shape)
        return _Selection(offsets, (len(offsets),), (len(offsets),))
    if len(specs) != t.ndim:
        raise ShapeMismatchError(
            f"Expected 1 or {t.ndim} indices for a tensor of shape {t.shape}, got {len(specs)}."
        )
    positions = []
    shape = []
    reduced = []
    for dim, (raw, extent) in enumerate(zip(specs, t.shape)):
        spec = parse_specifier(raw, single=False)
        pos = _resolve(spec, extent, dim)
        positions.append(pos)
        shape.append(len(pos))
        if not isinstance(spec, Index):
            reduced.append(len(pos))
    offsets = cartesian_offsets(positions, t.strides)
    return _Selection(offsets, tuple(shape), tuple(reduced))


def _apply_predicate(t: "Tensor", fn: Callable[..., Any]) -> np.ndarray:
    re = t.real_data
    im = t.imag_data
    if im is None:
        hits = [i for i in range(t.size) if fn(re[i].item())]
    else:
        hits = [i for i in range(t.size) if fn(re[i].item(), im[i].item())]
    return np.array(hits, dtype=np.int64)


def get_items(t: "Tensor", *specs: Any, keep_dims: bool = False) -> Any:
    """Reads the addressed elements. Returns a scalar when every index is an integer."""
    from .tensor import Tensor

    if len(specs) == 0:
        raise ShapeMismatchError("At least one index is required.")
    sel = _select(t, specs)
    re = t.real_data[sel.offsets]
    im = t.imag_data[sel.offsets] if t.has_complex_storage() else None
    if not keep_dims and len(sel.reduced_shape) == 0:
        return to_scalar(re[0].item(), None if im is None else im[0].item(), t.dtype)
    shape = sel.shape if keep_dims else sel.reduced_shape
    return Tensor.from_buffers(re, im, shape, t.dtype)


def set_items(t: "Tensor", *args: Any) -> "Tensor":
    """
    Writes `value` (the last argument) into the addressed elements of `t` and
    returns `t`. The value broadcasts against the addressed shape, or against
    that shape with integer-indexed dimensions removed.
    """
    if len(args) < 2:
        raise ShapeMismatchError("set requires at least one index and a value.")
    *specs, value = args
    sel = _select(t, specs)
    d = unify(value)
    count = len(sel.offsets)
    if d.has_single_element:
        re_values = np.full(count, d.re_array[0])
        im_values = np.full(count, d.im_array[0]) if d.is_complex else None
    else:
        target = _broadcast_target(d.original_shape, sel.shape, sel.reduced_shape)
        re_values = np.broadcast_to(d.re_array.reshape(d.original_shape), target).reshape(-1)
        im_values = None
        if d.is_complex:
            im_values = np.broadcast_to(d.im_array.reshape(d.original_shape), target).reshape(-1)

    if im_values is not None:
        if t.dtype == DType.LOGIC:
            raise UnsupportedDTypeCombination("Cannot assign complex values to a logic tensor.")
        t.ensure_complex_storage()

    np_dtype = t.dtype.numpy_dtype
    with np.errstate(invalid="ignore"):
        if t.dtype == DType.LOGIC:
            re_cast = (re_values != 0).astype(np_dtype)
        else:
            re_cast = re_values.astype(np_dtype)
        t.real_data[sel.offsets] = re_cast
        if t.has_complex_storage():
            if im_values is None:
                t.imag_data[sel.offsets] = 0
            else:
                t.imag_data[sel.offsets] = im_values.astype(np_dtype)
    logger.debug("Assigned %d elements of tensor with shape %s", count, t.shape)
    return t


def _broadcast_target(
    value_shape: Tuple[int, ...],
    shape: Tuple[int, ...],
    reduced_shape: Tuple[int, ...],
) -> Tuple[int, ...]:
    for target in (shape, reduced_shape):
        if len(target) == 0:
            continue
        try:
            if shape_broadcast(value_shape, target) == tuple(target):
                return target
        except BroadcastError:
            continue
    raise BroadcastError(value_shape, shape)
