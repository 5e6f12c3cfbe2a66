from __future__ import annotations

import enum
from dataclasses import dataclass
from numbers import Number
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from .dtype import DType, from_numpy_dtype, wider_type
from .errors import InvalidInputKind, RaggedArrayError, ShapeMismatchError
from .tensor_data import Storage


class OriginalKind(enum.Enum):
    NUMBER = "number"
    COMPLEX_NUMBER = "complex_number"
    ARRAY = "array"
    TENSOR = "tensor"


@dataclass(frozen=True)
class OperandDescriptor:
    """
    A uniform view of one operand. `re_array` is always a flat buffer in the
    storage dtype of `original_dtype`; `im_array` is None unless the operand
    has a nonzero imaginary part. `re` and `im` are only meaningful when
    `has_single_element` is set.
    """

    is_scalar_input: bool
    has_single_element: bool
    is_complex: bool
    re: Any
    im: Any
    re_array: Storage
    im_array: Optional[Storage]
    original_shape: Tuple[int, ...]
    original_kind: OriginalKind
    original_dtype: DType

    @property
    def size(self) -> int:
        return len(self.re_array)


def unify(value: Any) -> OperandDescriptor:
    """Converts a number, complex number, nested sequence, ndarray or Tensor."""
    from .tensor import Tensor

    if isinstance(value, Tensor):
        return _from_tensor(value)
    if isinstance(value, (bool, np.bool_)):
        return _from_scalar(bool(value), DType.LOGIC, OriginalKind.NUMBER)
    if isinstance(value, (complex, np.complexfloating)):
        dtype = DType.FLOAT32 if isinstance(value, np.complex64) else DType.FLOAT64
        return _from_scalar(complex(value), dtype, OriginalKind.COMPLEX_NUMBER)
    if isinstance(value, np.generic):
        dtype = from_numpy_dtype(value.dtype)
        if dtype is None:
            raise InvalidInputKind(f"Unsupported numpy scalar of type {value.dtype}.")
        return _from_scalar(value.item(), dtype, OriginalKind.NUMBER)
    if isinstance(value, Number):
        return _from_scalar(value, DType.FLOAT64, OriginalKind.NUMBER)
    if isinstance(value, np.ndarray):
        return _from_ndarray(value)
    if isinstance(value, (list, tuple)):
        return _from_nested(value)
    raise InvalidInputKind(f"Cannot use a value of type {type(value).__name__} as an operand.")


def unify_pair(re: Any, im: Any) -> OperandDescriptor:
    """Combines a real part and an imaginary part of identical shape."""
    d_re = unify(re)
    d_im = unify(im)
    if d_re.is_complex or d_im.is_complex:
        raise InvalidInputKind("Real and imaginary parts must both be real.")
    if d_re.original_shape != d_im.original_shape:
        raise ShapeMismatchError(
            f"Real part of shape {d_re.original_shape} does not match "
            f"imaginary part of shape {d_im.original_shape}."
        )
    dtype = wider_type(d_re.original_dtype, d_im.original_dtype)
    im_array = d_im.re_array
    is_complex = bool(np.any(im_array != 0))
    if dtype == DType.LOGIC and is_complex:
        dtype = DType.FLOAT64
    np_dtype = dtype.numpy_dtype
    re_array = d_re.re_array.astype(np_dtype, copy=False)
    im_array = im_array.astype(np_dtype, copy=False) if is_complex else None
    return _describe(
        re_array,
        im_array,
        d_re.original_shape,
        OriginalKind.ARRAY,
        dtype,
        is_scalar_input=False,
    )


def _describe(
    re_array: Storage,
    im_array: Optional[Storage],
    shape: Tuple[int, ...],
    kind: OriginalKind,
    dtype: DType,
    is_scalar_input: bool,
) -> OperandDescriptor:
    single = len(re_array) == 1
    re = re_array[0].item() if single else None
    im = (im_array[0].item() if im_array is not None else 0) if single else None
    return OperandDescriptor(
        is_scalar_input=is_scalar_input,
        has_single_element=single,
        is_complex=im_array is not None,
        re=re,
        im=im,
        re_array=re_array,
        im_array=im_array,
        original_shape=shape,
        original_kind=kind,
        original_dtype=dtype,
    )


def _from_scalar(value: Any, dtype: DType, kind: OriginalKind) -> OperandDescriptor:
    np_dtype = dtype.numpy_dtype
    if isinstance(value, complex):
        re_array = np.array([value.real], dtype=np_dtype)
        im_array = np.array([value.imag], dtype=np_dtype) if value.imag != 0 else None
    else:
        re_array = np.array([value], dtype=np_dtype)
        im_array = None
    return _describe(re_array, im_array, (1,), kind, dtype, is_scalar_input=True)


def _from_tensor(t: Any) -> OperandDescriptor:
    im = t.imag_data if t.has_nonzero_complex_storage() else None
    return _describe(t.real_data, im, t.shape, OriginalKind.TENSOR, t.dtype, is_scalar_input=False)


def _from_ndarray(arr: np.ndarray) -> OperandDescriptor:
    dtype = from_numpy_dtype(arr.dtype)
    if dtype is None:
        raise InvalidInputKind(f"Unsupported array dtype {arr.dtype}.")
    shape = tuple(int(d) for d in arr.shape) or (1,)
    flat = np.ascontiguousarray(arr).reshape(-1)
    np_dtype = dtype.numpy_dtype
    if np.iscomplexobj(flat):
        re_array = flat.real.astype(np_dtype)
        im_array = flat.imag.astype(np_dtype)
        if not np.any(im_array != 0):
            im_array = None
    else:
        re_array = flat.astype(np_dtype)
        im_array = None
    return _describe(re_array, im_array, shape, OriginalKind.ARRAY, dtype, is_scalar_input=False)


def _is_sequence(value: Any) -> bool:
    if isinstance(value, np.ndarray):
        return value.ndim > 0
    return isinstance(value, (list, tuple))


def _is_leaf(value: Any) -> bool:
    if isinstance(value, np.ndarray):
        # A 0-d array nested in a sequence counts as its single element.
        return value.ndim == 0 and value.dtype.kind in "biufc"
    return isinstance(value, (Number, np.number, np.bool_)) and not isinstance(value, np.ndarray)


def infer_shape(value: Sequence[Any], level: int = 0) -> Tuple[int, ...]:
    """
    Shape of a nested sequence. Every level must hold either only scalars or
    only sequences of one common shape.
    """
    n = len(value)
    if n == 0:
        return (0,)
    n_seq = sum(1 for v in value if _is_sequence(v))
    if n_seq == 0:
        for v in value:
            if not _is_leaf(v):
                raise InvalidInputKind(
                    f"Nested sequence contains a non-numeric element {v!r} at level {level}."
                )
        return (n,)
    if n_seq != n:
        raise RaggedArrayError("Cannot mix numbers and sequences", level=level)
    sub = infer_shape(value[0], level + 1)
    for v in value[1:]:
        if infer_shape(v, level + 1) != sub:
            raise RaggedArrayError("Inconsistent sub-sequence lengths", level=level)
    return (n,) + sub


def _flatten(value: Any, out: List[Any]) -> None:
    if _is_sequence(value):
        for v in value:
            _flatten(v, out)
    elif isinstance(value, np.ndarray):
        out.append(value.item())
    else:
        out.append(value)


def _from_nested(value: Sequence[Any]) -> OperandDescriptor:
    shape = infer_shape(value)
    flat: List[Any] = []
    _flatten(value, flat)
    if flat and all(isinstance(v, (bool, np.bool_)) for v in flat):
        re_array = np.array(flat, dtype=np.uint8)
        return _describe(re_array, None, shape, OriginalKind.ARRAY, DType.LOGIC, False)
    if any(isinstance(v, (complex, np.complexfloating)) for v in flat):
        arr = np.array(flat, dtype=np.complex128)
        re_array = np.ascontiguousarray(arr.real)
        im_array = np.ascontiguousarray(arr.imag)
        if not np.any(im_array != 0):
            im_array = None
    else:
        re_array = np.array(flat, dtype=np.float64)
        im_array = None
    return _describe(re_array, im_array, shape, OriginalKind.ARRAY, DType.FLOAT64, False)
