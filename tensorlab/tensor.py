"""
Implementation of the core Tensor object.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from . import indexing
from .dtype import DType
from .errors import InvalidInputKind, ShapeMismatchError, UnsupportedDTypeCombination
from .operand import unify, unify_pair
from .operators import prod
from .tensor_data import Storage, TensorData, UserIndex, UserShape, validate_shape

__all__ = [
    "Tensor",
    "tensor",
    "complex_tensor",
    "zeros",
    "ones",
    "scalar",
    "is_equal",
    "is_numerically_equal",
    "is_approximately_equal",
]


def _backend() -> Any:
    from .tensor_ops import get_default_backend

    return get_default_backend()


class Tensor:
    """
    An N-dimensional array with a real buffer and an optional imaginary
    buffer. The absence of the imaginary buffer means the tensor is real.
    """

    _tensor: TensorData

    def __init__(self, v: TensorData):
        self._tensor = v

    @classmethod
    def from_buffers(
        cls,
        re: Storage,
        im: Optional[Storage],
        shape: UserShape,
        dtype: DType,
    ) -> "Tensor":
        return cls(TensorData(re, shape, dtype, im))

    # Properties
    @property
    def shape(self) -> Tuple[int, ...]:
        return self._tensor.shape

    @property
    def strides(self) -> Tuple[int, ...]:
        return self._tensor.strides

    @property
    def dtype(self) -> DType:
        return self._tensor.dtype

    @property
    def ndim(self) -> int:
        return self._tensor.dims

    @property
    def size(self) -> int:
        return self._tensor.size

    @property
    def real_data(self) -> Storage:
        return self._tensor.re

    @property
    def imag_data(self) -> Optional[Storage]:
        return self._tensor.im

    def has_complex_storage(self) -> bool:
        return self._tensor.has_complex_storage

    def has_nonzero_complex_storage(self) -> bool:
        im = self._tensor.im
        return im is not None and bool(np.any(im != 0))

    def ensure_complex_storage(self) -> "Tensor":
        if self.dtype == DType.LOGIC:
            raise UnsupportedDTypeCombination("Logic tensors cannot have complex storage.")
        self._tensor.ensure_complex_storage()
        return self

    def trim_imaginary_part(self) -> "Tensor":
        """Drops the complex storage if every imaginary part is zero."""
        if self.has_complex_storage() and not self.has_nonzero_complex_storage():
            self._tensor.drop_complex_storage()
        return self

    def real(self) -> "Tensor":
        return Tensor.from_buffers(self.real_data.copy(), None, self.shape, self.dtype)

    def imag(self) -> "Tensor":
        im = self.imag_data
        data = im.copy() if im is not None else np.zeros(self.size, self.dtype.numpy_dtype)
        return Tensor.from_buffers(data, None, self.shape, self.dtype)

    # Copying and conversion
    def copy(self, deep: bool = False) -> "Tensor":
        """
        A shallow copy shares the underlying buffers; a deep copy owns new
        ones.
        """
        re, im, shape = self._tensor.tuple()
        if deep:
            re = re.copy()
            im = None if im is None else im.copy()
        return Tensor.from_buffers(re, im, shape, self.dtype)

    def reshape(self, *shape: Union[int, Sequence[int]]) -> "Tensor":
        """New tensor sharing this tensor's buffers. One dimension may be -1."""
        if len(shape) == 1 and not isinstance(shape[0], (int, np.integer)):
            shape = tuple(shape[0])
        dims = [int(d) for d in shape]
        if dims.count(-1) > 1:
            raise ShapeMismatchError("Only one dimension can be inferred.")
        if -1 in dims:
            known = prod(d for d in dims if d != -1)
            if known == 0 or self.size % known != 0:
                raise ShapeMismatchError(f"Cannot reshape {self.shape} into {tuple(dims)}.")
            dims[dims.index(-1)] = self.size // known
        new_shape = validate_shape(dims)
        if prod(new_shape) != self.size:
            raise ShapeMismatchError(f"Cannot reshape {self.shape} into {new_shape}.")
        re, im, _ = self._tensor.tuple()
        return Tensor.from_buffers(re, im, new_shape, self.dtype)

    def as_type(self, dtype: DType) -> "Tensor":
        dtype = DType(dtype)
        if dtype == DType.LOGIC:
            if self.has_nonzero_complex_storage():
                raise UnsupportedDTypeCombination("Cannot convert a complex tensor to logic.")
            re = (self.real_data != 0).astype(np.uint8)
            return Tensor.from_buffers(re, None, self.shape, dtype)
        np_dtype = dtype.numpy_dtype
        with np.errstate(invalid="ignore"):
            re = self.real_data.astype(np_dtype)
            im = None if self.imag_data is None else self.imag_data.astype(np_dtype)
        return Tensor.from_buffers(re, im, self.shape, dtype)

    def to_numpy(self) -> np.ndarray:
        if self.has_complex_storage():
            out = self.real_data.astype(np.complex128)
            out.imag = self.imag_data
            return out.reshape(self.shape)
        if self.dtype == DType.LOGIC:
            return self.real_data.astype(bool).reshape(self.shape)
        return self.real_data.copy().reshape(self.shape)

    def to_list(self) -> List[Any]:
        return self.to_numpy().tolist()

    # Indexing
    def get(self, *specs: Any, keep_dims: bool = False) -> Any:
        return indexing.get_items(self, *specs, keep_dims=keep_dims)

    def set(self, *args: Any) -> "Tensor":
        return indexing.set_items(self, *args)

    def get_el(self, *idx: int) -> Any:
        """Single element by flat index or full multi-index."""
        re, im = self._tensor.get(_element_index(idx))
        if self.has_complex_storage():
            return complex(float(re), float(im))
        if self.dtype == DType.LOGIC:
            return bool(re)
        if self.dtype == DType.INT32:
            return int(re)
        return float(re)

    def set_el(self, *args: Any) -> "Tensor":
        if len(args) < 2:
            raise ShapeMismatchError("set_el requires an index and a value.")
        *idx, value = args
        if isinstance(value, (complex, np.complexfloating)):
            if value.imag != 0:
                self.ensure_complex_storage()
            re, im = value.real, value.imag
        elif isinstance(value, (int, float, np.number)):
            re, im = value, 0.0
        else:
            raise InvalidInputKind(f"Element value must be a number, got {type(value).__name__}.")
        if self.dtype == DType.LOGIC:
            re = 1 if re != 0 else 0
        self._tensor.set(_element_index(tuple(idx)), re, im)
        return self

    def __getitem__(self, key: Any) -> Any:
        if isinstance(key, tuple):
            return self.get(*key)
        return self.get(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        if isinstance(key, tuple):
            self.set(*key, value)
        else:
            self.set(key, value)

    def __len__(self) -> int:
        return self.shape[0]

    def __bool__(self) -> bool:
        if self.size != 1:
            raise ValueError(
                f"The truth value of a tensor with {self.size} elements is ambiguous."
            )
        return bool(self.real_data[0]) or self.has_nonzero_complex_storage()

    def __repr__(self) -> str:
        return self._tensor.to_string()

    # Operators
    def __add__(self, b: Any) -> Any:
        return _backend().add(self, b)

    def __radd__(self, b: Any) -> Any:
        return _backend().add(b, self)

    def __sub__(self, b: Any) -> Any:
        return _backend().sub(self, b)

    def __rsub__(self, b: Any) -> Any:
        return _backend().sub(b, self)

    def __mul__(self, b: Any) -> Any:
        return _backend().mul(self, b)

    def __rmul__(self, b: Any) -> Any:
        return _backend().mul(b, self)

    def __truediv__(self, b: Any) -> Any:
        return _backend().div(self, b)

    def __rtruediv__(self, b: Any) -> Any:
        return _backend().div(b, self)

    def __mod__(self, b: Any) -> Any:
        return _backend().rem(self, b)

    def __pow__(self, b: Any) -> Any:
        return _backend().pow(self, b)

    def __neg__(self) -> Any:
        return _backend().neg(self)

    def __abs__(self) -> Any:
        return _backend().abs(self)

    def __eq__(self, b: Any) -> Any:  # type: ignore[override]
        return _backend().eq(self, b)

    def __ne__(self, b: Any) -> Any:  # type: ignore[override]
        return _backend().neq(self, b)

    def __lt__(self, b: Any) -> Any:
        return _backend().lt(self, b)

    def __le__(self, b: Any) -> Any:
        return _backend().le(self, b)

    def __gt__(self, b: Any) -> Any:
        return _backend().gt(self, b)

    def __ge__(self, b: Any) -> Any:
        return _backend().ge(self, b)

    def __and__(self, b: Any) -> Any:
        return _backend().logical_and(self, b)

    def __or__(self, b: Any) -> Any:
        return _backend().logical_or(self, b)

    def __xor__(self, b: Any) -> Any:
        return _backend().logical_xor(self, b)

    def __invert__(self) -> Any:
        return _backend().logical_not(self)

    __hash__ = None  # type: ignore[assignment]


def _element_index(idx: Tuple[Any, ...]) -> Union[int, UserIndex]:
    if len(idx) == 1 and isinstance(idx[0], (tuple, list)):
        idx = tuple(idx[0])
    if len(idx) == 0:
        raise ShapeMismatchError("An element index is required.")
    for i in idx:
        if isinstance(i, (bool, np.bool_)) or not isinstance(i, (int, np.integer)):
            raise InvalidInputKind(f"Element indices must be integers, got {i!r}.")
    if len(idx) == 1:
        return int(idx[0])
    return tuple(int(i) for i in idx)


# Constructors
def tensor(re: Any, im: Any = None, dtype: Optional[DType] = DType.FLOAT64) -> Tensor:
    """
    Builds a tensor from a number, nested sequence, ndarray or tensor, with an
    optional separate imaginary part. Data are always copied.
    """
    d = unify(re) if im is None else unify_pair(re, im)
    target = d.original_dtype if dtype is None else DType(dtype)
    if d.is_complex and target == DType.LOGIC:
        raise UnsupportedDTypeCombination("Logic tensors cannot hold complex values.")
    np_dtype = target.numpy_dtype
    with np.errstate(invalid="ignore"):
        if target == DType.LOGIC:
            re_data = (d.re_array != 0).astype(np_dtype)
        else:
            re_data = d.re_array.astype(np_dtype)
        im_data = None if d.im_array is None else d.im_array.astype(np_dtype)
    return Tensor.from_buffers(re_data, im_data, d.original_shape, target)


def complex_tensor(re: Any, im: Any) -> Tensor:
    """A Float64 tensor that always has complex storage."""
    t = tensor(re, im)
    return t.ensure_complex_storage()


def zeros(shape: UserShape, dtype: DType = DType.FLOAT64) -> Tensor:
    shape = validate_shape(shape)
    dtype = DType(dtype)
    return Tensor.from_buffers(np.zeros(prod(shape), dtype.numpy_dtype), None, shape, dtype)


def ones(shape: UserShape, dtype: DType = DType.FLOAT64) -> Tensor:
    shape = validate_shape(shape)
    dtype = DType(dtype)
    return Tensor.from_buffers(np.ones(prod(shape), dtype.numpy_dtype), None, shape, dtype)


def scalar(re: Any, im: Any = 0.0) -> Tensor:
    """A single-element Float64 tensor of shape (1,)."""
    if isinstance(re, complex):
        re, im = re.real, re.imag
    im_data = None if im == 0 else np.array([im], dtype=np.float64)
    return Tensor.from_buffers(np.array([re], dtype=np.float64), im_data, (1,), DType.FLOAT64)


def is_equal(x: Tensor, y: Tensor) -> bool:
    """
    Exact equality: same dtype, same shape, same storage layout (both or
    neither complex) and same elements.
    """
    if x is y:
        return True
    if x.shape != y.shape or x.dtype != y.dtype:
        return False
    if x.has_complex_storage() != y.has_complex_storage():
        return False
    if not np.array_equal(x.real_data, y.real_data):
        return False
    if x.has_complex_storage() and not np.array_equal(x.imag_data, y.imag_data):
        return False
    return True


def is_numerically_equal(x: Tensor, y: Tensor) -> bool:
    """Same shape and same values, where a + 0j equals a."""
    if x is y:
        return True
    if x.shape != y.shape:
        return False
    if not np.array_equal(x.real_data, y.real_data):
        return False
    return _imag_matches(x, y, lambda a, b: np.array_equal(a, b))


def is_approximately_equal(x: Tensor, y: Tensor, tolerance: float = 1e-12) -> bool:
    """Same shape and every real and imaginary part within `tolerance`."""
    if tolerance < 0:
        raise ValueError("Tolerance must be nonnegative.")
    if x is y:
        return True
    if x.shape != y.shape:
        return False

    def close(a: Storage, b: Storage) -> bool:
        with np.errstate(invalid="ignore"):
            diff = np.abs(a.astype(np.float64) - b.astype(np.float64))
        return bool(np.all(diff <= tolerance))

    if not close(x.real_data, y.real_data):
        return False
    return _imag_matches(x, y, close)


def _imag_matches(x: Tensor, y: Tensor, same: Any) -> bool:
    im_x, im_y = x.imag_data, y.imag_data
    if im_x is None and im_y is None:
        return True
    if im_x is None:
        im_x = np.zeros_like(im_y)
    if im_y is None:
        im_y = np.zeros_like(im_x)
    return bool(same(im_x, im_y))
