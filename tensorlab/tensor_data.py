from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt
from typing_extensions import TypeAlias

from .dtype import DType
from .errors import BroadcastError, IndexOutOfBounds, InvalidInputKind, ShapeMismatchError
from .operators import prod

Storage: TypeAlias = npt.NDArray[np.generic]
Index: TypeAlias = npt.NDArray[np.int64]
Shape: TypeAlias = npt.NDArray[np.int64]
Strides: TypeAlias = npt.NDArray[np.int64]

UserIndex: TypeAlias = Sequence[int]
UserShape: TypeAlias = Sequence[int]
UserStrides: TypeAlias = Sequence[int]


def validate_shape(shape: UserShape) -> Tuple[int, ...]:
    """Checks that `shape` is a nonempty sequence of nonnegative integers."""
    if isinstance(shape, (int, np.integer)):
        shape = (int(shape),)
    try:
        dims = tuple(shape)
    except TypeError:
        raise InvalidInputKind(f"Shape must be a sequence of integers, got {shape!r}.") from None
    if len(dims) == 0:
        raise ShapeMismatchError("Shape must have at least one dimension.")
    out = []
    for d in dims:
        if isinstance(d, (bool, np.bool_)) or not isinstance(d, (int, np.integer)):
            raise InvalidInputKind(f"Shape {dims} contains a non-integer dimension {d!r}.")
        if d < 0:
            raise ShapeMismatchError(f"Shape {dims} contains a negative dimension.")
        out.append(int(d))
    return tuple(out)


def strides_from_shape(shape: UserShape) -> Tuple[int, ...]:
    layout = [1]
    offset = 1
    for s in reversed(shape):
        layout.append(s * offset)
        offset = s * offset
    return tuple(reversed(layout[:-1]))


def shape_broadcast(shape_a: UserShape, shape_b: UserShape) -> Tuple[int, ...]:
    """Trailing-dimension broadcast of two shapes."""
    m = max(len(shape_a), len(shape_b))
    c_rev = [0] * m
    a_rev = list(reversed(shape_a))
    b_rev = list(reversed(shape_b))
    for i in range(m):
        if i >= len(shape_a):
            c_rev[i] = b_rev[i]
        elif i >= len(shape_b):
            c_rev[i] = a_rev[i]
        else:
            if a_rev[i] == b_rev[i] or b_rev[i] == 1:
                c_rev[i] = a_rev[i]
            elif a_rev[i] == 1:
                c_rev[i] = b_rev[i]
            else:
                raise BroadcastError(shape_a, shape_b)
    return tuple(reversed(c_rev))


def linear_to_multi_index(i: int, shape: Sequence[int]) -> Tuple[int, ...]:
    idx = [0] * len(shape)
    for p in range(len(shape) - 1, -1, -1):
        idx[p] = i % shape[p]
        i //= shape[p]
    return tuple(idx)


def multi_index_to_linear(index: Sequence[int], shape: Sequence[int]) -> int:
    """Row-major offset of `index`. Negative entries count from the end."""
    if len(index) != len(shape):
        raise ShapeMismatchError(
            f"Index {tuple(index)} must have {len(shape)} entries for shape {tuple(shape)}."
        )
    pos = 0
    for dim, (ind, extent) in enumerate(zip(index, shape)):
        ind = wrap_index(ind, extent, dim)
        pos = pos * extent + ind
    return pos


def wrap_index(index: int, extent: int, dim: Optional[int] = None) -> int:
    if isinstance(index, (bool, np.bool_)) or not isinstance(index, (int, np.integer)):
        if isinstance(index, (float, np.floating)) and float(index).is_integer():
            index = int(index)
        else:
            raise InvalidInputKind(f"Index must be an integer, got {index!r}.")
    index = int(index)
    if index < -extent or index >= extent:
        raise IndexOutOfBounds(index, extent, dim=dim)
    return index + extent if index < 0 else index


class TensorData:
    """
    Flat row-major storage of a tensor: a real buffer and an optional
    imaginary buffer of the same numpy dtype.
    """

    _re: Storage
    _im: Optional[Storage]
    shape: Tuple[int, ...]
    strides: Tuple[int, ...]
    dtype: DType
    dims: int
    size: int

    def __init__(
        self,
        re: Union[Sequence[float], Storage],
        shape: UserShape,
        dtype: DType = DType.FLOAT64,
        im: Optional[Union[Sequence[float], Storage]] = None,
    ):
        self.dtype = DType(dtype)
        np_dtype = self.dtype.numpy_dtype
        self._re = _as_storage(re, np_dtype)
        self._im = None if im is None else _as_storage(im, np_dtype)
        self.shape = validate_shape(shape)
        self.strides = strides_from_shape(self.shape)
        self.dims = len(self.shape)
        self.size = int(prod(self.shape))
        if len(self._re) != self.size:
            raise ShapeMismatchError(
                f"Real buffer of length {len(self._re)} does not match shape {self.shape}."
            )
        if self._im is not None:
            if self.dtype == DType.LOGIC:
                raise InvalidInputKind("Logic tensors cannot have complex storage.")
            if len(self._im) != self.size:
                raise ShapeMismatchError(
                    f"Imaginary buffer of length {len(self._im)} does not match shape {self.shape}."
                )

    @property
    def re(self) -> Storage:
        return self._re

    @property
    def im(self) -> Optional[Storage]:
        return self._im

    @property
    def has_complex_storage(self) -> bool:
        return self._im is not None

    def index(self, index: Union[int, UserIndex]) -> int:
        """Storage position of a flat index or a full multi-index."""
        if isinstance(index, (int, np.integer)) and not isinstance(index, (bool, np.bool_)):
            return wrap_index(index, self.size)
        if isinstance(index, tuple) and len(index) == 1 and self.dims != 1:
            return wrap_index(index[0], self.size)
        return multi_index_to_linear(tuple(index), self.shape)

    def indices(self) -> Iterable[UserIndex]:
        for i in range(self.size):
            yield linear_to_multi_index(i, self.shape)

    def get(self, key: Union[int, UserIndex]) -> Tuple[float, float]:
        pos = self.index(key)
        im = 0.0 if self._im is None else self._im[pos].item()
        return self._re[pos].item(), im

    def set(self, key: Union[int, UserIndex], re: float, im: float = 0.0) -> None:
        pos = self.index(key)
        self._re[pos] = re
        if self._im is not None:
            self._im[pos] = im

    def ensure_complex_storage(self) -> None:
        if self._im is None:
            if self.dtype == DType.LOGIC:
                raise InvalidInputKind("Logic tensors cannot have complex storage.")
            self._im = np.zeros(self.size, dtype=self.dtype.numpy_dtype)

    def drop_complex_storage(self) -> None:
        self._im = None

    def replace(
        self,
        re: Storage,
        im: Optional[Storage],
        dtype: DType,
        shape: Optional[UserShape] = None,
    ) -> None:
        """Swaps in new buffers. Used for in-place results and reshapes."""
        if shape is not None:
            self.shape = validate_shape(shape)
            self.strides = strides_from_shape(self.shape)
            self.dims = len(self.shape)
        self.dtype = DType(dtype)
        self._re = re
        self._im = im

    def tuple(self) -> Tuple[Storage, Optional[Storage], Tuple[int, ...]]:
        return (self._re, self._im, self.shape)

    def to_string(self) -> str:
        if self.size == 0:
            return "[]"
        s = ""
        for index in self.indices():
            l = ""
            for i in range(len(index) - 1, -1, -1):
                if index[i] == 0:
                    l = "\n%s[" % ("\t" * i) + l
                else:
                    break
            s += l
            s += self._format(index)
            l = ""
            for i in range(len(index) - 1, -1, -1):
                if index[i] == self.shape[i] - 1:
                    l += "]"
                else:
                    break
            if l:
                s += l
            else:
                s += " "
        return s

    def _format(self, index: UserIndex) -> str:
        re, im = self.get(index)
        if self.dtype == DType.LOGIC:
            return f"{int(re)}"
        if self.dtype == DType.INT32:
            text = f"{int(re)}"
            if self._im is not None:
                text += f"{int(im):+d}j"
            return text
        text = f"{re:3.2f}"
        if self._im is not None:
            text += f"{im:+3.2f}j"
        return text


def _as_storage(data: Union[Sequence[float], Storage], np_dtype: np.dtype) -> Storage:
    if isinstance(data, np.ndarray):
        if data.dtype != np_dtype:
            data = data.astype(np_dtype)
        return data.reshape(-1)
    return np.array(data, dtype=np_dtype).reshape(-1)
