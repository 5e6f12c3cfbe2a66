from __future__ import annotations

import enum
from typing import Callable, Optional

import numpy as np
from typing_extensions import TypeAlias


class DType(enum.IntEnum):
    """
    Element type of a tensor. The integer values give the widening order:
    LOGIC < INT32 < FLOAT32 < FLOAT64.
    """

    LOGIC = 0
    INT32 = 1
    FLOAT32 = 2
    FLOAT64 = 3

    @property
    def numpy_dtype(self) -> np.dtype:
        return _STORAGE[self]

    @property
    def is_float(self) -> bool:
        return self >= DType.FLOAT32

    def __str__(self) -> str:
        return self.name.lower()


_STORAGE = {
    DType.LOGIC: np.dtype(np.uint8),
    DType.INT32: np.dtype(np.int32),
    DType.FLOAT32: np.dtype(np.float32),
    DType.FLOAT64: np.dtype(np.float64),
}


UnaryDTypeCalculator: TypeAlias = Callable[[DType, bool], Optional[DType]]
BinaryDTypeCalculator: TypeAlias = Callable[[DType, bool, DType, bool], Optional[DType]]


def is_wider_type(original: DType, new_type: DType) -> bool:
    return new_type > original


def wider_type(t1: DType, t2: DType) -> DType:
    return t1 if t1 > t2 else t2


def from_numpy_dtype(dtype: np.dtype) -> Optional[DType]:
    """
    Maps a numpy dtype onto the lattice. Booleans become LOGIC, signed and
    small unsigned integers of 32 bits or fewer become INT32, single precision
    (real or complex) becomes FLOAT32 and any other numeric type FLOAT64.
    Returns None for non-numeric dtypes.
    """
    dtype = np.dtype(dtype)
    if dtype.kind == "b":
        return DType.LOGIC
    if dtype.kind == "i" and dtype.itemsize <= 4:
        return DType.INT32
    if dtype.kind == "u" and dtype.itemsize < 4:
        return DType.INT32
    if dtype in (np.dtype(np.float32), np.dtype(np.complex64)):
        return DType.FLOAT32
    if dtype.kind in "iufc":
        return DType.FLOAT64
    return None


def _float_of(t: DType) -> DType:
    return DType.FLOAT32 if t == DType.FLOAT32 else DType.FLOAT64


class OutputDTypeResolver:
    """Output dtype calculators for unary and binary element-wise ops."""

    @staticmethod
    def u_no_change(t: DType, is_complex: bool) -> Optional[DType]:
        return t

    @staticmethod
    def u_to_float(t: DType, is_complex: bool) -> Optional[DType]:
        return _float_of(t)

    @staticmethod
    def u_to_logic(t: DType, is_complex: bool) -> Optional[DType]:
        return DType.LOGIC

    @staticmethod
    def u_to_logic_real_only(t: DType, is_complex: bool) -> Optional[DType]:
        return None if is_complex else DType.LOGIC

    @staticmethod
    def u_only_logic_to_float(t: DType, is_complex: bool) -> Optional[DType]:
        return DType.FLOAT64 if t == DType.LOGIC else t

    @staticmethod
    def u_complex_to_float(t: DType, is_complex: bool) -> Optional[DType]:
        return DType.FLOAT64 if is_complex else t

    @staticmethod
    def b_wider(t1: DType, is_complex1: bool, t2: DType, is_complex2: bool) -> Optional[DType]:
        return wider_type(t1, t2)

    @staticmethod
    def b_wider_with_logic_to_int(
        t1: DType, is_complex1: bool, t2: DType, is_complex2: bool
    ) -> Optional[DType]:
        return wider_type(
            DType.INT32 if t1 == DType.LOGIC else t1,
            DType.INT32 if t2 == DType.LOGIC else t2,
        )

    @staticmethod
    def b_to_float(t1: DType, is_complex1: bool, t2: DType, is_complex2: bool) -> Optional[DType]:
        if t1 == DType.FLOAT32 and t2 == DType.FLOAT32:
            return DType.FLOAT32
        return DType.FLOAT64

    @staticmethod
    def b_to_logic(t1: DType, is_complex1: bool, t2: DType, is_complex2: bool) -> Optional[DType]:
        return DType.LOGIC

    @staticmethod
    def b_to_logic_real_only(
        t1: DType, is_complex1: bool, t2: DType, is_complex2: bool
    ) -> Optional[DType]:
        return None if (is_complex1 or is_complex2) else DType.LOGIC
