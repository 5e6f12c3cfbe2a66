"""
Scalar routines called from generated kernels.

Every helper here is a leaf: it only calls numpy functions, never another
helper, so that each one can be compiled on its own with numba. Division by
zero is expressed as multiplication by infinity so that no helper raises
under either backend.
"""

from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np


def prod(ls: Iterable[int]) -> int:
    r = 1
    for x in ls:
        r *= int(x)
    return r


def broadcast_offset(ordinal: int, shape: np.ndarray, strides: np.ndarray) -> int:
    """Storage offset of the `ordinal`-th output element for per-dimension `strides`."""
    rest = ordinal
    offset = 0
    for d in range(len(shape) - 1, -1, -1):
        offset += (rest % shape[d]) * strides[d]
        rest //= shape[d]
    return offset


def length2(x: float, y: float) -> float:
    """sqrt(x*x + y*y) computed without intermediate overflow."""
    ax = abs(x)
    ay = abs(y)
    if ax > ay:
        ratio = ay / ax
        return ax * np.sqrt(1.0 + ratio * ratio)
    if ay == 0:
        return ax * 1.0
    ratio = ax / ay
    return ay * np.sqrt(1.0 + ratio * ratio)


def cdiv_cc(re_x: float, im_x: float, re_y: float, im_y: float) -> Tuple[float, float]:
    """Complex division x / y, scaled by |re(y)| + |im(y)| (EISPACK cdiv)."""
    s = abs(re_y) + abs(im_y)
    if s == 0.0:
        if re_x == 0:
            if im_x == 0:
                return np.nan, np.nan
            return 0.0, im_x * np.inf
        if im_x == 0:
            return re_x * np.inf, 0.0
        return re_x * np.inf, im_x * np.inf
    re_xs = re_x / s
    im_xs = im_x / s
    re_ys = re_y / s
    im_ys = im_y / s
    s = re_ys * re_ys + im_ys * im_ys
    return (re_xs * re_ys + im_xs * im_ys) / s, (im_xs * re_ys - re_xs * im_ys) / s


def cdiv_rc(x: float, re_y: float, im_y: float) -> Tuple[float, float]:
    """Real divided by complex using Smith's formula."""
    if abs(re_y) > abs(im_y):
        r = im_y / re_y
        t = re_y + im_y * r
        return x / t, -r * x / t
    if im_y == 0:
        return x * np.inf, 0.0
    r = re_y / im_y
    t = re_y * r + im_y
    return r * x / t, -x / t


def creciprocal(re: float, im: float) -> Tuple[float, float]:
    if abs(re) > abs(im):
        r = im / re
        t = re + im * r
        return 1.0 / t, -r / t
    if im == 0:
        return np.inf, 0.0
    r = re / im
    t = re * r + im
    return r / t, -1.0 / t


def csign(re: float, im: float) -> Tuple[float, float]:
    ax = abs(re)
    ay = abs(im)
    if ax > ay:
        ratio = ay / ax
        m = ax * np.sqrt(1.0 + ratio * ratio)
    elif ay == 0:
        return 0.0, 0.0
    else:
        ratio = ax / ay
        m = ay * np.sqrt(1.0 + ratio * ratio)
    return re / m, im / m


def csqrt(re: float, im: float) -> Tuple[float, float]:
    """Principal square root."""
    ax = abs(re)
    ay = abs(im)
    if ax > ay:
        ratio = ay / ax
        m = ax * np.sqrt(1.0 + ratio * ratio)
    elif ay == 0:
        return 0.0, 0.0
    else:
        ratio = ax / ay
        m = ay * np.sqrt(1.0 + ratio * ratio)
    t = np.sqrt((ax + m) * 0.5)
    if re >= 0:
        return t, im / (2.0 * t)
    return ay / (2.0 * t), np.copysign(t, im)


def cexp(re: float, im: float) -> Tuple[float, float]:
    e = np.exp(re)
    return e * np.cos(im), e * np.sin(im)


def clog(re: float, im: float) -> Tuple[float, float]:
    return np.log(np.hypot(re, im)), np.arctan2(im, re)


def csin(re: float, im: float) -> Tuple[float, float]:
    return np.sin(re) * np.cosh(im), np.cos(re) * np.sinh(im)


def ccos(re: float, im: float) -> Tuple[float, float]:
    return np.cos(re) * np.cosh(im), -np.sin(re) * np.sinh(im)


def ctan(re: float, im: float) -> Tuple[float, float]:
    d = np.cos(2.0 * re) + np.cosh(2.0 * im)
    return np.sin(2.0 * re) / d, np.sinh(2.0 * im) / d


def csinh(re: float, im: float) -> Tuple[float, float]:
    return np.sinh(re) * np.cos(im), np.cosh(re) * np.sin(im)


def ccosh(re: float, im: float) -> Tuple[float, float]:
    return np.cosh(re) * np.cos(im), np.sinh(re) * np.sin(im)


def ctanh(re: float, im: float) -> Tuple[float, float]:
    d = np.cosh(2.0 * re) + np.cos(2.0 * im)
    return np.sinh(2.0 * re) / d, np.sin(2.0 * im) / d


def sign(x: float) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    if x == 0:
        return 0.0
    return np.nan


def minimum(x: float, y: float) -> float:
    if x != x or y != y:
        return np.nan
    return x if x <= y else y


def maximum(x: float, y: float) -> float:
    if x != x or y != y:
        return np.nan
    return x if x >= y else y


def power(x: float, y: float) -> float:
    return np.power(x * 1.0, y * 1.0)


def round_half_up(x: float) -> float:
    return np.floor(x + 0.5)


def round_to(x: float, decimals: float) -> float:
    scale = np.power(10.0, decimals)
    return np.floor(x * scale + 0.5) / scale


# Helpers exposed to kernel namespaces under these names.
KERNEL_HELPERS = {
    "broadcast_offset": broadcast_offset,
    "length2": length2,
    "cdiv_cc": cdiv_cc,
    "cdiv_rc": cdiv_rc,
    "creciprocal": creciprocal,
    "csign": csign,
    "csqrt": csqrt,
    "cexp": cexp,
    "clog": clog,
    "csin": csin,
    "ccos": ccos,
    "ctan": ctan,
    "csinh": csinh,
    "ccosh": ccosh,
    "ctanh": ctanh,
    "sign": sign,
    "minimum": minimum,
    "maximum": maximum,
    "power": power,
    "round_half_up": round_half_up,
    "round_to": round_to,
}
