from __future__ import annotations

from typing import Sequence

import numpy as np

from .tensor_data import strides_from_shape


def broadcast_strides(in_shape: Sequence[int], out_shape: Sequence[int]) -> np.ndarray:
    """
    Strides that map a multi-index of `out_shape` onto the row-major storage of
    an input of shape `in_shape` broadcast against it. The result has one entry
    per output dimension, zero on dimensions the input is broadcast along.
    """
    out = np.zeros(len(out_shape), dtype=np.int64)
    offset = len(out_shape) - len(in_shape)
    in_strides = strides_from_shape(in_shape)
    for i, s in enumerate(in_shape):
        if offset + i < 0:
            continue
        out[i + offset] = in_strides[i] if s > 1 else 0
    return out


def cartesian_offsets(positions: Sequence[np.ndarray], strides: Sequence[int]) -> np.ndarray:
    """
    Storage offsets of the Cartesian product of per-dimension positions,
    enumerated in row-major order of the product.
    """
    offsets = np.zeros(1, dtype=np.int64)
    for pos, stride in zip(positions, strides):
        pos = np.asarray(pos, dtype=np.int64).reshape(-1)
        offsets = (offsets[:, None] + pos[None, :] * int(stride)).reshape(-1)
    return offsets
