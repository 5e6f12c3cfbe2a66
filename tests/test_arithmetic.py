import math

import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st

from tensorlab import DType, complex_tensor, tensor
from tensorlab.operators import cdiv_cc, cdiv_rc, creciprocal
from tensorlab.tensor import is_approximately_equal

small_floats = st.floats(min_value=-1e3, max_value=1e3).filter(lambda v: v == 0 or abs(v) > 1e-3)


def test_sub_real_matrix_and_complex_scalar(backend):
    m = tensor([[1, 2], [3, 4]])
    out = backend.sub(m, 0.5 + 2j)
    assert out.has_complex_storage()
    assert out.real().to_list() == [[0.5, 1.5], [2.5, 3.5]]
    assert out.imag().to_list() == [[-2.0, -2.0], [-2.0, -2.0]]


def test_scalar_operands_give_scalar_results(backend):
    assert backend.add(1, 2) == 3.0
    assert isinstance(backend.add(1, 2), float)
    assert backend.mul(1 + 2j, 3 - 1j) == (1 + 2j) * (3 - 1j)
    assert backend.add(True, True) == 2
    assert isinstance(backend.add(True, True), int)


def test_single_element_tensor_is_not_a_scalar_result(backend):
    out = backend.add(tensor([1.0]), 1)
    assert out.shape == (1,)
    assert out.to_list() == [2.0]


@pytest.mark.parametrize(
    "x, y, expected",
    [
        ([1.0, 2.0], [3.0, 4.0], [4.0, 6.0]),
        ([1 + 1j, 2], [1, 1j], [2 + 1j, 2 + 1j]),
        ([1.0, 2.0], [1j, 2j], [1 + 1j, 2 + 2j]),
        ([1j, 2j], [1.0, 2.0], [1 + 1j, 2 + 2j]),
    ],
)
def test_add_paths(backend, x, y, expected):
    assert backend.add(tensor(x), tensor(y)).to_list() == expected


def test_mul_complex_paths(backend):
    x = complex_tensor([1, 2], [1, -1])
    assert backend.mul(x, x).to_list() == [2j, 3 - 4j]
    assert backend.mul(x, 2).to_list() == [2 + 2j, 4 - 2j]
    assert backend.mul(2, x).to_list() == [2 + 2j, 4 - 2j]


def test_div_real_by_complex(backend):
    out = backend.div(tensor([2.0, 1.0]), tensor([1 + 1j, 2j]))
    assert np.allclose(out.to_numpy(), [1 - 1j, -0.5j])


def test_div_complex_by_complex(backend):
    out = backend.div(1 + 2j, 3 - 4j)
    assert out == pytest.approx((1 + 2j) / (3 - 4j))


def test_complex_division_by_zero(backend):
    out = backend.div(complex_tensor([1.0, 0.0], [1.0, 0.0]), 0)
    values = out.to_numpy()
    assert values[0].real == math.inf and values[0].imag == math.inf
    assert math.isnan(values[1].real)


def test_division_by_zero_helpers():
    assert cdiv_cc(1.0, 0.0, 0.0, 0.0) == (math.inf, 0.0)
    assert cdiv_cc(0.0, -1.0, 0.0, 0.0) == (0.0, -math.inf)
    re, im = cdiv_cc(0.0, 0.0, 0.0, 0.0)
    assert math.isnan(re) and math.isnan(im)
    assert cdiv_rc(1.0, 0.0, 0.0) == (math.inf, 0.0)
    assert creciprocal(0.0, 0.0) == (math.inf, 0.0)


@given(small_floats, small_floats, small_floats, small_floats)
def test_cdiv_cc_matches_python(a, b, c, d):
    if c == 0 and d == 0:
        return
    re, im = cdiv_cc(a, b, c, d)
    expected = complex(a, b) / complex(c, d)
    assert re == pytest.approx(expected.real, rel=1e-9, abs=1e-9)
    assert im == pytest.approx(expected.imag, rel=1e-9, abs=1e-9)


@given(small_floats, small_floats, small_floats)
def test_cdiv_rc_matches_python(x, c, d):
    if c == 0 and d == 0:
        return
    re, im = cdiv_rc(x, c, d)
    expected = x / complex(c, d)
    assert re == pytest.approx(expected.real, rel=1e-9, abs=1e-9)
    assert im == pytest.approx(expected.imag, rel=1e-9, abs=1e-9)


def test_div_always_produces_float(backend):
    out = backend.div(tensor([3, 4], dtype=DType.INT32), tensor([2, 8], dtype=DType.INT32))
    assert out.dtype == DType.FLOAT64
    assert out.to_list() == [1.5, 0.5]
    f32 = tensor([1.0], dtype=DType.FLOAT32)
    assert backend.div(f32, f32).dtype == DType.FLOAT32


def test_logic_arithmetic_promotes_to_int(backend):
    out = backend.add(tensor([True, False], dtype=None), tensor([True, True], dtype=None))
    assert out.dtype == DType.INT32
    assert out.to_list() == [2, 1]


def test_int_arithmetic_stays_int(backend):
    a = tensor([7, -7], dtype=DType.INT32)
    assert backend.mul(a, a).dtype == DType.INT32
    assert backend.sub(a, a).to_list() == [0, 0]


def test_rem_follows_dividend_sign(backend):
    out = backend.rem(tensor([7.0, -7.0, 7.5]), tensor([3.0, 3.0, 2.0]))
    assert out.to_list() == [1.0, -1.0, 1.5]


def test_neg(backend):
    assert backend.neg(tensor([1.0, -2.0])).to_list() == [-1.0, 2.0]
    assert backend.neg(1 - 1j) == -1 + 1j
    assert backend.neg(tensor([True, False], dtype=None)).dtype == DType.FLOAT64


def test_reciprocal(backend):
    assert backend.reciprocal(tensor([2.0, 0.0])).to_list() == [0.5, math.inf]
    assert backend.reciprocal(1j) == -1j
    ints = tensor([1, 2, 0], dtype=DType.INT32)
    assert backend.reciprocal(ints).to_list() == [1, 0, 0]


@given(st.lists(small_floats, min_size=1, max_size=8), small_floats)
def test_add_matches_numpy(simple_backend, values, shift):
    out = simple_backend.add(tensor(values), shift)
    expected = tensor(np.array(values) + shift)
    assert is_approximately_equal(out, expected, 1e-9)


def test_operator_overloads(default_backend):
    x = tensor([1.0, 2.0])
    assert (x + 1).to_list() == [2.0, 3.0]
    assert (1 - x).to_list() == [0.0, -1.0]
    assert (x * x).to_list() == [1.0, 4.0]
    assert (2 / x).to_list() == [2.0, 1.0]
    assert (x % 2).to_list() == [1.0, 0.0]
    assert (x ** 2).to_list() == [1.0, 4.0]
    assert (-x).to_list() == [-1.0, -2.0]
    assert abs(tensor([-3.0])).to_list() == [3.0]
    m = tensor([[1, 2], [3, 4]])
    assert (m - 1j).to_list() == [[1 - 1j, 2 - 1j], [3 - 1j, 4 - 1j]]
    assert (tensor([[1, 2, 3]]) + tensor([[10], [20]])).to_list() == [[11, 12, 13], [21, 22, 23]]
