import logging

import numpy as np
import pytest

from tensorlab import DType, complex_tensor, tensor, zeros
from tensorlab.config import EngineConfig
from tensorlab.errors import (
    BroadcastError,
    InPlaceNotPossible,
    TemplateSyntaxError,
    UnsupportedComplexPath,
    UnsupportedDTypeCombination,
)
from tensorlab.tensor import is_equal
from tensorlab.tensor_ops import (
    BinaryFragments,
    ElementwiseCompiler,
    SimpleOps,
    UnaryFragments,
    to_scalar,
)


def test_broadcast_row_against_column(backend):
    row = tensor([[1, 2, 3]])
    col = tensor([[10], [20]])
    out = backend.add(row, col)
    assert out.shape == (2, 3)
    assert out.to_list() == [[11, 12, 13], [21, 22, 23]]
    assert backend.sub(col, row).to_list() == [[9, 8, 7], [19, 18, 17]]


def test_broadcast_trailing_dimensions(backend):
    x = tensor(np.arange(6).reshape(2, 3))
    out = backend.mul(x, [1, 10, 100])
    assert out.to_list() == [[0, 10, 200], [3, 40, 500]]


def test_single_element_operand_broadcasts_to_any_shape(backend):
    x = tensor(np.ones((2, 2, 2)))
    assert backend.add(x, tensor([[[[5]]]])).shape == (2, 2, 2)
    assert backend.add(tensor([5]), x).shape == (2, 2, 2)


def test_incompatible_shapes(backend):
    with pytest.raises(BroadcastError):
        backend.add(tensor([1, 2]), tensor([1, 2, 3]))


def test_operands_are_not_mutated(backend):
    x = tensor([1.0, 2.0])
    y = complex_tensor([3.0, 4.0], [1.0, 1.0])
    before_x = x.copy(deep=True)
    before_y = y.copy(deep=True)
    backend.mul(x, y)
    assert is_equal(x, before_x)
    assert is_equal(y, before_y)


def test_in_place_writes_into_receiver(backend):
    x = tensor([1.0, 2.0, 3.0])
    buffer = x.real_data
    out = backend.add(x, 1, in_place=True)
    assert out is x
    assert x.real_data is buffer
    assert x.to_list() == [2.0, 3.0, 4.0]


def test_in_place_with_complex_receiver(backend):
    x = complex_tensor([1.0, 2.0], [1.0, -1.0])
    backend.mul(x, 1j, in_place=True)
    assert x.to_list() == [-1 + 1j, 1 + 2j]


def test_in_place_real_result_drops_complex_storage(backend):
    x = complex_tensor([1.0, 2.0], [0.0, 0.0])
    backend.add(x, 1, in_place=True)
    assert not x.has_complex_storage()
    assert x.to_list() == [2.0, 3.0]


def test_in_place_into_float_from_narrower_operand(backend):
    x = tensor([1.5, 2.5])
    backend.add(x, tensor([1, 2], dtype=DType.INT32), in_place=True)
    assert x.dtype == DType.FLOAT64
    assert x.to_list() == [2.5, 4.5]


def test_in_place_int_receiver_keeps_storage_dtype(backend):
    x = tensor([1, 2, 4], dtype=DType.INT32)
    backend.neg(x, in_place=True)
    assert x.dtype == DType.INT32
    assert x.real_data.dtype == np.int32
    assert x.to_list() == [-1, -2, -4]


@pytest.mark.parametrize(
    "receiver, operand",
    [
        # Would change the shape.
        (lambda: tensor([1.0]), lambda: tensor([1.0, 2.0])),
        # Would widen Int32 to Float64.
        (lambda: tensor([1, 2], dtype=DType.INT32), lambda: tensor([0.5, 0.5])),
        # Would write a complex result into a real receiver.
        (lambda: tensor([1.0, 2.0]), lambda: 2j),
        # The receiver is not a tensor.
        (lambda: [1.0, 2.0], lambda: tensor([1.0, 2.0])),
    ],
)
def test_in_place_preconditions(backend, receiver, operand):
    with pytest.raises(InPlaceNotPossible):
        backend.add(receiver(), operand(), in_place=True)


def test_failed_in_place_leaves_receiver_unchanged(backend):
    x = tensor([1, 2], dtype=DType.INT32)
    with pytest.raises(InPlaceNotPossible):
        backend.div(x, 2, in_place=True)
    assert x.to_list() == [1, 2]


def test_comparisons_are_never_in_place(backend):
    with pytest.raises(InPlaceNotPossible):
        backend.eq(tensor([1.0]), 1.0, in_place=True)


def test_unsupported_complex_path(backend):
    with pytest.raises(UnsupportedComplexPath):
        backend.rem(complex_tensor([1.0], [1.0]), 2)
    with pytest.raises(UnsupportedComplexPath):
        backend.asin(1 + 1j)


def test_real_only_comparison_rejects_complex(backend):
    with pytest.raises(UnsupportedDTypeCombination):
        backend.lt(1 + 1j, 2)


def test_kernels_are_cached_per_configuration():
    compiler = ElementwiseCompiler(SimpleOps)
    add = compiler.make_binary_op(BinaryFragments(op_rr="$reZ = $reX + $reY"), name="add")
    add(tensor([1.0, 2.0]), tensor([3.0, 4.0]))
    add(tensor([5.0, 6.0]), tensor([7.0, 8.0]))
    assert compiler.cache_size() == 1
    add(tensor([1.0, 2.0]), 1.0)
    assert compiler.cache_size() == 2
    add(tensor([1, 2], dtype=DType.INT32), tensor([1, 2], dtype=DType.INT32))
    assert compiler.cache_size() == 3
    add(tensor([1.0, 2.0]), 1.0, in_place=True)
    assert compiler.cache_size() == 4


def test_equal_fragments_in_different_ops_do_not_share_kernels():
    compiler = ElementwiseCompiler(SimpleOps)
    fragments = UnaryFragments(op_r="$reY = $reX")
    first = compiler.make_unary_op(fragments, name="copy")
    second = compiler.make_unary_op(fragments, name="copy")
    first(tensor([1.0]))
    second(tensor([1.0]))
    assert compiler.cache_size() == 2


def test_kernel_source_is_logged(caplog):
    compiler = ElementwiseCompiler(SimpleOps, EngineConfig(backend="simple", log_kernel_source=True))
    op = compiler.make_unary_op(UnaryFragments(op_r="$reY = $reX * 3"), name="triple")
    with caplog.at_level(logging.DEBUG, logger="tensorlab.tensor_ops"):
        assert op(tensor([1.0, 2.0])).to_list() == [3.0, 6.0]
    messages = [r.getMessage() for r in caplog.records]
    assert any("Compiling kernel" in m for m in messages)
    assert any("re_y[i] = xr * 3" in m for m in messages)


@pytest.mark.parametrize(
    "fragments",
    [
        BinaryFragments(op_rr="$reZ = $reX + $imY"),
        BinaryFragments(op_rr="$reZ = $reX", op_rc="$reZ = $imX"),
        BinaryFragments(op_rr="$reZ = $reX + $param"),
    ],
)
def test_illegal_binary_symbols(fragments):
    compiler = ElementwiseCompiler(SimpleOps)
    with pytest.raises(TemplateSyntaxError, match="illegal symbols"):
        compiler.make_binary_op(fragments)


def test_illegal_unary_symbols():
    compiler = ElementwiseCompiler(SimpleOps)
    with pytest.raises(TemplateSyntaxError):
        compiler.make_unary_op(UnaryFragments(op_r="$reY = $imX"))
    with pytest.raises(TemplateSyntaxError):
        compiler.make_unary_op(UnaryFragments(op_r="$reY = $param"))
    compiler.make_one_param_unary_op(UnaryFragments(op_r="$reY = $reX + $param"))


def test_one_param_op_requires_its_parameter(simple_backend):
    with pytest.raises(TypeError):
        simple_backend.round_to(tensor([1.25]))
    assert simple_backend.round_to(tensor([1.25]), 1).to_list() == [1.3]


def test_fragment_conditionals_see_kernel_flags():
    compiler = ElementwiseCompiler(SimpleOps)
    fragments = UnaryFragments(op_r="#if OUTPUT_INT\n$reY = 7\n#else\n$reY = 0.5\n#endif")
    op = compiler.make_unary_op(fragments)
    assert op(tensor([1], dtype=DType.INT32)).to_list() == [7]
    assert op(tensor([1.0])).to_list() == [0.5]


def test_to_scalar():
    assert to_scalar(1, 0, DType.LOGIC) is True
    assert to_scalar(3.0, None, DType.INT32) == 3
    assert isinstance(to_scalar(3, None, DType.FLOAT64), float)
    assert to_scalar(1.0, 2.0, DType.FLOAT64) == 1 + 2j


def test_empty_operands(backend):
    out = backend.add(zeros([0]), 1.0)
    assert out.shape == (0,)


@pytest.mark.parametrize("receiver_dtype", list(DType))
@pytest.mark.parametrize("operand_dtype", list(DType))
def test_in_place_dtype_table(backend, receiver_dtype, operand_dtype):
    receiver = tensor([1, 0], dtype=receiver_dtype)
    operand = tensor([1, 1], dtype=operand_dtype)
    result_dtype = max(receiver_dtype, operand_dtype, DType.INT32)
    if result_dtype > receiver_dtype:
        with pytest.raises(InPlaceNotPossible):
            backend.add(receiver, operand, in_place=True)
        assert receiver.to_list() == tensor([1, 0], dtype=receiver_dtype).to_list()
    else:
        out = backend.add(receiver, operand, in_place=True)
        assert out is receiver
        assert receiver.dtype == receiver_dtype
        assert receiver.to_list() == [2, 1]


def test_in_place_with_scalar_operand(backend):
    x = tensor([1, 2, 3], dtype=DType.INT32)
    backend.add(x, np.int32(2), in_place=True)
    assert x.to_list() == [3, 4, 5]


def test_sub_complex_scalar_from_real_matrix(backend):
    out = backend.sub(tensor([[1, 2], [3, 4]]), 1 + 2j)
    assert out.to_list() == [[-2j, 1 - 2j], [2 - 2j, 3 - 2j]]


def test_broadcast_offsets_in_higher_dimensions(backend):
    a = np.arange(24.0).reshape(2, 3, 4)
    b = np.arange(3.0).reshape(3, 1)
    assert backend.add(tensor(a), tensor(b)).to_list() == (a + b).tolist()
