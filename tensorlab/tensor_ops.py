from __future__ import annotations

import itertools
import linecache
import logging
import re
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple, Type

import numpy as np

from . import operators
from .config import EngineConfig
from .dtype import (
    BinaryDTypeCalculator,
    DType,
    OutputDTypeResolver,
    UnaryDTypeCalculator,
    is_wider_type,
)
from .errors import (
    InPlaceNotPossible,
    TemplateSyntaxError,
    UnsupportedComplexPath,
    UnsupportedDTypeCombination,
)
from .operand import OperandDescriptor, unify
from .template import TemplateEngine
from .templates import BINARY_KERNEL, UNARY_KERNEL
from .tensor_data import shape_broadcast, strides_from_shape
from .tensor_helpers import broadcast_strides

if TYPE_CHECKING:
    from .tensor import Tensor

logger = logging.getLogger(__name__)

_SYMBOL = re.compile(r"\$(\w+)")
_TMP_SYMBOLS = frozenset({"tmp1", "tmp2", "tmp3", "tmp4"})

UNARY_SYMBOLS = {
    "r": frozenset({"reX", "reY", "imY"}) | _TMP_SYMBOLS,
    "c": frozenset({"reX", "imX", "reY", "imY"}) | _TMP_SYMBOLS,
}
BINARY_SYMBOLS = {
    "rr": frozenset({"reX", "reY", "reZ", "imZ"}) | _TMP_SYMBOLS,
    "rc": frozenset({"reX", "reY", "imY", "reZ", "imZ"}) | _TMP_SYMBOLS,
    "cr": frozenset({"reX", "imX", "reY", "reZ", "imZ"}) | _TMP_SYMBOLS,
    "cc": frozenset({"reX", "imX", "reY", "imY", "reZ", "imZ"}) | _TMP_SYMBOLS,
}

_kernel_counter = itertools.count()


@dataclass(frozen=True)
class UnaryFragments:
    """Loop bodies of a unary op for real (`op_r`) and complex (`op_c`) input."""

    op_r: str
    op_c: Optional[str] = None


@dataclass(frozen=True)
class BinaryFragments:
    """Loop bodies of a binary op, one per real/complex input combination."""

    op_rr: str
    op_rc: Optional[str] = None
    op_cr: Optional[str] = None
    op_cc: Optional[str] = None


def _check_fragment(fragment: str, allowed: frozenset, path: str, op_name: str) -> bool:
    """
    Validates the symbols of one fragment and reports whether it writes an
    imaginary output.
    """
    used = set(_SYMBOL.findall(fragment))
    illegal = used - allowed
    if illegal:
        raise TemplateSyntaxError(
            f"Fragment for path {path.upper()} of {op_name} uses illegal symbols "
            f"{sorted('$' + s for s in illegal)}"
        )
    return ("imY" if len(path) == 1 else "imZ") in used


def _exec_source(source: str, fn_name: str, namespace: Dict[str, Any]) -> Callable:
    filename = f"<tensorlab-kernel-{fn_name}>"
    linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
    code = compile(source, filename, "exec")
    scope = dict(namespace)
    exec(code, scope)
    return scope[fn_name]


class TensorOps:
    """Turns rendered kernel source into something callable."""

    name = "base"

    @staticmethod
    def compile_kernel(source: str, fn_name: str) -> Callable[..., None]:
        raise NotImplementedError

    @staticmethod
    def run(kernel: Callable[..., None], *args: Any) -> None:
        raise NotImplementedError


class SimpleOps(TensorOps):
    """Runs the generated source as plain Python over numpy scalars."""

    name = "simple"

    @staticmethod
    def compile_kernel(source: str, fn_name: str) -> Callable[..., None]:
        namespace = {"np": np, "prange": range}
        namespace.update(operators.KERNEL_HELPERS)
        return _exec_source(source, fn_name, namespace)

    @staticmethod
    def run(kernel: Callable[..., None], *args: Any) -> None:
        with np.errstate(all="ignore"):
            kernel(*args)


def _dummy(dtype: np.dtype) -> np.ndarray:
    return np.zeros(0, dtype=dtype)


def _kernel_input(array: np.ndarray) -> np.ndarray:
    # Logic operands are widened so that arithmetic on them cannot wrap.
    if array.dtype == np.uint8:
        return array.astype(np.int32)
    return array


def to_scalar(re: Any, im: Any, dtype: DType) -> Any:
    if im is not None and im != 0:
        return complex(float(re), float(im))
    if dtype == DType.LOGIC:
        return bool(re)
    if dtype == DType.INT32:
        return int(re)
    return float(re)


class ElementwiseCompiler:
    """
    Builds element-wise ops from fragments and owns the cache of compiled
    kernels. Kernels are compiled the first time a configuration is used.
    """

    def __init__(self, ops: Type[TensorOps] = SimpleOps, config: Optional[EngineConfig] = None):
        self.ops = ops
        self.config = (config or EngineConfig(backend=ops.name)).normalized()
        self.templates = TemplateEngine()
        self._kernels: Dict[Tuple[Any, ...], Callable[..., None]] = {}
        self._lock = threading.RLock()
        self._op_ids = itertools.count()

    def make_unary_op(
        self,
        fragments: UnaryFragments,
        output_dtype: Optional[UnaryDTypeCalculator] = None,
        no_in_place: bool = False,
        name: str = "unary",
    ) -> "UnaryOp":
        return UnaryOp(self, fragments, output_dtype, no_in_place, name, has_param=False)

    def make_one_param_unary_op(
        self,
        fragments: UnaryFragments,
        output_dtype: Optional[UnaryDTypeCalculator] = None,
        no_in_place: bool = False,
        name: str = "unary",
    ) -> "UnaryOp":
        return UnaryOp(self, fragments, output_dtype, no_in_place, name, has_param=True)

    def make_binary_op(
        self,
        fragments: BinaryFragments,
        output_dtype: Optional[BinaryDTypeCalculator] = None,
        no_in_place: bool = False,
        name: str = "binary",
    ) -> "BinaryOp":
        return BinaryOp(self, fragments, output_dtype, no_in_place, name)

    def next_op_id(self) -> int:
        return next(self._op_ids)

    def kernel(
        self,
        key: Tuple[Any, ...],
        template: str,
        fragment: str,
        symbols: Dict[str, str],
        flags: Dict[str, bool],
    ) -> Callable[..., None]:
        with self._lock:
            cached = self._kernels.get(key)
        if cached is not None:
            return cached
        fn_name = f"_kernel_{key[1]}_{next(_kernel_counter)}"
        body = self.templates.generate(fragment, symbols, flags)
        source = self.templates.generate(template, {"name": fn_name, "body": body}, flags)
        logger.debug("Compiling kernel %s key=%s backend=%s", fn_name, key, self.ops.name)
        if self.config.log_kernel_source:
            logger.debug("Kernel source for %s:\n%s", fn_name, source)
        kernel = self.ops.compile_kernel(source, fn_name)
        with self._lock:
            return self._kernels.setdefault(key, kernel)

    def cache_size(self) -> int:
        with self._lock:
            return len(self._kernels)


class _ElementwiseOp:
    def __init__(self, compiler: ElementwiseCompiler, no_in_place: bool, name: str):
        self.compiler = compiler
        self.no_in_place = no_in_place
        self.name = name
        self.op_id = compiler.next_op_id()

    def _make_result(
        self,
        re: np.ndarray,
        im: Optional[np.ndarray],
        shape: Tuple[int, ...],
        dtype: DType,
        scalar_output: bool,
    ) -> Any:
        from .tensor import Tensor

        if scalar_output:
            return to_scalar(re[0].item(), None if im is None else im[0].item(), dtype)
        return Tensor.from_buffers(re, im, shape, dtype)

    def _check_in_place(
        self,
        x: Any,
        shape: Tuple[int, ...],
        out_dtype: DType,
        complex_out: bool,
    ) -> "Tensor":
        from .tensor import Tensor

        if self.no_in_place:
            raise InPlaceNotPossible(f"{self.name} cannot be performed in place.")
        if not isinstance(x, Tensor):
            raise InPlaceNotPossible(
                f"In-place {self.name} requires a tensor receiver, got {type(x).__name__}."
            )
        if tuple(shape) != x.shape:
            raise InPlaceNotPossible(
                f"In-place {self.name} would change the shape from {x.shape} to {tuple(shape)}."
            )
        if is_wider_type(x.dtype, out_dtype):
            raise InPlaceNotPossible(
                f"In-place {self.name} would widen the dtype from {x.dtype} to {out_dtype}."
            )
        if complex_out and not x.has_complex_storage():
            raise InPlaceNotPossible(
                f"In-place {self.name} produces complex output but the receiver is real."
            )
        return x


class UnaryOp(_ElementwiseOp):
    def __init__(
        self,
        compiler: ElementwiseCompiler,
        fragments: UnaryFragments,
        output_dtype: Optional[UnaryDTypeCalculator],
        no_in_place: bool,
        name: str,
        has_param: bool,
    ):
        super().__init__(compiler, no_in_place, name)
        self.fragments = fragments
        self.output_dtype = output_dtype or OutputDTypeResolver.u_no_change
        self.has_param = has_param
        self._paths: Dict[str, Tuple[str, bool]] = {}
        for path, fragment in (("r", fragments.op_r), ("c", fragments.op_c)):
            if fragment is not None:
                allowed = UNARY_SYMBOLS[path] | {"param"} if has_param else UNARY_SYMBOLS[path]
                complex_out = _check_fragment(fragment, allowed, path, name)
                self._paths[path] = (fragment, complex_out)

    def __call__(self, x: Any, *args: Any, in_place: bool = False) -> Any:
        if self.has_param:
            if len(args) != 1:
                raise TypeError(f"{self.name} expects exactly one parameter.")
            return self._invoke(x, float(args[0]), in_place)
        if args:
            raise TypeError(f"{self.name} takes a single operand.")
        return self._invoke(x, 0.0, in_place)

    def _invoke(self, x: Any, param: float, in_place: bool) -> Any:
        dx = unify(x)
        out_dtype = self.output_dtype(dx.original_dtype, dx.is_complex)
        if out_dtype is None:
            kind = "complex " if dx.is_complex else ""
            raise UnsupportedDTypeCombination(
                f"{self.name} does not support {kind}{dx.original_dtype} input."
            )
        path = "c" if dx.is_complex else "r"
        if path not in self._paths:
            raise UnsupportedComplexPath(f"{self.name} does not support complex input.")
        fragment, complex_out = self._paths[path]
        if complex_out and out_dtype == DType.LOGIC:
            raise UnsupportedDTypeCombination(f"{self.name} cannot produce complex logic output.")

        out_np = out_dtype.numpy_dtype
        storage = _storage_dtype(x, out_dtype, in_place)
        key = (self.op_id, self.name, (dx.original_dtype, storage), path, in_place, False)
        flags = {
            "IN_PLACE": in_place,
            "X_COMPLEX": dx.is_complex,
            "OUTPUT_INT": storage == DType.INT32,
        }
        if in_place:
            receiver = self._check_in_place(x, dx.original_shape, out_dtype, complex_out)
            re_out = receiver.real_data
            if receiver.has_complex_storage():
                im_out = receiver.imag_data
            else:
                im_out = _dummy(re_out.dtype)
        else:
            re_out = np.zeros(dx.size, dtype=out_np)
            im_out = np.zeros(dx.size, dtype=out_np) if complex_out else _dummy(out_np)

        symbols = {
            "reX": "xr",
            "imX": "xi",
            "reY": "re_x[i]" if in_place else "re_y[i]",
            "imY": "im_x[i]" if in_place else "im_y[i]",
            "param": "param",
        }
        symbols.update({t: t for t in _TMP_SYMBOLS})
        kernel = self.compiler.kernel(key, UNARY_KERNEL, fragment, symbols, flags)

        if in_place:
            self.compiler.ops.run(kernel, re_out, im_out, param)
            if not complex_out:
                receiver._tensor.drop_complex_storage()
            return receiver

        re_x = _kernel_input(dx.re_array)
        im_x = dx.im_array if dx.is_complex else _dummy(re_x.dtype)
        self.compiler.ops.run(kernel, re_out, im_out, re_x, im_x, param)
        im_result: Optional[np.ndarray] = im_out if complex_out else None
        if im_result is not None and not dx.is_complex and not np.any(im_result != 0):
            im_result = None
        return self._make_result(
            re_out, im_result, dx.original_shape, out_dtype, dx.is_scalar_input
        )


class BinaryOp(_ElementwiseOp):
    def __init__(
        self,
        compiler: ElementwiseCompiler,
        fragments: BinaryFragments,
        output_dtype: Optional[BinaryDTypeCalculator],
        no_in_place: bool,
        name: str,
    ):
        super().__init__(compiler, no_in_place, name)
        self.fragments = fragments
        self.output_dtype = output_dtype or OutputDTypeResolver.b_wider
        self._paths: Dict[str, Tuple[str, bool]] = {}
        for path, fragment in (
            ("rr", fragments.op_rr),
            ("rc", fragments.op_rc),
            ("cr", fragments.op_cr),
            ("cc", fragments.op_cc),
        ):
            if fragment is not None:
                complex_out = _check_fragment(fragment, BINARY_SYMBOLS[path], path, name)
                self._paths[path] = (fragment, complex_out)

    def __call__(self, x: Any, y: Any, in_place: bool = False) -> Any:
        dx = unify(x)
        dy = unify(y)
        shape = resolve_output_shape(dx, dy)
        out_dtype = self.output_dtype(
            dx.original_dtype, dx.is_complex, dy.original_dtype, dy.is_complex
        )
        if out_dtype is None:
            raise UnsupportedDTypeCombination(
                f"{self.name} does not support {_describe_dtype(dx)} and {_describe_dtype(dy)}."
            )
        path = ("c" if dx.is_complex else "r") + ("c" if dy.is_complex else "r")
        if path not in self._paths:
            raise UnsupportedComplexPath(
                f"{self.name} does not support {_describe_dtype(dx)} and {_describe_dtype(dy)}."
            )
        fragment, complex_out = self._paths[path]
        if complex_out and out_dtype == DType.LOGIC:
            raise UnsupportedDTypeCombination(f"{self.name} cannot produce complex logic output.")

        broadcast = dx.original_shape != shape or dy.original_shape != shape
        storage = _storage_dtype(x, out_dtype, in_place)
        key = (
            self.op_id,
            self.name,
            (dx.original_dtype, dy.original_dtype, storage),
            path,
            in_place,
            broadcast,
        )
        flags = {
            "IN_PLACE": in_place,
            "BROADCAST": broadcast,
            "X_COMPLEX": dx.is_complex,
            "Y_COMPLEX": dy.is_complex,
            "OUTPUT_INT": storage == DType.INT32,
        }
        out_np = out_dtype.numpy_dtype
        size = int(np.prod(shape, dtype=np.int64))
        shape_z = np.array(shape, dtype=np.int64)
        strides_x = _operand_strides(dx, shape)
        strides_y = _operand_strides(dy, shape)
        re_y = _kernel_input(dy.re_array)
        im_y = dy.im_array if dy.is_complex else _dummy(re_y.dtype)

        symbols = {
            "reX": "xr",
            "imX": "xi",
            "reY": "yr",
            "imY": "yi",
            "reZ": "re_x[i]" if in_place else "re_z[i]",
            "imZ": "im_x[i]" if in_place else "im_z[i]",
        }
        symbols.update({t: t for t in _TMP_SYMBOLS})
        if in_place:
            receiver = self._check_in_place(x, shape, out_dtype, complex_out)
        kernel = self.compiler.kernel(key, BINARY_KERNEL, fragment, symbols, flags)

        if in_place:
            re_x = receiver.real_data
            if receiver.has_complex_storage():
                im_x = receiver.imag_data
            else:
                im_x = _dummy(re_x.dtype)
            self.compiler.ops.run(
                kernel, shape_z, re_x, im_x, strides_x, re_y, im_y, strides_y
            )
            if not complex_out:
                receiver._tensor.drop_complex_storage()
            return receiver

        re_x = _kernel_input(dx.re_array)
        im_x = dx.im_array if dx.is_complex else _dummy(re_x.dtype)
        re_z = np.zeros(size, dtype=out_np)
        im_z = np.zeros(size, dtype=out_np) if complex_out else _dummy(out_np)
        self.compiler.ops.run(
            kernel, re_z, im_z, shape_z, re_x, im_x, strides_x, re_y, im_y, strides_y
        )
        im_result: Optional[np.ndarray] = im_z if complex_out else None
        if (
            im_result is not None
            and not (dx.is_complex or dy.is_complex)
            and not np.any(im_result != 0)
        ):
            im_result = None
        return self._make_result(
            re_z, im_result, shape, out_dtype, dx.is_scalar_input and dy.is_scalar_input
        )


def _storage_dtype(x: Any, out_dtype: DType, in_place: bool) -> DType:
    from .tensor import Tensor

    if in_place and isinstance(x, Tensor):
        return x.dtype
    return out_dtype


def _describe_dtype(d: OperandDescriptor) -> str:
    return f"complex {d.original_dtype}" if d.is_complex else str(d.original_dtype)


def _operand_strides(d: OperandDescriptor, shape: Tuple[int, ...]) -> np.ndarray:
    if d.has_single_element:
        return np.zeros(len(shape), dtype=np.int64)
    if d.original_shape == tuple(shape):
        return np.array(strides_from_shape(shape), dtype=np.int64)
    return broadcast_strides(d.original_shape, shape)


def resolve_output_shape(dx: OperandDescriptor, dy: OperandDescriptor) -> Tuple[int, ...]:
    """
    Output shape of a binary op. A single-element operand broadcasts against
    any shape; otherwise trailing dimensions must match or be 1.
    """
    if dx.has_single_element and dy.has_single_element:
        return shape_broadcast(dx.original_shape, dy.original_shape)
    if dx.has_single_element:
        return dy.original_shape
    if dy.has_single_element:
        return dx.original_shape
    if dx.original_shape == dy.original_shape:
        return dx.original_shape
    return shape_broadcast(dx.original_shape, dy.original_shape)


class TensorBackend:
    def __init__(self, ops: Type[TensorOps], config: Optional[EngineConfig] = None):
        """
        Construct a tensor backend: one compiler over a `tensor_ops` object
        and every public operation built from it.

        Args:
            ops : kernel compilation strategy, see `SimpleOps` and `FastOps`
            config : engine configuration

        Returns :
            A collection of tensor functions
        """
        from .arithmetic import Arithmetic
        from .data_ops import DataOps
        from .logic_ops import LogicOps
        from .math_ops import MathOps

        self.compiler = ElementwiseCompiler(ops, config)
        self.name = ops.name
        self.arithmetic = Arithmetic(self.compiler)
        self.math = MathOps(self.compiler)
        self.logic = LogicOps(self.compiler)
        self.data = DataOps()

        # Arithmetic
        self.add = self.arithmetic.add
        self.sub = self.arithmetic.sub
        self.mul = self.arithmetic.mul
        self.div = self.arithmetic.div
        self.neg = self.arithmetic.neg
        self.reciprocal = self.arithmetic.reciprocal
        self.rem = self.arithmetic.rem
        # Math
        self.abs = self.math.abs
        self.sign = self.math.sign
        self.conj = self.math.conj
        self.angle = self.math.angle
        self.rad2deg = self.math.rad2deg
        self.deg2rad = self.math.deg2rad
        self.min2 = self.math.min2
        self.max2 = self.math.max2
        self.exp = self.math.exp
        self.log = self.math.log
        self.sqrt = self.math.sqrt
        self.square = self.math.square
        self.pow = self.math.pow
        self.floor = self.math.floor
        self.ceil = self.math.ceil
        self.round = self.math.round
        self.fix = self.math.fix
        self.round_to = self.math.round_to
        self.sin = self.math.sin
        self.cos = self.math.cos
        self.tan = self.math.tan
        self.sinh = self.math.sinh
        self.cosh = self.math.cosh
        self.tanh = self.math.tanh
        self.asin = self.math.asin
        self.acos = self.math.acos
        self.atan = self.math.atan
        # Logic and comparison
        self.eq = self.logic.eq
        self.neq = self.logic.neq
        self.gt = self.logic.gt
        self.ge = self.logic.ge
        self.lt = self.logic.lt
        self.le = self.logic.le
        self.logical_and = self.logic.logical_and
        self.logical_or = self.logic.logical_or
        self.logical_xor = self.logic.logical_xor
        self.logical_not = self.logic.logical_not
        self.all = self.logic.all
        self.any = self.logic.any
        # Data
        self.tile = self.data.tile
        self.reshape = self.data.reshape
        self.flatten = self.data.flatten
        self.squeeze = self.data.squeeze
        self.concat = self.data.concat
        self.sum = self.data.sum
        self.prod = self.data.prod
        self.find = self.data.find


_default_backend: Optional[TensorBackend] = None
_default_lock = threading.Lock()


def make_backend(config: Optional[EngineConfig] = None) -> TensorBackend:
    config = (config or EngineConfig()).normalized()
    if config.backend == "fast":
        from .fast_ops import FastOps

        return TensorBackend(FastOps, config)
    return TensorBackend(SimpleOps, config)


def get_default_backend() -> TensorBackend:
    global _default_backend
    with _default_lock:
        if _default_backend is None:
            _default_backend = make_backend(EngineConfig.from_environment())
        return _default_backend


def set_default_backend(backend: TensorBackend) -> None:
    global _default_backend
    with _default_lock:
        _default_backend = backend
