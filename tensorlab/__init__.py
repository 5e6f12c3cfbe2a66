from typing import Any

from .config import EngineConfig  # noqa: F401,F403
from .dtype import DType, OutputDTypeResolver  # noqa: F401,F403
from .errors import *  # noqa: F401,F403
from .operand import OperandDescriptor, OriginalKind, unify, unify_pair  # noqa: F401,F403
from .template import TemplateEngine, TemplateGenerator  # noqa: F401,F403
from .tensor import *  # noqa: F401,F403
from .tensor_data import TensorData, shape_broadcast, strides_from_shape  # noqa: F401,F403
from .tensor_ops import (  # noqa: F401,F403
    BinaryFragments,
    ElementwiseCompiler,
    SimpleOps,
    TensorBackend,
    TensorOps,
    UnaryFragments,
    get_default_backend,
    make_backend,
    set_default_backend,
)

_BACKEND_OPS = frozenset(
    {
        "add", "sub", "mul", "div", "neg", "reciprocal", "rem",
        "abs", "sign", "conj", "angle", "rad2deg", "deg2rad", "min2", "max2",
        "exp", "log", "sqrt", "square", "pow", "floor", "ceil", "round", "fix",
        "round_to", "sin", "cos", "tan", "sinh", "cosh", "tanh", "asin", "acos",
        "atan", "eq", "neq", "gt", "ge", "lt", "le", "logical_and", "logical_or",
        "logical_xor", "logical_not", "all", "any", "tile", "reshape", "flatten",
        "squeeze", "concat", "sum", "prod", "find",
    }
)


def __getattr__(name: str) -> Any:
    # Operations resolve against the default backend on first use so that
    # importing the package does not compile anything.
    if name in _BACKEND_OPS:
        return getattr(get_default_backend(), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
