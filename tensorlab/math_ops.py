from __future__ import annotations

from typing import Dict

from .dtype import OutputDTypeResolver as R
from .tensor_ops import BinaryFragments, ElementwiseCompiler, UnaryFragments


def _complex_call(fn: str) -> str:
    return f"$tmp1, $tmp2 = {fn}($reX, $imX)\n$reY = $tmp1\n$imY = $tmp2"


def _both_parts(expr: str) -> UnaryFragments:
    """Applies a real function to the real part and, for complex input, the imaginary part."""
    return UnaryFragments(
        op_r="$reY = " + expr.format(x="$reX"),
        op_c="$reY = " + expr.format(x="$reX") + "\n$imY = " + expr.format(x="$imX"),
    )


ABS = UnaryFragments(
    op_r="$reY = abs($reX)",
    op_c="$reY = length2($reX, $imX)",
)

SIGN = UnaryFragments(
    op_r="$reY = sign($reX)",
    op_c=_complex_call("csign"),
)

CONJ = UnaryFragments(
    op_r="$reY = $reX",
    op_c="$reY = $reX\n$imY = -$imX",
)

ANGLE = UnaryFragments(
    op_r="$reY = np.arctan2(0.0, $reX * 1.0)",
    op_c="$reY = np.arctan2($imX * 1.0, $reX * 1.0)",
)

RAD2DEG = UnaryFragments(op_r="$reY = $reX * (180.0 / np.pi)")
DEG2RAD = UnaryFragments(op_r="$reY = $reX * (np.pi / 180.0)")

MIN2 = BinaryFragments(op_rr="$reZ = minimum($reX, $reY)")
MAX2 = BinaryFragments(op_rr="$reZ = maximum($reX, $reY)")

EXP = UnaryFragments(op_r="$reY = np.exp($reX * 1.0)", op_c=_complex_call("cexp"))

# Real negative input yields a complex result.
LOG = UnaryFragments(
    op_r=(
        "if $reX < 0:\n"
        "    $reY = np.log(-$reX * 1.0)\n"
        "    $imY = np.pi\n"
        "else:\n"
        "    $reY = np.log($reX * 1.0)\n"
        "    $imY = 0.0"
    ),
    op_c=_complex_call("clog"),
)

SQRT = UnaryFragments(
    op_r=(
        "if $reX < 0:\n"
        "    $reY = 0.0\n"
        "    $imY = np.sqrt(-$reX * 1.0)\n"
        "else:\n"
        "    $reY = np.sqrt($reX * 1.0)\n"
        "    $imY = 0.0"
    ),
    op_c=_complex_call("csqrt"),
)

SQUARE = UnaryFragments(
    op_r="$reY = $reX * $reX",
    op_c=(
        "$tmp1 = $reX * $reX - $imX * $imX\n"
        "$tmp2 = 2 * $reX * $imX\n"
        "$reY = $tmp1\n"
        "$imY = $tmp2"
    ),
)

POW = BinaryFragments(op_rr="$reZ = power($reX, $reY)")

FLOOR = _both_parts("np.floor({x} * 1.0)")
CEIL = _both_parts("np.ceil({x} * 1.0)")
ROUND = _both_parts("round_half_up({x} * 1.0)")
FIX = _both_parts("np.trunc({x} * 1.0)")
ROUND_TO = _both_parts("round_to({x} * 1.0, $param)")

SIN = UnaryFragments(op_r="$reY = np.sin($reX * 1.0)", op_c=_complex_call("csin"))
COS = UnaryFragments(op_r="$reY = np.cos($reX * 1.0)", op_c=_complex_call("ccos"))
TAN = UnaryFragments(op_r="$reY = np.tan($reX * 1.0)", op_c=_complex_call("ctan"))
SINH = UnaryFragments(op_r="$reY = np.sinh($reX * 1.0)", op_c=_complex_call("csinh"))
COSH = UnaryFragments(op_r="$reY = np.cosh($reX * 1.0)", op_c=_complex_call("ccosh"))
TANH = UnaryFragments(op_r="$reY = np.tanh($reX * 1.0)", op_c=_complex_call("ctanh"))
ASIN = UnaryFragments(op_r="$reY = np.arcsin($reX * 1.0)")
ACOS = UnaryFragments(op_r="$reY = np.arccos($reX * 1.0)")
ATAN = UnaryFragments(op_r="$reY = np.arctan($reX * 1.0)")

_TRIG: Dict[str, UnaryFragments] = {
    "sin": SIN,
    "cos": COS,
    "tan": TAN,
    "sinh": SINH,
    "cosh": COSH,
    "tanh": TANH,
    "asin": ASIN,
    "acos": ACOS,
    "atan": ATAN,
}


class MathOps:
    def __init__(self, compiler: ElementwiseCompiler):
        make = compiler.make_unary_op
        self.abs = make(ABS, R.u_complex_to_float, name="abs")
        self.sign = make(SIGN, R.u_complex_to_float, name="sign")
        self.conj = make(CONJ, R.u_no_change, name="conj")
        self.angle = make(ANGLE, R.u_to_float, name="angle")
        self.rad2deg = make(RAD2DEG, R.u_to_float, name="rad2deg")
        self.deg2rad = make(DEG2RAD, R.u_to_float, name="deg2rad")
        self.min2 = compiler.make_binary_op(MIN2, R.b_wider, name="min2")
        self.max2 = compiler.make_binary_op(MAX2, R.b_wider, name="max2")
        self.exp = make(EXP, R.u_to_float, name="exp")
        self.log = make(LOG, R.u_to_float, name="log")
        self.sqrt = make(SQRT, R.u_to_float, name="sqrt")
        self.square = make(SQUARE, R.u_only_logic_to_float, name="square")
        self.pow = compiler.make_binary_op(POW, R.b_to_float, name="pow")
        self.floor = make(FLOOR, R.u_only_logic_to_float, name="floor")
        self.ceil = make(CEIL, R.u_only_logic_to_float, name="ceil")
        self.round = make(ROUND, R.u_only_logic_to_float, name="round")
        self.fix = make(FIX, R.u_only_logic_to_float, name="fix")
        self.round_to = compiler.make_one_param_unary_op(
            ROUND_TO, R.u_only_logic_to_float, name="round_to"
        )
        for name, fragments in _TRIG.items():
            setattr(self, name, make(fragments, R.u_to_float, name=name))
