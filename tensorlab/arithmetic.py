from __future__ import annotations

from .dtype import OutputDTypeResolver as R
from .tensor_ops import BinaryFragments, ElementwiseCompiler, UnaryFragments

ADD = BinaryFragments(
    op_rr="$reZ = $reX + $reY",
    op_rc="$reZ = $reX + $reY\n$imZ = $imY",
    op_cr="$reZ = $reX + $reY\n$imZ = $imX",
    op_cc="$reZ = $reX + $reY\n$imZ = $imX + $imY",
)

SUB = BinaryFragments(
    op_rr="$reZ = $reX - $reY",
    op_rc="$reZ = $reX - $reY\n$imZ = -$imY",
    op_cr="$reZ = $reX - $reY\n$imZ = $imX",
    op_cc="$reZ = $reX - $reY\n$imZ = $imX - $imY",
)

MUL = BinaryFragments(
    op_rr="$reZ = $reX * $reY",
    op_rc="$imZ = $reX * $imY\n$reZ = $reX * $reY",
    op_cr="$imZ = $imX * $reY\n$reZ = $reX * $reY",
    op_cc=(
        "$tmp1 = $reX * $reY - $imX * $imY\n"
        "$tmp2 = $reX * $imY + $imX * $reY\n"
        "$reZ = $tmp1\n"
        "$imZ = $tmp2"
    ),
)

DIV = BinaryFragments(
    op_rr="$reZ = $reX / $reY",
    op_rc="$tmp1, $tmp2 = cdiv_rc($reX, $reY, $imY)\n$reZ = $tmp1\n$imZ = $tmp2",
    op_cr="$reZ = $reX / $reY\n$imZ = $imX / $reY",
    op_cc="$tmp1, $tmp2 = cdiv_cc($reX, $imX, $reY, $imY)\n$reZ = $tmp1\n$imZ = $tmp2",
)

REM = BinaryFragments(op_rr="$reZ = np.fmod($reX, $reY)")

NEG = UnaryFragments(
    op_r="$reY = -$reX",
    op_c="$reY = -$reX\n$imY = -$imX",
)

RECIPROCAL = UnaryFragments(
    op_r=(
        "#if OUTPUT_INT\n"
        "$reY = int(1.0 / $reX) if $reX != 0 else 0\n"
        "#else\n"
        "$reY = 1.0 / $reX\n"
        "#endif"
    ),
    op_c="$tmp1, $tmp2 = creciprocal($reX, $imX)\n$reY = $tmp1\n$imY = $tmp2",
)


class Arithmetic:
    def __init__(self, compiler: ElementwiseCompiler):
        self.add = compiler.make_binary_op(ADD, R.b_wider_with_logic_to_int, name="add")
        self.sub = compiler.make_binary_op(SUB, R.b_wider_with_logic_to_int, name="sub")
        self.mul = compiler.make_binary_op(MUL, R.b_wider_with_logic_to_int, name="mul")
        self.div = compiler.make_binary_op(DIV, R.b_to_float, name="div")
        self.rem = compiler.make_binary_op(REM, R.b_wider_with_logic_to_int, name="rem")
        self.neg = compiler.make_unary_op(NEG, R.u_only_logic_to_float, name="neg")
        self.reciprocal = compiler.make_unary_op(
            RECIPROCAL, R.u_only_logic_to_float, name="reciprocal"
        )
