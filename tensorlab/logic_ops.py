from __future__ import annotations

from typing import Any

import numpy as np

from .dtype import OutputDTypeResolver as R
from .operand import unify
from .tensor_ops import BinaryFragments, ElementwiseCompiler, UnaryFragments

EQ = BinaryFragments(
    op_rr="$reZ = 1 if $reX == $reY else 0",
    op_rc="$reZ = 1 if ($reX == $reY and $imY == 0) else 0",
    op_cr="$reZ = 1 if ($reX == $reY and $imX == 0) else 0",
    op_cc="$reZ = 1 if ($reX == $reY and $imX == $imY) else 0",
)

NEQ = BinaryFragments(
    op_rr="$reZ = 1 if $reX != $reY else 0",
    op_rc="$reZ = 1 if ($reX != $reY or $imY != 0) else 0",
    op_cr="$reZ = 1 if ($reX != $reY or $imX != 0) else 0",
    op_cc="$reZ = 1 if ($reX != $reY or $imX != $imY) else 0",
)

GT = BinaryFragments(op_rr="$reZ = 1 if $reX > $reY else 0")
GE = BinaryFragments(op_rr="$reZ = 1 if $reX >= $reY else 0")
LT = BinaryFragments(op_rr="$reZ = 1 if $reX < $reY else 0")
LE = BinaryFragments(op_rr="$reZ = 1 if $reX <= $reY else 0")


def _truthiness(op: str) -> BinaryFragments:
    x_r, x_c = "$reX != 0", "($reX != 0 or $imX != 0)"
    y_r, y_c = "$reY != 0", "($reY != 0 or $imY != 0)"

    def body(x: str, y: str) -> str:
        return f"$reZ = 1 if ({x}) {op} ({y}) else 0"

    return BinaryFragments(
        op_rr=body(x_r, y_r),
        op_rc=body(x_r, y_c),
        op_cr=body(x_c, y_r),
        op_cc=body(x_c, y_c),
    )


AND = _truthiness("and")
OR = _truthiness("or")
XOR = _truthiness("!=")

NOT = UnaryFragments(
    op_r="$reY = 1 if $reX == 0 else 0",
    op_c="$reY = 1 if ($reX == 0 and $imX == 0) else 0",
)


def _nonzero(x: Any) -> np.ndarray:
    d = unify(x)
    flags = d.re_array != 0
    if d.im_array is not None:
        flags = flags | (d.im_array != 0)
    return flags


class LogicOps:
    def __init__(self, compiler: ElementwiseCompiler):
        make = compiler.make_binary_op
        self.eq = make(EQ, R.b_to_logic, no_in_place=True, name="eq")
        self.neq = make(NEQ, R.b_to_logic, no_in_place=True, name="neq")
        self.gt = make(GT, R.b_to_logic_real_only, no_in_place=True, name="gt")
        self.ge = make(GE, R.b_to_logic_real_only, no_in_place=True, name="ge")
        self.lt = make(LT, R.b_to_logic_real_only, no_in_place=True, name="lt")
        self.le = make(LE, R.b_to_logic_real_only, no_in_place=True, name="le")
        self.logical_and = make(AND, R.b_to_logic, name="logical_and")
        self.logical_or = make(OR, R.b_to_logic, name="logical_or")
        self.logical_xor = make(XOR, R.b_to_logic, name="logical_xor")
        self.logical_not = compiler.make_unary_op(NOT, R.u_to_logic, name="logical_not")

    @staticmethod
    def all(x: Any) -> bool:
        """True when every element is nonzero. Empty input gives True."""
        return bool(np.all(_nonzero(x)))

    @staticmethod
    def any(x: Any) -> bool:
        return bool(np.any(_nonzero(x)))
