from __future__ import annotations

from typing import Optional, Sequence

__all__ = [
    "TensorLabError",
    "InvalidInputKind",
    "RaggedArrayError",
    "ShapeMismatchError",
    "BroadcastError",
    "UnsupportedDTypeCombination",
    "UnsupportedComplexPath",
    "InPlaceNotPossible",
    "IndexOutOfBounds",
    "TemplateSyntaxError",
]


class TensorLabError(Exception):
    """Base class for tensorlab-specific exceptions."""


class InvalidInputKind(TensorLabError, TypeError):
    pass


class RaggedArrayError(TensorLabError, ValueError):
    def __init__(self, message: str, *, level: Optional[int] = None):
        if level is not None:
            message = f"{message} (level {level})"
        super().__init__(message)
        self.level = level


class ShapeMismatchError(TensorLabError, ValueError):
    pass


class BroadcastError(TensorLabError, ValueError):
    def __init__(self, shape_a: Sequence[int], shape_b: Sequence[int]):
        super().__init__(f"Cannot broadcast shapes {tuple(shape_a)} and {tuple(shape_b)}.")
        self.shape_a = tuple(shape_a)
        self.shape_b = tuple(shape_b)


class UnsupportedDTypeCombination(TensorLabError, TypeError):
    pass


class UnsupportedComplexPath(TensorLabError, TypeError):
    pass


class InPlaceNotPossible(TensorLabError, ValueError):
    pass


class IndexOutOfBounds(TensorLabError, IndexError):
    def __init__(self, index: int, extent: int, *, dim: Optional[int] = None):
        where = "" if dim is None else f" for dimension {dim}"
        super().__init__(f"Index {index} is out of bounds{where} with size {extent}.")
        self.index = index
        self.extent = extent
        self.dim = dim


class TemplateSyntaxError(TensorLabError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        line_text: Optional[str] = None,
    ):
        detail = _format_location(line, line_text)
        super().__init__(f"{message}{detail}")
        self.line = line
        self.line_text = line_text


def _format_location(line: Optional[int], line_text: Optional[str]) -> str:
    if line is None:
        return ""
    location_str = f" (line {line})"
    if line_text is None:
        return location_str
    return f"{location_str}\n  {line_text}"
