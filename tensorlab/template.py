"""
A tiny line-oriented template language used to generate kernel source.

Placeholders are ``$name`` tokens. Conditional blocks use directives on their
own lines::

    #if BROADCAST
    ...
    #elseif OTHER
    ...
    #else
    ...
    #endif

``#ifnot NAME`` negates the condition. Directive conditions are looked up in
a boolean mapping; missing keys count as false.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

from .errors import TemplateSyntaxError

logger = logging.getLogger(__name__)

_DIRECTIVE = re.compile(r"^[ \t]*#(if|endif|else|elseif|ifnot)([ \t]+(\w+)[ \t]*)?$")
_PLACEHOLDER = re.compile(r"\$(\w+)")
_STANDALONE = re.compile(r"^([ \t]*)\$(\w+)[ \t]*$")


@dataclass
class _Branch:
    name: Optional[str]
    negate: bool
    children: List["_Node"] = field(default_factory=list)

    def matches(self, config: Mapping[str, bool]) -> bool:
        if self.name is None:
            return True
        value = bool(config.get(self.name, False))
        return not value if self.negate else value


@dataclass
class _Conditional:
    branches: List[_Branch]


_Node = Union[str, _Conditional]


class TemplateGenerator:
    """Renders a compiled template. Instances are produced by `TemplateEngine`."""

    def __init__(self, nodes: List[_Node]):
        self._nodes = nodes

    def __call__(
        self,
        symbols: Optional[Mapping[str, object]] = None,
        config: Optional[Mapping[str, bool]] = None,
    ) -> str:
        symbols = symbols or {}
        config = config or {}
        out: List[str] = []
        self._render(self._nodes, symbols, config, out)
        return "\n".join(out)

    def _render(
        self,
        nodes: List[_Node],
        symbols: Mapping[str, object],
        config: Mapping[str, bool],
        out: List[str],
    ) -> None:
        for node in nodes:
            if isinstance(node, str):
                out.append(_interpolate(node, symbols))
                continue
            for branch in node.branches:
                if branch.matches(config):
                    self._render(branch.children, symbols, config, out)
                    break


def _interpolate(line: str, symbols: Mapping[str, object]) -> str:
    m = _STANDALONE.match(line)
    if m is not None and m.group(2) in symbols:
        indent = m.group(1)
        replacement = str(symbols[m.group(2)])
        return "\n".join(indent + part for part in replacement.split("\n"))

    def sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        return str(symbols[name]) if name in symbols else match.group(0)

    return _PLACEHOLDER.sub(sub, line)


def _parse(text: str) -> List[_Node]:
    root: List[_Node] = []
    # Each frame: (conditional, has_else, opening line number, opening line text).
    stack: List[tuple] = []

    def current() -> List[_Node]:
        if not stack:
            return root
        return stack[-1][0].branches[-1].children

    for lineno, line in enumerate(text.split("\n"), start=1):
        m = _DIRECTIVE.match(line)
        if m is None:
            current().append(line)
            continue
        directive, name = m.group(1), m.group(3)
        if directive in ("if", "ifnot"):
            if name is None:
                raise TemplateSyntaxError(
                    f"Missing condition after #{directive}", line=lineno, line_text=line
                )
            node = _Conditional([_Branch(name, directive == "ifnot")])
            current().append(node)
            stack.append((node, False, lineno, line))
        elif directive == "elseif":
            if name is None:
                raise TemplateSyntaxError(
                    "Missing condition after #elseif", line=lineno, line_text=line
                )
            if not stack:
                raise TemplateSyntaxError("Unexpected #elseif", line=lineno, line_text=line)
            if stack[-1][1]:
                raise TemplateSyntaxError("#elseif after #else", line=lineno, line_text=line)
            stack[-1][0].branches.append(_Branch(name, False))
        elif directive == "else":
            if name is not None:
                raise TemplateSyntaxError(
                    "Unexpected condition after #else", line=lineno, line_text=line
                )
            if not stack:
                raise TemplateSyntaxError("Unexpected #else", line=lineno, line_text=line)
            node, has_else, start, start_text = stack[-1]
            if has_else:
                raise TemplateSyntaxError("#else after #else", line=lineno, line_text=line)
            node.branches.append(_Branch(None, False))
            stack[-1] = (node, True, start, start_text)
        else:
            if name is not None:
                raise TemplateSyntaxError(
                    "Unexpected condition after #endif", line=lineno, line_text=line
                )
            if not stack:
                raise TemplateSyntaxError("Unexpected #endif", line=lineno, line_text=line)
            stack.pop()
    if stack:
        _, _, start, start_text = stack[-1]
        raise TemplateSyntaxError("Unterminated #if block", line=start, line_text=start_text)
    return root


class TemplateEngine:
    """Compiles templates into generators, memoized by the exact template text."""

    def __init__(self) -> None:
        self._cache: Dict[str, TemplateGenerator] = {}
        self._lock = threading.RLock()

    def compile(self, text: str) -> TemplateGenerator:
        with self._lock:
            cached = self._cache.get(text)
        if cached is not None:
            return cached
        generator = TemplateGenerator(_parse(text))
        logger.debug("Compiled template of %d lines", text.count("\n") + 1)
        with self._lock:
            return self._cache.setdefault(text, generator)

    def generate(
        self,
        text: str,
        symbols: Optional[Mapping[str, object]] = None,
        config: Optional[Mapping[str, bool]] = None,
    ) -> str:
        return self.compile(text)(symbols, config)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
