"""
Static analysis of rule expressions (tree-sitter query strings).

Finds the captures an expression declares and makes sure every top-level
pattern carries the reserved @root capture.
"""

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from silos.exceptions import ConfigInvalid

ROOT_CAPTURE = "root"

_NAME_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-.?!")
_QUANTIFIERS = "*+?"

# Kinds of open brackets tracked while scanning
_NODE = "node"            # (kind ...) or (_ ...)
_ALTERNATION = "alt"      # [ ... ]
_GROUP = "group"          # ((a) (b)) sibling sequence / pattern-with-predicates wrapper
_PREDICATE = "predicate"  # (#eq? @a "x")


@dataclass(frozen=True)
class ExpressionInfo:
    source: str
    captures: FrozenSet[str]
    patterns: int


def _skip_string(text: str, i: int) -> int:
    """Return the index just past the string literal opening at text[i]."""
    i += 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return i + 1
        i += 1
    raise ConfigInvalid("unterminated string literal in expression")


def _skip_comment(text: str, i: int) -> int:
    end = text.find("\n", i)
    return len(text) if end == -1 else end + 1


def _read_name(text: str, i: int) -> Tuple[str, int]:
    start = i
    while i < len(text) and text[i] in _NAME_CHARS:
        i += 1
    return text[start:i], i


def _skip_space(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _open_kind(text: str, i: int, stack: List[str]) -> str:
    if stack and stack[-1] == _PREDICATE:
        return _PREDICATE
    if text[i] == "[":
        return _ALTERNATION
    j = _skip_space(text, i + 1)
    head = text[j] if j < len(text) else ""
    if head == "#":
        return _PREDICATE
    if head in ('(', '[', '"'):
        return _GROUP
    return _NODE


def _trailing_captures(text: str, i: int) -> Tuple[List[str], int]:
    """
    Read the quantifier and captures trailing a pattern that ends at i.

    Returns (capture names, index just past the last one read). The returned
    index is also where a missing @root gets inserted.
    """
    j = _skip_space(text, i)
    if j < len(text) and text[j] in _QUANTIFIERS:
        i = j + 1
    names = []
    while True:
        j = _skip_space(text, i)
        if j >= len(text) or text[j] != "@":
            return names, i
        name, end = _read_name(text, j + 1)
        if not name:
            raise ConfigInvalid(f"empty capture name at offset {j}")
        names.append(name)
        i = end


def analyze_expression(expression: str) -> ExpressionInfo:
    """
    Scan an expression for declared captures and inject @root.

    A pattern is top-level when it is only wrapped in groups, so both
    `(call_expression) @root` and `((call_expression) @root (#eq? @root "f()"))`
    put @root on the call. Captures inside predicates are uses, not
    declarations. @root anywhere but on a top-level pattern is rejected; a
    top-level pattern without it gets " @root" appended after its captures.

    Raises:
        ConfigInvalid: unbalanced brackets, empty captures, misplaced @root,
            or no pattern at all.
    """
    declared = set()
    insertions: List[int] = []
    stack: List[str] = []
    patterns = 0
    i = 0
    n = len(expression)

    def at_top() -> bool:
        return all(kind == _GROUP for kind in stack)

    def finish_pattern(at: int) -> int:
        nonlocal patterns
        patterns += 1
        names, resume = _trailing_captures(expression, at)
        declared.update(names)
        if ROOT_CAPTURE not in names:
            insertions.append(resume)
        return resume

    while i < n:
        c = expression[i]
        if c == ";":
            i = _skip_comment(expression, i)
        elif c == '"':
            i = _skip_string(expression, i)
            if at_top():
                i = finish_pattern(i)
        elif c in "([":
            stack.append(_open_kind(expression, i, stack))
            i += 1
        elif c in ")]":
            if not stack:
                raise ConfigInvalid(f"unbalanced '{c}' at offset {i}")
            kind = stack.pop()
            i += 1
            if kind in (_NODE, _ALTERNATION) and at_top():
                i = finish_pattern(i)
            elif kind == _GROUP and not stack:
                names, i = _trailing_captures(expression, i)
                if ROOT_CAPTURE in names:
                    raise ConfigInvalid("@root must annotate a pattern, not a group")
                declared.update(names)
        elif c == "@":
            name, end = _read_name(expression, i + 1)
            if not name:
                raise ConfigInvalid(f"empty capture name at offset {i}")
            if not stack:
                raise ConfigInvalid(f"capture @{name} does not follow a pattern")
            if stack[-1] != _PREDICATE:
                if name == ROOT_CAPTURE:
                    raise ConfigInvalid("@root is reserved for the top-level node of a pattern")
                declared.add(name)
            i = end
        elif c == "_" and at_top():
            i = finish_pattern(i + 1)
        else:
            i += 1

    if stack:
        raise ConfigInvalid("unbalanced '(' or '[' in expression")
    if patterns == 0:
        raise ConfigInvalid("expression contains no pattern")

    source = expression
    for offset in reversed(insertions):
        source = f"{source[:offset]} @{ROOT_CAPTURE}{source[offset:]}"

    declared.add(ROOT_CAPTURE)
    return ExpressionInfo(source=source, captures=frozenset(declared), patterns=patterns)


def declared_captures(expression: str) -> FrozenSet[str]:
    return analyze_expression(expression).captures


def undefined_refs(expression: str, refs: Tuple[str, ...], info: Optional[ExpressionInfo] = None) -> List[str]:
    """Template capture names the expression never declares, in template order."""
    info = info or analyze_expression(expression)
    missing = []
    for name in refs:
        if name not in info.captures and name not in missing:
            missing.append(name)
    return missing
