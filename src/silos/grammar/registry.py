"""
Grammar registry: language tag -> tree-sitter parse capability.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

import tree_sitter_c as tsc
import tree_sitter_cpp as tscpp
import tree_sitter_go as tsgo
import tree_sitter_javascript as tsjavascript
import tree_sitter_python as tspython
import tree_sitter_rust as tsrust
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser, Tree

from silos.exceptions import SyntaxInvalid, UnsupportedLanguage
from silos.logging_config import logger

from .config import canonical_language


@dataclass(frozen=True)
class ParsedSource:
    """A body parsed under one grammar. Byte offsets refer to `source`."""
    language: str
    grammar: "Grammar"
    source: bytes
    tree: Tree

    @property
    def root_node(self) -> Node:
        return self.tree.root_node

    def text(self, start_byte: int, end_byte: int) -> str:
        return self.source[start_byte:end_byte].decode("utf8")


class Grammar:
    """
    Parse capability for a single language.

    Subclasses provide `language` (the tree-sitter Language) and `parse`.
    """

    name: str = ""

    @property
    def language(self) -> Language:
        raise NotImplementedError

    def parse(self, source: str) -> ParsedSource:
        raise NotImplementedError


class TreeSitterGrammar(Grammar):
    """
    Grammar backed by a tree-sitter language package.

    A fresh Parser is built per call, so parsing never shares mutable state
    between threads.
    """

    def __init__(self, name: str, language_fn: Callable[[], object]):
        self.name = name
        self._language_fn = language_fn
        self._language: Optional[Language] = None

    @property
    def language(self) -> Language:
        if self._language is None:
            self._language = Language(self._language_fn())
            logger.debug(f"Loaded tree-sitter grammar '{self.name}'")
        return self._language

    def parse(self, source: str) -> ParsedSource:
        source_bytes = source.encode("utf8")
        parser = Parser(self.language)
        tree = parser.parse(source_bytes)
        root = tree.root_node
        if root.has_error:
            bad = _first_error(root)
            line, column = (bad.start_point[0] + 1, bad.start_point[1] + 1) if bad else (None, None)
            logger.debug(f"Parse of {len(source_bytes)} bytes as {self.name} failed near line {line}")
            raise SyntaxInvalid(self.name, line, column)
        return ParsedSource(language=self.name, grammar=self, source=source_bytes, tree=tree)

    def __repr__(self) -> str:
        return f"TreeSitterGrammar({self.name!r})"


def _first_error(node: Node) -> Optional[Node]:
    """Pre-order search for the first ERROR or MISSING node."""
    if node.is_error or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error(child)
            if found is not None:
                return found
    return None


def default_grammars() -> Tuple[Grammar, ...]:
    return (
        TreeSitterGrammar("c", tsc.language),
        TreeSitterGrammar("cpp", tscpp.language),
        TreeSitterGrammar("go", tsgo.language),
        TreeSitterGrammar("javascript", tsjavascript.language),
        TreeSitterGrammar("python", tspython.language),
        TreeSitterGrammar("rust", tsrust.language),
        TreeSitterGrammar("typescript", tstypescript.language_typescript),
    )


class GrammarRegistry:
    """
    Maps language tags (and their aliases) to parse capabilities.

    The set of grammars is fixed at construction; adding a language means
    passing another Grammar implementation, not touching the matcher.
    """

    def __init__(self, grammars: Optional[Iterable[Grammar]] = None):
        self._grammars: Dict[str, Grammar] = {}
        for grammar in default_grammars() if grammars is None else grammars:
            self._grammars[canonical_language(grammar.name)] = grammar

    def get(self, language: str) -> Grammar:
        grammar = self._grammars.get(canonical_language(language))
        if grammar is None:
            raise UnsupportedLanguage(language, self.supported())
        return grammar

    def parse(self, source: str, language: str) -> ParsedSource:
        return self.get(language).parse(source)

    def supported(self) -> Tuple[str, ...]:
        return tuple(sorted(self._grammars))

    def dump_expression(self, source: str, language: str) -> str:
        """
        Render the S-expression of a body, with field names.

        Meant as an authoring aid: the output is the shape rule expressions match against.
        """
        parsed = self.parse(source, language)
        return node_to_sexp(parsed.root_node)

    def __contains__(self, language: str) -> bool:
        return canonical_language(language) in self._grammars


def node_to_sexp(node: Node, field_name: Optional[str] = None) -> str:
    prefix = f"{field_name}: " if field_name else ""
    if node.is_missing:
        return f"{prefix}(MISSING {node.type})"

    children = []
    cursor = node.walk()
    if cursor.goto_first_child():
        while True:
            child = cursor.node
            if child.is_named or child.is_missing:
                children.append(node_to_sexp(child, cursor.field_name))
            if not cursor.goto_next_sibling():
                break

    if not children:
        return f"{prefix}({node.type})"
    return f"{prefix}({node.type} {' '.join(children)})"
