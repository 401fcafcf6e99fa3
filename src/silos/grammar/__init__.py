"""
This facade exposes the public API for the grammar module.
"""
from .config import LANGUAGE_ALIASES, SUPPORTED_LANGUAGES, canonical_language, language_for_path
from .registry import Grammar, GrammarRegistry, ParsedSource, TreeSitterGrammar, node_to_sexp

__all__ = [
    "Grammar",
    "GrammarRegistry",
    "ParsedSource",
    "TreeSitterGrammar",
    "node_to_sexp",
    "LANGUAGE_ALIASES",
    "SUPPORTED_LANGUAGES",
    "canonical_language",
    "language_for_path",
]
