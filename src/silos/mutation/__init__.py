"""
Mutation package: structural rewrite rules.

Expression analysis, AST matching, rule selection and template substitution.
"""

from .compiler import SubstitutionCompiler
from .expression import ROOT_CAPTURE, ExpressionInfo, analyze_expression, declared_captures
from .matcher import ASTMatcher, CapturedSpan, Match, compile_expression
from .selector import RuleSelector, Selection
from .validator import validate_collection, validate_rule

__all__ = [
    "ASTMatcher",
    "CapturedSpan",
    "Match",
    "compile_expression",
    "RuleSelector",
    "Selection",
    "SubstitutionCompiler",
    "ROOT_CAPTURE",
    "ExpressionInfo",
    "analyze_expression",
    "declared_captures",
    "validate_collection",
    "validate_rule",
]
