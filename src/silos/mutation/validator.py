"""
Load-time validation of mutation collections.

A collection with one bad rule is rejected as a whole; nothing partial is indexed.
"""

from typing import List, Optional

from silos.exceptions import ConfigInvalid, UnsupportedLanguage
from silos.grammar.registry import GrammarRegistry
from silos.logging_config import logger
from silos.schemas import MutationCollection, MutationRule

from .expression import ExpressionInfo, analyze_expression, undefined_refs
from .matcher import compile_expression


def validate_rule(rule: MutationRule, rule_index: Optional[int] = None, source: str = "") -> ExpressionInfo:
    """
    Check a rule's expression and that its template only references declared captures.

    Raises:
        ConfigInvalid: malformed expression or dangling capture reference.
    """
    try:
        info = analyze_expression(rule.expression)
    except ConfigInvalid as e:
        raise ConfigInvalid(e.message, source=source, rule_index=rule_index) from e

    missing = undefined_refs(rule.expression, rule.capture_refs(), info)
    if missing:
        declared = ", ".join(f"@{name}" for name in sorted(info.captures))
        raise ConfigInvalid(
            f"template references undefined capture(s) {', '.join('@' + m for m in missing)}; "
            f"expression declares {declared}",
            source=source,
            rule_index=rule_index,
        )
    return info


def validate_collection(
    collection: MutationCollection,
    registry: Optional[GrammarRegistry] = None,
    source: str = "",
) -> List[ExpressionInfo]:
    """
    Validate every rule of a collection.

    When the collection names a language the registry knows, each expression is
    also compiled against that grammar so unknown node kinds fail here rather
    than silently never matching.
    """
    source = source or collection.description
    infos = [validate_rule(rule, index, source) for index, rule in enumerate(collection.rules)]

    if registry is not None and collection.language is not None:
        try:
            grammar = registry.get(collection.language)
        except UnsupportedLanguage as e:
            raise ConfigInvalid(str(e), source=source) from e
        for index, rule in enumerate(collection.rules):
            try:
                compile_expression(grammar, rule.expression)
            except ConfigInvalid as e:
                raise ConfigInvalid(e.message, source=source, rule_index=index) from e

    logger.debug(f"Validated {len(infos)} rule(s) for '{source}'")
    return infos
