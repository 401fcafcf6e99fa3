"""
ASTMatcher: evaluate rule expressions against parsed bodies.

Matches come back in pre-order (leftmost first, outer node first when two
roots start together) and never overlap.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from tree_sitter import Node, Query, QueryCursor, QueryError

from silos.exceptions import ConfigInvalid
from silos.grammar.registry import Grammar, ParsedSource
from silos.logging_config import logger
from silos.schemas import MutationRule

from .expression import ROOT_CAPTURE, ExpressionInfo, analyze_expression


@dataclass(frozen=True)
class CapturedSpan:
    """Source span bound to one capture."""
    name: str
    start_byte: int
    end_byte: int
    node_type: str
    text: str


@dataclass(frozen=True)
class Match:
    """
    One match site: capture name -> bound span, always including `root`.
    """
    captures: Dict[str, CapturedSpan] = field(hash=False)
    pattern_index: int = 0

    @property
    def root(self) -> CapturedSpan:
        return self.captures[ROOT_CAPTURE]

    @property
    def start(self) -> int:
        return self.root.start_byte

    @property
    def end(self) -> int:
        return self.root.end_byte

    def get(self, name: str) -> Optional[CapturedSpan]:
        return self.captures.get(name)

    def __getitem__(self, name: str) -> CapturedSpan:
        return self.captures[name]

    def __contains__(self, name: str) -> bool:
        return name in self.captures

    def __iter__(self) -> Iterator[str]:
        return iter(self.captures)


@lru_cache(maxsize=512)
def compile_expression(grammar: Grammar, expression: str) -> Tuple[Query, ExpressionInfo]:
    """
    Compile an expression for one grammar (cached per grammar and expression).

    Raises:
        ConfigInvalid: the expression is malformed or uses node kinds the grammar lacks.
    """
    info = analyze_expression(expression)
    try:
        query = Query(grammar.language, info.source)
    except QueryError as e:
        raise ConfigInvalid(f"expression does not compile for {grammar.name}: {e}") from e
    return query, info


def _span(name: str, nodes: Sequence[Node], parsed: ParsedSource) -> CapturedSpan:
    # Quantified captures bind several nodes; the span covers all of them
    ordered = sorted(nodes, key=lambda n: (n.start_byte, -n.end_byte))
    start = ordered[0].start_byte
    end = max(n.end_byte for n in ordered)
    return CapturedSpan(
        name=name,
        start_byte=start,
        end_byte=end,
        node_type=ordered[0].type,
        text=parsed.text(start, end),
    )


class ASTMatcher:
    """
    Evaluates expressions against parsed sources. Stateless apart from the
    process-wide compiled-query cache, so one instance serves every thread.
    """

    def evaluate(self, expression: str, parsed: ParsedSource, required: Sequence[str] = ()) -> List[Match]:
        """
        All non-overlapping matches of `expression` in pre-order.

        An expression that does not compile under the body's grammar matches nothing.
        Sites missing any capture in `required` are dropped before overlaps are resolved.
        """
        try:
            query, _ = compile_expression(parsed.grammar, expression)
        except ConfigInvalid as e:
            logger.debug(f"Skipping expression under {parsed.language}: {e}")
            return []

        candidates: List[Match] = []
        for pattern_index, captured in QueryCursor(query).matches(parsed.root_node):
            if not captured.get(ROOT_CAPTURE):
                continue
            spans = {
                name: _span(name, nodes, parsed)
                for name, nodes in captured.items()
                if nodes
            }
            if any(name not in spans for name in required):
                continue
            candidates.append(Match(captures=spans, pattern_index=pattern_index))

        candidates.sort(key=lambda m: (m.start, -m.end, m.pattern_index))

        matches: List[Match] = []
        for candidate in candidates:
            if matches and candidate.start < matches[-1].end:
                continue
            matches.append(candidate)
        return matches

    def first_matching_rule(
        self,
        rules: Sequence[MutationRule],
        parsed: ParsedSource,
    ) -> Optional[Tuple[int, MutationRule, Match]]:
        """
        Walk rules in declared order and return the first one with a match,
        together with its first match in pre-order. None when nothing matches.

        Sites that leave a template capture unbound (optional or alternation
        branches) do not count as matches.
        """
        for index, rule in enumerate(rules):
            matches = self.evaluate(rule.expression, parsed, required=rule.capture_refs())
            if matches:
                logger.debug(
                    f"Rule #{index} matched {len(matches)} site(s); using "
                    f"{matches[0].root.node_type} at bytes {matches[0].start}-{matches[0].end}"
                )
                return index, rule, matches[0]
            logger.debug(f"Rule #{index} did not match")
        return None
