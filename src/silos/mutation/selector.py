from dataclasses import dataclass

import numpy as np

from silos.exceptions import NoCollectionMatch, NoMatch
from silos.grammar.registry import Grammar, ParsedSource
from silos.index.collection_index import CollectionIndex
from silos.logging_config import logger
from silos.schemas import MutationCollection, MutationRule

from .matcher import ASTMatcher, Match


@dataclass(frozen=True)
class Selection:
    collection_id: int
    collection: MutationCollection
    score: float
    rule_index: int
    rule: MutationRule
    match: Match
    parsed: ParsedSource


class RuleSelector:
    """
    Picks the collection nearest to a description vector, then the first rule
    in it (declared order) that matches, and that rule's first match site.
    """

    def __init__(self, index: CollectionIndex, matcher: ASTMatcher):
        self.index = index
        self.matcher = matcher

    def select(self, vector: np.ndarray, grammar: Grammar, body: str) -> Selection:
        """
        Raises:
            NoCollectionMatch: no collection usable for the grammar's language.
            SyntaxInvalid: the body does not parse.
            NoMatch: the nearest collection has no rule matching the body.
        """
        neighbors = self.index.nearest_collections(vector, k=1, language=grammar.name)
        if not neighbors:
            raise NoCollectionMatch("mutation collections", grammar.name)

        collection_id, entry, score = neighbors[0]
        collection: MutationCollection = entry.item
        logger.debug(f"Nearest collection #{collection_id} ({score:.3f}): {collection.description!r}")

        parsed = grammar.parse(body)
        found = self.matcher.first_matching_rule(collection.rules, parsed)
        if found is None:
            raise NoMatch(collection_id, collection.description, len(collection.rules))

        rule_index, rule, match = found
        return Selection(
            collection_id=collection_id,
            collection=collection,
            score=score,
            rule_index=rule_index,
            rule=rule,
            match=match,
            parsed=parsed,
        )
