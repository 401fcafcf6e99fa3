"""
SilosEngine: the operations transport layers (HTTP, LSP, CLI) call into.

Flow for `mutate`:
1. Resolve the grammar for the language tag (UnsupportedLanguage)
2. Embed the description
3. Pick the nearest compatible collection (NoCollectionMatch)
4. Parse the body (SyntaxInvalid)
5. First rule in declared order with a match, first match in pre-order (NoMatch)
6. Render the template and replace only the matched span
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from silos.config import INDEX_CONFIG
from silos.exceptions import ConfigInvalid, MissingLanguageSuffix, NoCollectionMatch
from silos.grammar.registry import GrammarRegistry
from silos.index.collection_index import CollectionIndex
from silos.logging_config import logger
from silos.mutation import ASTMatcher, RuleSelector, Selection, SubstitutionCompiler, validate_collection
from silos.schemas import MutationCollection, MutationRule, Snippet
from silos.semantic.embeddings import Embedder

RuleLike = Union[MutationRule, dict]


def split_request(text: str) -> Tuple[str, str]:
    """
    Split "channeled worker in go" into ("channeled worker", "go").

    The last " in " wins, so descriptions may contain the word themselves.

    Raises:
        MissingLanguageSuffix: no " in <language>" suffix.
    """
    description, sep, language = text.rpartition(" in ")
    description, language = description.strip(), language.strip()
    if not sep or not description or not language:
        raise MissingLanguageSuffix(text)
    return description, language


class SilosEngine:
    """
    Snippet retrieval and description-driven code mutation.

    The index is constructed by the caller (once per process) and shared by
    every request; the engine itself holds no other mutable state.

    Args:
        index: Collection index (owns the embedder)
        registry: Grammar registry (defaults to all bundled grammars)
    """

    def __init__(self, index: CollectionIndex, registry: Optional[GrammarRegistry] = None):
        self.index = index
        self.registry = registry or GrammarRegistry()
        self.matcher = ASTMatcher()
        self.selector = RuleSelector(index, self.matcher)
        self.compiler = SubstitutionCompiler()

    @property
    def embedder(self) -> Embedder:
        return self.index.embedder

    @classmethod
    def create(cls, embedder: Embedder, registry: Optional[GrammarRegistry] = None) -> "SilosEngine":
        return cls(CollectionIndex(embedder), registry)

    @classmethod
    def from_definitions(
        cls,
        root: Path,
        embedder: Embedder,
        registry: Optional[GrammarRegistry] = None,
    ) -> "SilosEngine":
        """Build an engine and load every valid definition under `root`."""
        from silos.sources import load_definitions

        engine = cls.create(embedder, registry)
        report = load_definitions(engine, root)
        logger.info(
            f"Loaded {report.snippets} snippet(s) and {report.collections} mutation collection(s) "
            f"from {root} ({len(report.rejected)} rejected)"
        )
        return engine

    # Snippets

    def add_snippet(self, description: str, language: str, body: str) -> int:
        """
        Raises:
            ConfigInvalid: empty description or language.
            BackendUnavailable: the embedder could not run.
        """
        try:
            snippet = Snippet(description=description, language=language, body=body)
        except ValidationError as e:
            raise ConfigInvalid(str(e), source="snippet") from e
        return self.index.add_snippet(snippet)

    def lookup_snippets(self, description: str, language: str, top_k: int = 1) -> List[str]:
        """
        Bodies of the `top_k` snippets closest to `description` in the language namespace.

        Raises:
            NoCollectionMatch: no snippets exist for the language.
        """
        top_k = max(1, min(top_k, INDEX_CONFIG["max_top_k"]))
        vector = self.embedder.embed(description)
        neighbors = self.index.nearest_snippets(vector, language, k=top_k)
        if not neighbors:
            raise NoCollectionMatch("snippets", language)
        for snippet_id, _, score in neighbors:
            logger.debug(f"Snippet #{snippet_id} scored {score:.3f} for {description!r}")
        return [entry.item.body for _, entry, _ in neighbors]

    def lookup_snippet(self, description: str, language: str) -> str:
        return self.lookup_snippets(description, language, top_k=1)[0]

    # Mutations

    def add_mutation_collection(
        self,
        description: str,
        rules: Iterable[RuleLike],
        language: Optional[str] = None,
    ) -> int:
        """
        Validate and index an ordered rule collection.

        Raises:
            ConfigInvalid: a rule is malformed or its template references a
                capture its expression does not declare. Nothing is stored.
            BackendUnavailable: the embedder could not run.
        """
        try:
            collection = MutationCollection(description=description, rules=tuple(rules), language=language)
        except ValidationError as e:
            raise ConfigInvalid(str(e), source=description or "mutation collection") from e

        validate_collection(collection, self.registry)
        return self.index.add_collection(collection)

    def select_mutation(self, description: str, language: str, body: str) -> Selection:
        """The rule and match `mutate` would apply, without rendering."""
        grammar = self.registry.get(language)
        vector = self.embedder.embed(description)
        return self.selector.select(vector, grammar, body)

    def mutate(self, description: str, language: str, body: str) -> str:
        """
        Apply the closest matching mutation to `body`. All-or-nothing.

        Raises:
            UnsupportedLanguage, NoCollectionMatch, SyntaxInvalid, NoMatch
        """
        selection = self.select_mutation(description, language, body)
        output = self.compiler.compile(selection.parsed, selection.rule, selection.match)
        logger.info(
            f"Applied rule #{selection.rule_index} of collection #{selection.collection_id} "
            f"at bytes {selection.match.start}-{selection.match.end}"
        )
        return output

    # Authoring aids

    def dump_expression(self, body: str, language: str) -> str:
        return self.registry.dump_expression(body, language)
