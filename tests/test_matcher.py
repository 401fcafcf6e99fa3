"""Tests for ASTMatcher: match sites, ordering and rule selection."""

import pytest

from silos.mutation import ASTMatcher, compile_expression
from silos.exceptions import ConfigInvalid
from silos.schemas import CaptureRef, MutationRule

from conftest import ANY_CALL, BASE_CALL

pytestmark = pytest.mark.fast


@pytest.fixture
def matcher():
    return ASTMatcher()


class TestEvaluate:

    def test_captures_bind_source_text(self, matcher, registry):
        parsed = registry.parse("total := filepath.Base(resumeFilename)\n", "go")

        matches = matcher.evaluate(BASE_CALL, parsed)

        assert len(matches) == 1
        match = matches[0]
        assert match.root.text == "filepath.Base(resumeFilename)"
        assert match.root.node_type == "call_expression"
        assert match["path"].text == "resumeFilename"
        assert match["pkg"].text == "filepath"
        assert set(match) == {"root", "pkg", "fn", "path"}
        assert (match.start, match.end) == (9, 38)

    def test_predicates_filter_matches(self, matcher, registry):
        parsed = registry.parse("total := path.Base(resumeFilename)\n", "go")
        assert matcher.evaluate(BASE_CALL, parsed) == []

    def test_matches_in_source_order(self, matcher, registry):
        parsed = registry.parse("a := f(1)\nb := g(2)\n", "go")

        matches = matcher.evaluate(ANY_CALL, parsed)

        assert [m.root.text for m in matches] == ["f(1)", "g(2)"]

    def test_outer_node_wins_and_overlaps_are_dropped(self, matcher, registry):
        parsed = registry.parse("x := f(g(y))\n", "go")

        matches = matcher.evaluate(ANY_CALL, parsed)

        assert [m.root.text for m in matches] == ["f(g(y))"]

    def test_nested_match_after_sibling(self, matcher, registry):
        parsed = registry.parse("x := f(g(y))\nz := h()\n", "go")

        matches = matcher.evaluate(ANY_CALL, parsed)

        assert [m.root.text for m in matches] == ["f(g(y))", "h()"]

    def test_expression_for_other_grammar_matches_nothing(self, matcher, registry):
        parsed = registry.parse("x = f(1)\n", "python")

        # short_var_declaration only exists in the Go grammar
        assert matcher.evaluate("(short_var_declaration) @root", parsed) == []

    def test_python_call(self, matcher, registry):
        parsed = registry.parse("print(os.path.basename(p))\n", "python")

        matches = matcher.evaluate("(call function: (identifier) @fn)", parsed)

        assert [m["fn"].text for m in matches] == ["print"]

    def test_required_captures_drop_sites_before_overlap(self, matcher, registry):
        parsed = registry.parse("x := pkg.F(f(1))\n", "go")
        expression = (
            "[(call_expression function: (identifier) @fn)"
            " (call_expression function: (selector_expression) @sel)]"
        )

        assert [m.root.text for m in matcher.evaluate(expression, parsed)] == ["pkg.F(f(1))"]
        assert [m.root.text for m in matcher.evaluate(expression, parsed, required=("fn",))] == ["f(1)"]

    def test_compile_is_cached(self, registry):
        grammar = registry.get("go")
        first = compile_expression(grammar, ANY_CALL)
        second = compile_expression(grammar, ANY_CALL)
        assert first is second

    def test_compile_error(self, registry):
        with pytest.raises(ConfigInvalid, match="go"):
            compile_expression(registry.get("go"), "(call_expression (unknown_kind)) @root")


class TestFirstMatchingRule:

    def test_declaration_order_beats_specificity(self, matcher, registry, parent_of_rule, wrap_any_call_rule):
        parsed = registry.parse("total := filepath.Base(resumeFilename)\n", "go")

        index, rule, match = matcher.first_matching_rule([wrap_any_call_rule, parent_of_rule], parsed)

        assert index == 0
        assert rule is wrap_any_call_rule
        assert match.root.text == "filepath.Base(resumeFilename)"

    def test_skips_rules_without_matches(self, matcher, registry, parent_of_rule, wrap_any_call_rule):
        parsed = registry.parse("total := path.Join(a, b)\n", "go")

        index, rule, _ = matcher.first_matching_rule([parent_of_rule, wrap_any_call_rule], parsed)

        assert index == 1
        assert rule is wrap_any_call_rule

    def test_no_rule_matches(self, matcher, registry, parent_of_rule):
        parsed = registry.parse("total := 1 + 2\n", "go")
        unused = MutationRule(expression="(go_statement) @root", template=(CaptureRef(name="root"),))

        assert matcher.first_matching_rule([parent_of_rule, unused], parsed) is None
