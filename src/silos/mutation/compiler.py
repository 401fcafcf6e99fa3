"""
SubstitutionCompiler: render templates and splice them into the body.
"""

from typing import Sequence

from silos.exceptions import CaptureUnbound
from silos.grammar.registry import ParsedSource
from silos.logging_config import logger
from silos.schemas import CaptureRef, LiteralSegment, MutationRule

from .matcher import Match


class SubstitutionCompiler:
    """
    Produces mutated text from a rule template and one match.

    Exactly one replacement happens: the bytes covered by the match's root
    capture. Everything outside that span, whitespace included, is kept as-is.
    """

    def render(self, template: Sequence, match: Match) -> str:
        """
        Render template segments in order.

        Raises:
            CaptureUnbound: a CaptureRef names a capture the match did not bind.
        """
        parts = []
        for segment in template:
            if isinstance(segment, LiteralSegment):
                parts.append(segment.text)
            elif isinstance(segment, CaptureRef):
                span = match.get(segment.name)
                if span is None:
                    raise CaptureUnbound(segment.name, sorted(match))
                parts.append(span.text)
            else:
                raise TypeError(f"Unknown template segment: {segment!r}")
        return "".join(parts)

    def substitute(self, parsed: ParsedSource, match: Match, rendered: str) -> str:
        """Replace the root span of `parsed` with `rendered`."""
        source = parsed.source
        output = source[:match.start] + rendered.encode("utf8") + source[match.end:]
        return output.decode("utf8")

    def compile(self, parsed: ParsedSource, rule: MutationRule, match: Match) -> str:
        rendered = self.render(rule.template, match)
        logger.debug(f"Rewrote {match.root.text!r} to {rendered!r}")
        return self.substitute(parsed, match, rendered)
