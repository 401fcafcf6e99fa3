from typing import Annotated, Any, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LiteralSegment(BaseModel):
    """
    Template segment emitted verbatim.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    text: str


class CaptureRef(BaseModel):
    """
    Template segment replaced by the source text bound to a capture.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["capture"] = "capture"
    name: str = Field(min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_at(cls, value: Any) -> Any:
        # Authors often write the capture the way it appears in the query
        if isinstance(value, str) and value.startswith("@"):
            return value[1:]
        return value


TemplateSegment = Annotated[Union[LiteralSegment, CaptureRef], Field(discriminator="kind")]


def _coerce_segment(raw: Any) -> Any:
    """Accept the short definition-file form {"literal": ...} / {"capture": ...}."""
    if isinstance(raw, dict) and "kind" not in raw:
        if set(raw) == {"literal"}:
            return {"kind": "literal", "text": raw["literal"]}
        if set(raw) == {"capture"}:
            return {"kind": "capture", "name": raw["capture"]}
    return raw


class MutationRule(BaseModel):
    """
    A structural query plus the template its matches are rewritten to.
    """
    model_config = ConfigDict(frozen=True)

    expression: str = Field(min_length=1)
    template: Tuple[TemplateSegment, ...]

    @field_validator("template", mode="before")
    @classmethod
    def _coerce_template(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(_coerce_segment(item) for item in value)
        return value

    def capture_refs(self) -> Tuple[str, ...]:
        return tuple(seg.name for seg in self.template if isinstance(seg, CaptureRef))


class MutationCollection(BaseModel):
    """
    Ordered rules sharing one description. Rule order decides which rule wins.
    """
    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1)
    rules: Tuple[MutationRule, ...] = Field(min_length=1)
    # Grammar the expressions were written against; None means any language.
    language: Optional[str] = None


class Snippet(BaseModel):
    """
    A literal code snippet retrievable by description.
    """
    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1)
    language: str = Field(min_length=1)
    body: str
