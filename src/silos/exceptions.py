# Custom exceptions for silos

class SilosError(Exception):
    """Base exception for all application-specific errors."""
    pass


class ConfigInvalid(SilosError):
    """Raised when a rule or definition record is malformed. The entry is rejected."""

    def __init__(self, message: str, source: str = "", rule_index: int = None):
        self.message = message
        self.source = source
        self.rule_index = rule_index
        prefix = f"{source}: " if source else ""
        if rule_index is not None:
            prefix += f"rule #{rule_index}: "
        super().__init__(f"{prefix}{message}")


class SyntaxInvalid(SilosError):
    """Raised when a body does not parse under the claimed language grammar."""

    def __init__(self, language: str, line: int = None, column: int = None):
        self.language = language
        self.line = line
        self.column = column
        where = f" at line {line}, column {column}" if line is not None else ""
        super().__init__(f"Source is not valid {language}{where}")


class UnsupportedLanguage(SilosError):
    """Raised when a language tag is not in the grammar registry."""

    def __init__(self, language: str, supported=()):
        self.language = language
        self.supported = tuple(supported)
        message = f"Language '{language}' is not supported."
        if self.supported:
            message += f" Supported languages: {', '.join(self.supported)}"
        super().__init__(message)


class NoCollectionMatch(SilosError):
    """Raised when there is nothing to search for the requested language."""

    def __init__(self, kind: str, language: str = None):
        self.kind = kind
        self.language = language
        suffix = f" for language '{language}'" if language else ""
        super().__init__(f"No {kind} available{suffix}")


class NoMatch(SilosError):
    """Raised when a collection was found but none of its rules matched the body."""

    def __init__(self, collection_id: int, description: str, rules_tried: int):
        self.collection_id = collection_id
        self.description = description
        self.rules_tried = rules_tried
        super().__init__(
            f"None of the {rules_tried} rule(s) in collection #{collection_id} "
            f"('{description}') matched the given body"
        )


class BackendUnavailable(SilosError):
    """Raised when the embedding compute backend cannot be used."""

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"Embedding backend '{backend}' unavailable: {reason}")


class CaptureUnbound(SilosError, AssertionError):
    """Raised when a template references a capture missing from a match.

    Load-time validation makes this unreachable; seeing it means that validation has a bug.
    """

    def __init__(self, name: str, available=()):
        self.name = name
        self.available = tuple(available)
        super().__init__(
            f"Template references capture '@{name}' but the match only bound: "
            f"{', '.join(self.available) or '(nothing)'}"
        )


class MissingLanguageSuffix(SilosError):
    """Raised when a request text does not end with ' in <language>'."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"End your request with \" in <language>\": got {text!r}")
