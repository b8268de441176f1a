"""Label selectors: parsing, construction and matching."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, NamedTuple, Optional


class Operator(str, Enum):
    """Operators a label requirement can use."""

    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"
    EQUALS = "="
    DOUBLE_EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = "gt"
    LESS_THAN = "lt"


_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS_SUBDOMAIN_RE = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)
_MAX_NAME_LENGTH = 63
_MAX_PREFIX_LENGTH = 253

_SET_OPERATORS = (Operator.IN, Operator.NOT_IN)
_EQUALITY_OPERATORS = (Operator.EQUALS, Operator.DOUBLE_EQUALS, Operator.NOT_EQUALS)
_PRESENCE_OPERATORS = (Operator.EXISTS, Operator.DOES_NOT_EXIST)
_NUMERIC_OPERATORS = (Operator.GREATER_THAN, Operator.LESS_THAN)


def _is_valid_name(name: str) -> bool:
    return 0 < len(name) <= _MAX_NAME_LENGTH and bool(_NAME_RE.match(name))


def _validate_key(key: str) -> None:
    prefix, sep, name = key.rpartition("/")
    valid = _is_valid_name(name) and "/" not in prefix
    if sep:
        valid = valid and 0 < len(prefix) <= _MAX_PREFIX_LENGTH and bool(_DNS_SUBDOMAIN_RE.match(prefix))
    if not valid:
        raise ValueError(f"invalid label key {key!r}")


def _validate_value(key: str, value: str) -> None:
    if value and not _is_valid_name(value):
        raise ValueError(f"invalid label value {value!r} for key {key!r}")


def _parse_int(text: str) -> Optional[int]:
    try:
        return int(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class Requirement:
    """A single condition on one label key."""

    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        operator = Operator(self.operator)
        values = tuple(sorted(set(self.values)))
        _validate_key(self.key)
        if operator in _SET_OPERATORS and not values:
            raise ValueError("for 'in', 'notin' operators, values set can't be empty")
        if operator in _EQUALITY_OPERATORS and len(values) != 1:
            raise ValueError("exact-match compatibility requires one single value")
        if operator in _PRESENCE_OPERATORS and values:
            raise ValueError("values set must be empty for exists and does not exist")
        if operator in _NUMERIC_OPERATORS:
            if len(values) != 1:
                raise ValueError("for 'Gt', 'Lt' operators, exactly one value is required")
            if _parse_int(values[0]) is None:
                raise ValueError("for 'Gt', 'Lt' operators, the value must be an integer")
        for value in values:
            _validate_value(self.key, value)
        object.__setattr__(self, "operator", operator)
        object.__setattr__(self, "values", values)

    def matches(self, labels: Mapping[str, str]) -> bool:
        """Tell whether the given labels satisfy this requirement."""
        present = self.key in labels
        op = self.operator
        if op in (Operator.IN, Operator.EQUALS, Operator.DOUBLE_EQUALS):
            return present and labels[self.key] in self.values
        if op in (Operator.NOT_IN, Operator.NOT_EQUALS):
            return not present or labels[self.key] not in self.values
        if op is Operator.EXISTS:
            return present
        if op is Operator.DOES_NOT_EXIST:
            return not present
        if not present:
            return False
        actual = _parse_int(labels[self.key])
        if actual is None:
            return False
        expected = int(self.values[0])
        return actual > expected if op is Operator.GREATER_THAN else actual < expected

    def __str__(self) -> str:
        op = self.operator
        if op is Operator.EXISTS:
            return self.key
        if op is Operator.DOES_NOT_EXIST:
            return f"!{self.key}"
        if op in _SET_OPERATORS:
            return f"{self.key} {op.value} ({','.join(self.values)})"
        if op is Operator.GREATER_THAN:
            return f"{self.key}>{self.values[0]}"
        if op is Operator.LESS_THAN:
            return f"{self.key}<{self.values[0]}"
        return f"{self.key}{op.value}{self.values[0]}"


@dataclass(frozen=True)
class Selector:
    """A conjunction of requirements; ``match_nothing`` makes it reject everything."""

    requirements: tuple[Requirement, ...] = ()
    match_nothing: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "requirements", tuple(sorted(self.requirements, key=lambda r: r.key))
        )

    def matches(self, labels: Mapping[str, str]) -> bool:
        """Tell whether the given labels satisfy every requirement."""
        if self.match_nothing:
            return False
        return all(req.matches(labels) for req in self.requirements)

    def is_empty(self) -> bool:
        """Tell whether the selector has no requirements."""
        return not self.requirements

    def __str__(self) -> str:
        return ",".join(str(req) for req in self.requirements)


@dataclass
class LabelSelectorRequirement:
    """A structured requirement as written in an object's spec."""

    key: str
    operator: str
    values: list[str] = field(default_factory=list)


@dataclass
class LabelSelector:
    """A structured selector as written in an object's spec."""

    match_labels: dict[str, str] = field(default_factory=dict)
    match_expressions: list[LabelSelectorRequirement] = field(default_factory=list)


class _Token(NamedTuple):
    kind: str
    text: str


_IDENT = "ident"
_PUNCT = "punct"
_SPECIAL_CHARS = "!=(),<>"
_TWO_CHAR_PUNCT = ("!=", "==")

_COMMA = _Token(_PUNCT, ",")
_OPEN = _Token(_PUNCT, "(")
_CLOSE = _Token(_PUNCT, ")")
_BANG = _Token(_PUNCT, "!")

_OPERATOR_TOKENS = {
    _Token(_PUNCT, "="): Operator.EQUALS,
    _Token(_PUNCT, "=="): Operator.DOUBLE_EQUALS,
    _Token(_PUNCT, "!="): Operator.NOT_EQUALS,
    _Token(_PUNCT, ">"): Operator.GREATER_THAN,
    _Token(_PUNCT, "<"): Operator.LESS_THAN,
    _Token(_IDENT, "in"): Operator.IN,
    _Token(_IDENT, "notin"): Operator.NOT_IN,
}


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        char = text[pos]
        if char.isspace():
            pos += 1
        elif text[pos:pos + 2] in _TWO_CHAR_PUNCT:
            tokens.append(_Token(_PUNCT, text[pos:pos + 2]))
            pos += 2
        elif char in _SPECIAL_CHARS:
            tokens.append(_Token(_PUNCT, char))
            pos += 1
        else:
            end = pos
            while end < len(text) and not text[end].isspace() and text[end] not in _SPECIAL_CHARS:
                end += 1
            tokens.append(_Token(_IDENT, text[pos:end]))
            pos = end
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = _tokenize(text)
        self._pos = 0

    def _peek(self) -> Optional[_Token]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> Optional[_Token]:
        token = self._peek()
        if token is not None:
            self._pos += 1
        return token

    @staticmethod
    def _error(token: Optional[_Token], expected: str) -> ValueError:
        found = token.text if token else ""
        return ValueError(f"found '{found}', expected: {expected}")

    def parse(self) -> Selector:
        if self._peek() is None:
            return Selector()
        requirements = []
        while True:
            requirements.append(self._requirement())
            token = self._next()
            if token is None:
                break
            if token != _COMMA:
                raise self._error(token, "',' or 'end of string'")
        return Selector(tuple(requirements))

    def _requirement(self) -> Requirement:
        token = self._next()
        if token == _BANG:
            key = self._next()
            if key is None or key.kind != _IDENT:
                raise self._error(key, "identifier after '!'")
            return Requirement(key.text, Operator.DOES_NOT_EXIST)
        if token is None or token.kind != _IDENT:
            raise self._error(token, "!, identifier, or 'end of string'")
        key = token.text
        following = self._peek()
        if following is None or following == _COMMA:
            return Requirement(key, Operator.EXISTS)
        self._pos += 1
        operator = _OPERATOR_TOKENS.get(following)
        if operator is None:
            raise self._error(following, "in, notin, =, ==, !=, gt, lt")
        if operator in _SET_OPERATORS:
            return Requirement(key, operator, self._value_list())
        return Requirement(key, operator, (self._single_value(),))

    def _single_value(self) -> str:
        token = self._peek()
        if token is None or token == _COMMA:
            return ""
        if token.kind != _IDENT:
            raise self._error(token, "identifier")
        self._pos += 1
        return token.text

    def _value_list(self) -> tuple[str, ...]:
        token = self._next()
        if token != _OPEN:
            raise self._error(token, "'('")
        if self._peek() == _CLOSE:
            self._pos += 1
            return ()
        values = []
        while True:
            token = self._peek()
            if token is not None and token.kind == _IDENT:
                self._pos += 1
                values.append(token.text)
            elif token in (_COMMA, _CLOSE):
                values.append("")
            else:
                raise self._error(token, "',', ')' or identifier")
            separator = self._next()
            if separator == _CLOSE:
                return tuple(values)
            if separator != _COMMA:
                raise self._error(separator, "',' or ')'")


def parse_selector(text: str) -> Selector:
    """Parse a selector string such as ``env=dev,tier in (a,b),!legacy``."""
    return _Parser(text).parse()


def selector_from_set(mapping: Mapping[str, str]) -> Selector:
    """Build a selector requiring each key to equal its value."""
    return Selector(tuple(Requirement(key, Operator.EQUALS, (value,)) for key, value in mapping.items()))


_STRUCTURED_OPERATORS = {
    "In": Operator.IN,
    "NotIn": Operator.NOT_IN,
    "Exists": Operator.EXISTS,
    "DoesNotExist": Operator.DOES_NOT_EXIST,
}


def _requirements_from_expressions(
    expressions: Iterable[LabelSelectorRequirement],
) -> list[Requirement]:
    result = []
    for expr in expressions:
        operator = _STRUCTURED_OPERATORS.get(expr.operator)
        if operator is None:
            raise ValueError(f'"{expr.operator}" is not a valid label selector operator')
        result.append(Requirement(expr.key, operator, tuple(expr.values)))
    return result


def label_selector_as_selector(selector: Optional[LabelSelector]) -> Selector:
    """Convert a structured selector; ``None`` selects nothing, an empty one everything."""
    if selector is None:
        return Selector(match_nothing=True)
    requirements = [
        Requirement(key, Operator.EQUALS, (value,)) for key, value in selector.match_labels.items()
    ]
    requirements.extend(_requirements_from_expressions(selector.match_expressions))
    return Selector(tuple(requirements))