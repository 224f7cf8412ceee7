"""Profiles and the activation context.

Purpose
-------
Hold the profile sets that gate configuration documents and decide whether a
document's ``config.activate.on-profile`` predicate accepts them. Binding the
raw values is the pipeline's job; this module only combines and evaluates them.

Contents
--------
* :func:`parse_profile_expression` – compiles ``prod & !cloud`` style
  expressions into matchers.
* :func:`matches_profiles` – evaluates a list of expressions (any may match).
* :class:`Profiles` – active/default profile sets with group expansion.
* :class:`ImportPhase` – tags children as imported before/after profiles were
  final.
* :class:`ActivationContext` – what is known about profiles at a given pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, Mapping, Sequence

from .keys import DEFAULT_PROFILE

ProfileMatcher = Callable[[Callable[[str], bool]], bool]

_TOKEN = re.compile(r"\s*([()&|!]|[^()&|!\s]+)")


def parse_profile_expression(expression: str) -> ProfileMatcher:
    """Compile a profile *expression* into a matcher.

    Operators are ``!`` (not), ``&`` (and), ``|`` (or) and parentheses. ``&``
    and ``|`` cannot be mixed without parentheses.

    Examples
    --------
    >>> active = {"prod", "eu"}.__contains__
    >>> parse_profile_expression("prod & !cloud")(active)
    True
    >>> parse_profile_expression("(dev | test) & eu")(active)
    False
    >>> parse_profile_expression("dev & test | prod")
    Traceback (most recent call last):
    ...
    ValueError: Malformed profile expression 'dev & test | prod'
    """

    return _ExpressionParser(expression).parse()


def matches_profiles(expressions: Sequence[str], accepted: Callable[[str], bool]) -> bool:
    """Return ``True`` when any of *expressions* matches the *accepted* predicate."""

    return any(parse_profile_expression(expression)(accepted) for expression in expressions)


class _ExpressionParser:
    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = _TOKEN.findall(expression)
        self.position = 0

    def parse(self) -> ProfileMatcher:
        if not self.tokens:
            raise ValueError("Invalid profile expression: must contain text")
        matcher = self._parse_sequence()
        if self.position != len(self.tokens):
            raise self._malformed()
        return matcher

    def _parse_sequence(self) -> ProfileMatcher:
        operands = [self._parse_operand()]
        operator: str | None = None
        while self._peek() in ("&", "|"):
            token = self._next()
            if operator is not None and token != operator:
                raise self._malformed()
            operator = token
            operands.append(self._parse_operand())
        if operator == "&":
            return lambda accepted: all(operand(accepted) for operand in operands)
        if operator == "|":
            return lambda accepted: any(operand(accepted) for operand in operands)
        return operands[0]

    def _parse_operand(self) -> ProfileMatcher:
        token = self._next()
        if token is None or token in ("&", "|", ")"):
            raise self._malformed()
        if token == "!":
            inner = self._parse_operand()
            return lambda accepted: not inner(accepted)
        if token == "(":
            inner = self._parse_sequence()
            if self._next() != ")":
                raise self._malformed()
            return inner
        return lambda accepted: accepted(token)

    def _peek(self) -> str | None:
        return self.tokens[self.position] if self.position < len(self.tokens) else None

    def _next(self) -> str | None:
        token = self._peek()
        self.position += 1
        return token

    def _malformed(self) -> ValueError:
        return ValueError(f"Malformed profile expression '{self.expression}'")


@dataclass(frozen=True, slots=True)
class Profiles:
    """Active and default profiles after group expansion.

    Examples
    --------
    >>> profiles = Profiles.create(
    ...     active=["prod"],
    ...     default=None,
    ...     groups={"prod": ["db", "mq"]},
    ...     additional=["cli", "prod"],
    ... )
    >>> profiles.active, profiles.default
    (('cli', 'prod', 'db', 'mq'), ('default',))
    >>> profiles.is_accepted("db"), profiles.is_accepted("default")
    (True, False)
    """

    active: tuple[str, ...] = ()
    default: tuple[str, ...] = (DEFAULT_PROFILE,)
    groups: Mapping[str, tuple[str, ...]] = field(default_factory=dict, compare=False)

    @classmethod
    def create(
        cls,
        *,
        active: Iterable[str] | None,
        default: Iterable[str] | None,
        groups: Mapping[str, Sequence[str]] | None = None,
        additional: Iterable[str] = (),
    ) -> "Profiles":
        """Combine bound values with caller-supplied *additional* profiles.

        *additional* comes first in the active order, then *active*; duplicates
        keep their first position. An unset *default* falls back to
        ``("default",)``.
        """

        frozen_groups = MappingProxyType({name: tuple(members) for name, members in (groups or {}).items()})
        combined = _unique([*additional, *(active or ())])
        defaults = _unique(default) if default is not None else (DEFAULT_PROFILE,)
        return cls(
            active=_expand(combined, frozen_groups),
            default=_expand(defaults, frozen_groups),
            groups=frozen_groups,
        )

    @property
    def accepted(self) -> tuple[str, ...]:
        """Profiles that activate documents: the active ones, else the defaults."""

        return self.active if self.active else self.default

    def is_accepted(self, profile: str) -> bool:
        return profile in self.accepted

    def __iter__(self) -> Iterator[str]:
        return iter(self.accepted)


class ImportPhase(Enum):
    BEFORE_PROFILE_ACTIVATION = "before-profile-activation"
    AFTER_PROFILE_ACTIVATION = "after-profile-activation"


@dataclass(frozen=True, slots=True)
class ActivationContext:
    """What the pipeline knows about profiles at a given pass.

    ``provisional`` contexts carry the profiles bound before ``profiles.include``
    was evaluated: they gate documents but do not yet trigger profile-specific
    imports.
    """

    profiles: Profiles | None = None
    provisional: bool = False

    @classmethod
    def initial(cls, profiles: Profiles) -> "ActivationContext":
        return cls(profiles, provisional=True)

    def with_profiles(self, profiles: Profiles) -> "ActivationContext":
        return ActivationContext(profiles, provisional=False)

    @property
    def import_phase(self) -> ImportPhase:
        if self.profiles is not None and not self.provisional:
            return ImportPhase.AFTER_PROFILE_ACTIVATION
        return ImportPhase.BEFORE_PROFILE_ACTIVATION


def import_phase_of(context: ActivationContext | None) -> ImportPhase:
    """Return the phase children imported under *context* are tagged with."""

    return ImportPhase.BEFORE_PROFILE_ACTIVATION if context is None else context.import_phase


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for item in items:
        name = item.strip()
        if name:
            seen.setdefault(name, None)
    return tuple(seen)


def _expand(profiles: Sequence[str], groups: Mapping[str, tuple[str, ...]]) -> tuple[str, ...]:
    """Expand group names depth-first, each profile kept once."""

    stack = list(reversed(profiles))
    expanded: dict[str, None] = {}
    while stack:
        current = stack.pop()
        if current in expanded:
            continue
        expanded[current] = None
        stack.extend(reversed(groups.get(current, ())))
    return tuple(expanded)
