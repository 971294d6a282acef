"""
The Conventional Commits message value type.

A :class:`CommitMessage` checks every structural rule when it is
constructed, so an instance that exists always renders to a message of
the form::

    <type>(<scope>)!: <description>

    - <body line>

    <token>: <value>

:meth:`CommitMessage.parse` is the strict inverse of
:meth:`CommitMessage.render`. Lenient handling of model output lives in
:mod:`commit_wizard.message.validator`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


COMMIT_TYPES: Tuple[str, ...] = (
    "feat", "fix", "docs", "style", "refactor", "perf", "test", "build", "ci", "chore",
)

BREAKING_TOKENS = ("BREAKING CHANGE", "BREAKING-CHANGE")

SCOPE_RE = re.compile(r"^[a-z0-9._-]+$")
FOOTER_TOKEN_RE = re.compile(r"^(BREAKING[ -]CHANGE|[A-Za-z][A-Za-z0-9-]*)$")
FOOTER_SEPARATORS = (": ", " #")

_HEADER_RE = re.compile(
    r"^(?P<type>[^\s():!]+)(?:\((?P<scope>[^()]*)\))?(?P<bang>!)?: (?P<description>\S.*)$"
)
_FOOTER_LINE_RE = re.compile(
    r"^(?P<token>BREAKING[ -]CHANGE|[A-Za-z][A-Za-z0-9-]*)(?P<sep>: | #)(?P<value>.*)$"
)


class ValidationError(Exception):
    """Raised when text cannot be turned into a valid commit message.

    Parameters
    ----------
    rule : str
        Name of the violated rule (``empty``, ``header``, ``type``,
        ``scope``, ``description``, ``description-length``,
        ``imperative``, ``body`` or ``footer``).
    detail : str
        Human readable explanation, suitable as model feedback.
    suggestion : str, optional
        A replacement the caller may offer, e.g. ``add`` for ``added``.
    """

    def __init__(self, rule: str, detail: str, suggestion: Optional[str] = None) -> None:
        super().__init__(f"{rule}: {detail}")
        self.rule = rule
        self.detail = detail
        self.suggestion = suggestion


@dataclass(frozen=True)
class Footer:
    """A trailer such as ``Refs: #12`` or ``Closes #7``."""

    token: str
    value: str
    separator: str = ": "

    def __post_init__(self) -> None:
        if not FOOTER_TOKEN_RE.match(self.token):
            raise ValidationError("footer", f"invalid footer token {self.token!r}")
        if self.separator not in FOOTER_SEPARATORS:
            raise ValidationError("footer", f"invalid footer separator {self.separator!r}")
        if not self.value.strip() or "\n" in self.value or self.value != self.value.strip():
            raise ValidationError("footer", f"footer {self.token!r} needs a single-line value")

    @property
    def is_breaking(self) -> bool:
        return self.token in BREAKING_TOKENS

    def render(self) -> str:
        return f"{self.token}{self.separator}{self.value}"


@dataclass(frozen=True)
class CommitMessage:
    """A validated Conventional Commits message.

    ``repairs`` lists what the validator changed to obtain this message;
    it does not take part in equality.
    """

    commit_type: str
    description: str
    scope: Optional[str] = None
    breaking: bool = False
    body: Tuple[str, ...] = ()
    footers: Tuple[Footer, ...] = ()
    repairs: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if self.commit_type not in COMMIT_TYPES:
            raise ValidationError(
                "type",
                f"unknown commit type {self.commit_type!r}; use one of {', '.join(COMMIT_TYPES)}",
            )
        if self.scope is not None:
            if not self.scope:
                raise ValidationError("scope", "scope parentheses must not be empty")
            if not SCOPE_RE.match(self.scope):
                raise ValidationError(
                    "scope", f"scope {self.scope!r} may only contain a-z, 0-9, '.', '_' and '-'"
                )
        if not self.description or self.description != self.description.strip():
            raise ValidationError("description", "description must not be empty")
        if "\n" in self.description:
            raise ValidationError("description", "description must be a single line")
        for line in self.body:
            if not line or line != line.strip() or "\n" in line:
                raise ValidationError("body", f"invalid body line {line!r}")
        if any(footer.is_breaking for footer in self.footers) and not self.breaking:
            raise ValidationError("footer", "a BREAKING CHANGE footer requires the breaking flag")
        if self.breaking and not any(footer.is_breaking for footer in self.footers):
            raise ValidationError("footer", "a breaking change needs a BREAKING CHANGE footer")

    @property
    def header(self) -> str:
        scope = f"({self.scope})" if self.scope else ""
        bang = "!" if self.breaking else ""
        return f"{self.commit_type}{scope}{bang}: {self.description}"

    def render(self) -> str:
        """Return the message text, terminated by a single newline."""
        lines: List[str] = [self.header]
        if self.body:
            lines.append("")
            lines.extend(f"- {line}" for line in self.body)
        if self.footers:
            lines.append("")
            lines.extend(footer.render() for footer in self.footers)
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def parse(cls, text: str) -> "CommitMessage":
        """Strictly parse rendered message text.

        Only text in the exact rendered shape is accepted; use
        :func:`commit_wizard.message.validator.validate` for model output.

        Raises
        ------
        ValidationError
            If ``text`` does not follow the grammar.
        """
        if not text or not text.strip():
            raise ValidationError("empty", "message is empty")
        if text.endswith("\n"):
            text = text[:-1]
        lines = text.split("\n")

        match = _HEADER_RE.match(lines[0])
        if not match:
            raise ValidationError("header", f"header {lines[0]!r} is not '<type>(<scope>): <description>'")

        blocks: List[List[str]] = []
        rest = lines[1:]
        if rest and rest[0] != "":
            raise ValidationError("header", "a blank line must separate the header from the body")
        for line in rest:
            if line == "":
                blocks.append([])
            else:
                if not blocks:
                    blocks.append([])
                blocks[-1].append(line)
        if any(not block for block in blocks):
            raise ValidationError("body", "unexpected blank lines")
        if len(blocks) > 2:
            raise ValidationError("body", "expected at most a body and a footer section")

        body: Tuple[str, ...] = ()
        footers: Tuple[Footer, ...] = ()
        if blocks and all(_FOOTER_LINE_RE.match(line) for line in blocks[-1]):
            footers = tuple(_parse_footer(line) for line in blocks.pop())
        if blocks:
            bullets = blocks.pop()
            if not all(line.startswith("- ") for line in bullets):
                raise ValidationError("body", "body lines must start with '- '")
            body = tuple(line[2:] for line in bullets)
        if blocks:
            raise ValidationError("footer", "footers must follow the body")

        breaking = bool(match.group("bang")) or any(f.is_breaking for f in footers)
        return cls(
            commit_type=match.group("type"),
            scope=match.group("scope"),
            breaking=breaking,
            description=match.group("description"),
            body=body,
            footers=footers,
        )


def _parse_footer(line: str) -> Footer:
    match = _FOOTER_LINE_RE.match(line)
    if not match:
        raise ValidationError("footer", f"malformed footer {line!r}")
    return Footer(match.group("token"), match.group("value"), match.group("sep"))
