"""
Validation and normalisation of model-generated commit messages.

Language models rarely answer with just the message. They wrap it in
code fences, prepend "Here is the commit message:", restate the header
twice, or finish with an explanation. :func:`validate` repairs those
mechanical problems (each repair is logged and recorded on the result)
and rejects everything else with a :class:`ValidationError` whose
``rule`` and ``detail`` can be fed back to the model.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, List, Mapping, Optional, Tuple

from commit_wizard.message.commit_message import (
    BREAKING_TOKENS,
    COMMIT_TYPES,
    SCOPE_RE,
    CommitMessage,
    Footer,
    ValidationError,
)

if TYPE_CHECKING:
    from commit_wizard.analysis.models import ClassificationResult


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


NON_IMPERATIVE_OPENERS: Mapping[str, str] = {
    "added": "add", "adding": "add", "adds": "add",
    "removed": "remove", "removing": "remove", "removes": "remove",
    "deleted": "delete", "deleting": "delete", "deletes": "delete",
    "created": "create", "creating": "create", "creates": "create",
    "updated": "update", "updating": "update", "updates": "update",
    "modified": "modify", "modifying": "modify", "modifies": "modify",
    "fixed": "fix", "fixing": "fix", "fixes": "fix",
    "changed": "change", "changing": "change", "changes": "change",
    "implemented": "implement", "implementing": "implement", "implements": "implement",
    "improved": "improve", "improving": "improve", "improves": "improve",
    "refactored": "refactor", "refactoring": "refactor", "refactors": "refactor",
    "moved": "move", "moving": "move", "moves": "move",
    "renamed": "rename", "renaming": "rename", "renames": "rename",
    "introduced": "introduce", "introducing": "introduce", "introduces": "introduce",
}

IMPERATIVE_ALLOWLIST: FrozenSet[str] = frozenset({
    "embed", "speed", "proceed", "exceed", "succeed", "shed", "feed", "need", "seed",
    "breed", "bleed", "bring", "string", "ring", "spring", "sing", "swing", "ping",
    "thing", "wing", "sting", "cling", "fling",
})

VAGUE_WORDS: FrozenSet[str] = frozenset({
    "things", "stuff", "various", "multiple", "some", "several", "many", "few",
    "miscellaneous", "misc", "general", "generic", "updates", "changes",
    "modifications", "improvements", "fixes",
})

# Shortening passes for long descriptions, applied in order until one fits.
LONG_WORD_ABBREVIATIONS: Mapping[str, str] = {
    "functionality": "func", "configuration": "config", "implementation": "impl",
    "documentation": "docs", "specification": "spec", "repository": "repo",
    "database": "db", "application": "app", "development": "dev",
    "production": "prod", "environment": "env", "authentication": "auth",
    "authorization": "authz", "administrator": "admin", "management": "mgmt",
    "information": "info",
}
FILLER_WORDS: FrozenSet[str] = frozenset({"the", "a", "an", "for", "with", "to", "in", "of"})
SHORT_WORD_ABBREVIATIONS: Mapping[str, str] = {
    "update": "upd", "message": "msg", "commit": "cmt", "generation": "gen",
    "validation": "valid", "description": "desc", "character": "char",
    "maximum": "max", "minimum": "min", "function": "fn", "variable": "var",
    "parameter": "param",
}


@dataclass(frozen=True)
class ValidatorSettings:
    """Tuning constants for :func:`validate`.

    ``imperative_min_length`` is the shortest first word that the
    ``-ed``/``-ing`` suffix check inspects. A candidate scope is filled
    in for a reply without scope only when its confidence is strictly
    greater than ``scope_repair_confidence``. A description longer than
    ``max_description_length`` is shortened first when
    ``shorten_descriptions`` is set, and rejected if it still does not
    fit; ``None`` disables the length rule. More than
    ``max_vague_words`` distinct words from ``vague_words`` reject the
    description; ``None`` disables that rule.
    """

    scope_repair_confidence: float = 0.5
    imperative_min_length: int = 5
    max_description_length: Optional[int] = 72
    shorten_descriptions: bool = True
    max_vague_words: Optional[int] = 2
    vague_words: FrozenSet[str] = VAGUE_WORDS
    non_imperative_openers: Mapping[str, str] = field(
        default_factory=lambda: dict(NON_IMPERATIVE_OPENERS)
    )
    imperative_allowlist: FrozenSet[str] = IMPERATIVE_ALLOWLIST


_THINKING_RE = re.compile(
    r"<(think|thinking|thought|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE
)
_FENCE_RE = re.compile(r"```[\w+.-]*[ \t]*\n(?P<inner>.*?)\n?[ \t]*```", re.DOTALL)
_LABEL_RE = re.compile(
    r"^(?:here(?:'s| is)\s+(?:the|a|your)\s+)?(?:suggested\s+|proposed\s+|final\s+)?"
    r"commit(?:\s+message)?\s*:\s*",
    re.IGNORECASE,
)
_TYPED_LINE_RE = re.compile(r"^(?P<type>[a-z]+)(?:\([^()]*\))?!?\s*:")
_LOOSE_HEADER_RE = re.compile(
    r"^(?P<type>[^\s():!]+)\s*(?:\((?P<scope>[^()]*)\))?\s*(?P<bang>!)?\s*:\s*(?P<description>.*)$"
)
_META_RE = re.compile(
    r"^(?:\*\*)?(?:note|notes|explanation|reasoning)(?:\*\*)?\s*:|^this commit\b",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^(?:[-*+•]|\d+[.)])\s+")
_FOOTER_RE = re.compile(
    r"^(?P<token>BREAKING[ -]CHANGE|[A-Za-z][A-Za-z0-9-]*)(?P<sep>\s*:\s*|\s+#)(?P<value>.*)$"
)
_WRAPPERS = ("**", "`", '"', "'")


def strip_thinking_tags(text: str) -> str:
    """Remove ``<think>``-style reasoning blocks from a model reply.

    >>> strip_thinking_tags("<think>reasoning...</think>Answer")
    'Answer'
    """
    return _THINKING_RE.sub("", text).strip()


def _unwrap(text: str) -> str:
    """Strip matching quote, backtick or bold markers around ``text``."""
    text = text.strip()
    changed = True
    while changed and text:
        changed = False
        for marker in _WRAPPERS:
            if len(text) > 2 * len(marker) and text.startswith(marker) and text.endswith(marker):
                text = text[len(marker):-len(marker)].strip()
                changed = True
    return text


def _clean_header_candidate(line: str) -> str:
    return _unwrap(_LABEL_RE.sub("", _unwrap(line), count=1))


def _is_typed_line(line: str) -> bool:
    match = _TYPED_LINE_RE.match(_clean_header_candidate(line))
    return bool(match) and match.group("type") in COMMIT_TYPES


class _Repairs:
    """Collects repair notes and logs each one."""

    def __init__(self) -> None:
        self.notes: List[str] = []

    def note(self, message: str) -> None:
        logger.info("Repaired commit message: %s", message)
        self.notes.append(message)


def _check_imperative(description: str, settings: ValidatorSettings) -> None:
    first = description.split()[0].lower().rstrip(",:;")
    suggestion = settings.non_imperative_openers.get(first)
    if suggestion:
        raise ValidationError(
            "imperative",
            f"start the description with '{suggestion}' instead of '{first}'",
            suggestion=suggestion,
        )
    if first in settings.imperative_allowlist or len(first) < settings.imperative_min_length:
        return
    if first.endswith("ed") or first.endswith("ing"):
        raise ValidationError(
            "imperative",
            f"description must use the imperative mood, not '{first}'",
        )


_WORD_RE = re.compile(r"[A-Za-z]+")


def _replace_words(text: str, table: Mapping[str, str]) -> str:
    return _WORD_RE.sub(lambda m: table.get(m.group(0).lower(), m.group(0)), text)


def shorten_description(description: str, limit: int) -> Optional[str]:
    """Try to bring ``description`` within ``limit`` characters.

    Long words are abbreviated first, then filler words are dropped, then
    common words are abbreviated. The first word is never touched so the
    imperative verb survives. Returns ``None`` when nothing fits.

    >>> shorten_description("add the authentication configuration", 30)
    'add the auth config'
    """
    head, _, tail = description.partition(" ")
    if not tail:
        return None
    tail = _replace_words(tail, LONG_WORD_ABBREVIATIONS)
    if len(head) + 1 + len(tail) <= limit:
        return f"{head} {tail}"
    tail = " ".join(word for word in tail.split() if word.lower() not in FILLER_WORDS)
    if len(head) + 1 + len(tail) <= limit:
        return f"{head} {tail}"
    tail = _replace_words(tail, SHORT_WORD_ABBREVIATIONS)
    if len(head) + 1 + len(tail) <= limit:
        return f"{head} {tail}"
    return None


def _check_vague(description: str, settings: ValidatorSettings) -> None:
    if settings.max_vague_words is None:
        return
    words = {word.lower() for word in _WORD_RE.findall(description)}
    found = sorted(words & settings.vague_words)
    if len(found) > settings.max_vague_words:
        raise ValidationError(
            "vague",
            f"description is too vague ({', '.join(found)}); name the concrete change",
        )


def _split_footers(lines: List[str]) -> Tuple[List[str], List[Footer]]:
    """Split trailing footer lines off the body lines."""
    index = len(lines)
    while index > 0 and (not lines[index - 1].strip() or _FOOTER_RE.match(lines[index - 1].strip())):
        index -= 1
    footers: List[Footer] = []
    for raw in lines[index:]:
        line = raw.strip()
        if not line:
            continue
        match = _FOOTER_RE.match(line)
        value = match.group("value").strip()
        if not value:
            raise ValidationError("footer", f"footer {match.group('token')!r} has no value")
        separator = " #" if "#" in match.group("sep") else ": "
        footers.append(Footer(match.group("token"), value, separator))
    return lines[:index], footers


def validate(
    raw_text: Optional[str],
    classification: Optional["ClassificationResult"] = None,
    settings: ValidatorSettings = ValidatorSettings(),
) -> CommitMessage:
    """Repair and validate a model reply.

    Parameters
    ----------
    raw_text : str
        The text returned by the model (or typed by the user).
    classification : ClassificationResult, optional
        Detector output; used to fill in a missing scope.
    settings : ValidatorSettings
        Rule thresholds.

    Returns
    -------
    CommitMessage
        The normalised message. ``repairs`` lists what was changed.

    Raises
    ------
    ValidationError
        If a rule is violated after the repair pass.
    """
    if raw_text is None or not raw_text.strip():
        raise ValidationError("empty", "the reply is empty")
    repairs = _Repairs()

    text = raw_text.replace("\r\n", "\n")
    unthought = strip_thinking_tags(text)
    if unthought != text.strip():
        repairs.note("removed reasoning tags")
    text = unthought

    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group("inner")
        repairs.note("removed code fence")
    unwrapped = _unwrap(text)
    if unwrapped != text.strip():
        repairs.note("removed surrounding quotes")
    text = unwrapped

    lines = [line.rstrip() for line in text.split("\n")]
    non_empty = [i for i, line in enumerate(lines) if line.strip()]
    if not non_empty:
        raise ValidationError("empty", "the reply is empty")

    header_index = next((i for i in non_empty if _is_typed_line(lines[i])), non_empty[0])
    if header_index != non_empty[0]:
        repairs.note("skipped preamble before the header")
    header_line = _clean_header_candidate(lines[header_index])
    if header_line != lines[header_index].strip():
        repairs.note("removed header label or markers")
    rest = lines[header_index + 1:]

    # Further header-shaped lines before any body content are restatements.
    kept_rest: List[str] = []
    in_body = False
    for line in rest:
        if not in_body and line.strip() and _is_typed_line(line):
            repairs.note("dropped duplicate header line")
            continue
        if line.strip():
            in_body = True
        kept_rest.append(line)
    rest = kept_rest

    while rest and (not rest[-1].strip() or _META_RE.match(_unwrap(rest[-1]))):
        if rest[-1].strip():
            repairs.note("dropped trailing commentary")
        rest.pop()

    match = _LOOSE_HEADER_RE.match(header_line)
    if not match:
        raise ValidationError(
            "header", f"first line {header_line!r} is not '<type>(<scope>): <description>'"
        )
    commit_type = match.group("type")
    if commit_type not in COMMIT_TYPES:
        raise ValidationError(
            "type", f"unknown commit type {commit_type!r}; use one of {', '.join(COMMIT_TYPES)}"
        )

    scope = match.group("scope")
    if scope is not None:
        normalised = scope.strip().lower()
        if normalised != scope:
            repairs.note(f"normalised scope {scope!r} to {normalised!r}")
        scope = normalised
        if not scope:
            raise ValidationError("scope", "scope parentheses must not be empty")
        if not SCOPE_RE.match(scope):
            raise ValidationError(
                "scope", f"scope {scope!r} may only contain a-z, 0-9, '.', '_' and '-'"
            )

    description = match.group("description").strip()
    trimmed = description.rstrip(".").rstrip()
    if trimmed != description:
        repairs.note("removed trailing period from description")
    description = trimmed
    if not description:
        raise ValidationError("description", "description must not be empty")
    first_word = description.split()[0]
    # All-caps openers such as "API" or "README" keep their case.
    if first_word[:1].isupper() and not first_word[1:2].isupper():
        description = description[0].lower() + description[1:]
        repairs.note("lowercased first letter of description")
    limit = settings.max_description_length
    if limit is not None and len(description) > limit and settings.shorten_descriptions:
        shortened = shorten_description(description, limit)
        if shortened is not None:
            repairs.note(f"shortened description from {len(description)} to {len(shortened)} characters")
            description = shortened
    if limit is not None and len(description) > limit:
        raise ValidationError(
            "description-length",
            f"description has {len(description)} characters; keep it within {limit}",
        )
    _check_vague(description, settings)
    _check_imperative(description, settings)

    if rest and rest[0].strip():
        repairs.note("inserted blank line after header")

    body_lines, footers = _split_footers(rest)
    body: List[str] = []
    for raw in body_lines:
        line = raw.strip()
        if not line:
            continue
        bullet = line
        while _BULLET_RE.match(bullet):
            bullet = _BULLET_RE.sub("", bullet, count=1).strip()
        if f"- {bullet}" != line:
            repairs.note("normalised body bullet")
        if bullet:
            body.append(bullet)

    bang = bool(match.group("bang"))
    breaking = bang or any(footer.token in BREAKING_TOKENS for footer in footers)
    if bang and not any(footer.is_breaking for footer in footers):
        footers.append(Footer("BREAKING CHANGE", description))
        repairs.note("added BREAKING CHANGE footer")

    if scope is None and classification is not None and classification.candidate_scopes:
        candidate = classification.candidate_scopes[0]
        confidence = classification.scope_confidence(candidate)
        if confidence > settings.scope_repair_confidence:
            scope = candidate
            repairs.note(f"derived scope {candidate!r} from the changed files")

    message = CommitMessage(
        commit_type=commit_type,
        scope=scope,
        breaking=breaking,
        description=description,
        body=tuple(body),
        footers=tuple(footers),
        repairs=tuple(dict.fromkeys(repairs.notes)),
    )
    logger.debug("Validated commit message header: %s", message.header)
    return message
