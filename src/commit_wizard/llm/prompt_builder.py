"""
Prompt construction for commit message generation.

The prompt hands the model what the analysis stages already know: the
complexity tier and whether a body is needed, the detected change
patterns with their confidence, the suggested type and scopes, the
affected files and the budgeted diff. On a regeneration the validation
error of the previous reply is appended so the model can correct it.
"""

from __future__ import annotations

from textwrap import dedent
from typing import List, Optional

from commit_wizard.analysis.change_filter import render_diff
from commit_wizard.analysis.complexity import ComplexityScore, ComplexityTier
from commit_wizard.analysis.models import ClassificationResult, FilterResult
from commit_wizard.analysis.signatures import DEFAULT_CATALOG, get_signature
from commit_wizard.message.commit_message import COMMIT_TYPES


MAX_LISTED_FILES = 10

SIMPLE_SYSTEM_PROMPT = (
    "You are a developer writing concise commit messages. Generate a single-line "
    "Conventional Commits message that clearly describes the change."
)
BODY_SYSTEM_PROMPT = (
    "You are a senior developer writing clear commit messages. Generate a Conventional "
    "Commits message with a proper type and scope and a body of bullet points that "
    "explains the changes."
)
COMPLEX_SYSTEM_PROMPT = (
    "You are an expert software engineer writing precise, detailed commit messages. "
    "Analyse the code changes and generate a Conventional Commits message that fully "
    "explains the architectural changes."
)

_FORMAT_RULES = dedent(
    """
    FORMAT RULES:
    - First line: <type>(<scope>): <description>, or <type>: <description> without a scope
    - Use the imperative mood ("add", not "added" or "adding")
    - Start the description with a lowercase letter and keep it within 72 characters
    - Name the concrete change; avoid vague words such as "various", "stuff" or "updates"
    - Lowercase scope made of a-z, 0-9, '.', '_' or '-'; no trailing period
    - Append '!' after the type or scope for a breaking change and add a
      'BREAKING CHANGE: <explanation>' footer
    - Body lines start with "- " and follow one blank line after the header
    - Output ONLY the commit message: no code fences, no preamble, no explanation
    """
).strip()


def system_prompt(score: ComplexityScore) -> str:
    """Pick the system prompt for a complexity score."""
    if score.tier is ComplexityTier.COMPLEX:
        return COMPLEX_SYSTEM_PROMPT
    if score.requires_body:
        return BODY_SYSTEM_PROMPT
    return SIMPLE_SYSTEM_PROMPT


def _describe_match(name: str) -> str:
    try:
        return get_signature(name, DEFAULT_CATALOG).description
    except KeyError:
        return name


def build_prompt(
    filter_result: FilterResult,
    classification: ClassificationResult,
    score: ComplexityScore,
    feedback: Optional[str] = None,
) -> str:
    """Build the user prompt for one generation attempt.

    Parameters
    ----------
    filter_result : FilterResult
        Kept (possibly truncated) and excluded files.
    classification : ClassificationResult
        Detected patterns, primary type and candidate scopes.
    score : ComplexityScore
        Complexity tier and body requirement.
    feedback : str, optional
        Why the previous reply was rejected.

    Returns
    -------
    str
        The prompt text.
    """
    lines: List[str] = [
        "Generate a Conventional Commits message for the following change.",
        "",
        f"COMPLEXITY: {score.value:.1f}/5.0 ({score.tier.value})",
    ]
    if score.requires_body:
        lines.append("BODY REQUIRED: add a blank line and 2-6 bullet points after the header.")
    else:
        lines.append("SINGLE LINE: this is a focused change; no body is needed.")

    lines.extend(["", "DETECTED PATTERNS:"])
    if classification.matches:
        for match in classification.matches:
            lines.append(
                f"- {match.name}: {_describe_match(match.name)} (confidence {match.confidence:.2f})"
            )
    else:
        lines.append("- none")

    lines.extend(["", f"SUGGESTED TYPE: {classification.primary_type}"])
    if classification.candidate_scopes:
        lines.append(f"CANDIDATE SCOPES: {', '.join(classification.candidate_scopes)}")
    else:
        lines.append("CANDIDATE SCOPES: none; derive one from the paths or omit the scope")
    lines.append(f"ALLOWED TYPES: {', '.join(COMMIT_TYPES)}")

    kept = filter_result.kept
    lines.extend(["", "FILES CHANGED:"])
    for file in kept[:MAX_LISTED_FILES]:
        lines.append(f"- {file.path} ({file.status.name.lower()})")
    if len(kept) > MAX_LISTED_FILES:
        lines.append(f"... and {len(kept) - MAX_LISTED_FILES} more files")
    if filter_result.excluded:
        lines.append(
            "Not shown: " + ", ".join(
                f"{item.path} ({item.reason.value})" for item in filter_result.excluded
            )
        )

    diff = render_diff(kept)
    lines.extend(["", "DIFF:"])
    if filter_result.truncated:
        lines.append("(truncated to fit the analysis budget)")
    lines.append(diff or "(no textual diff)")

    lines.extend(["", _FORMAT_RULES])
    if feedback:
        lines.extend([
            "",
            "YOUR PREVIOUS REPLY WAS REJECTED:",
            feedback,
            "Fix this problem and answer again with the corrected message only.",
        ])
    return "\n".join(lines)
