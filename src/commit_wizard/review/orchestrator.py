"""
The review state machine.

A run moves through ``COLLECTING``, ``CLASSIFYING``, ``AWAITING_MODEL``
and ``VALIDATING`` and ends in ``READY`` or ``ABORTED``. Replies that
fail validation are sent back to the model with the validation error as
feedback, at most ``max_regenerations`` times. Once a valid message
exists the reviewer (the interactive menu of the CLI, or nothing when
running with ``--yes``) accepts, edits, regenerates or cancels it.

The orchestrator only sequences the analysis, generation and
validation components; all state of a run lives in :meth:`run`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from commit_wizard.analysis.change_filter import EmptySelection, NoChanges, analyze
from commit_wizard.analysis.complexity import ComplexityScore, score
from commit_wizard.analysis.models import ClassificationResult, FilterResult
from commit_wizard.analysis.pattern_detector import classify
from commit_wizard.config.settings import PipelineConfig
from commit_wizard.llm.prompt_builder import build_prompt, system_prompt
from commit_wizard.llm.provider import ExternalProviderError, select_model
from commit_wizard.message.commit_message import CommitMessage, ValidationError
from commit_wizard.message.validator import validate


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class ReviewState(Enum):
    COLLECTING = "collecting"
    CLASSIFYING = "classifying"
    AWAITING_MODEL = "awaiting_model"
    VALIDATING = "validating"
    READY = "ready"
    ABORTED = "aborted"


class ReviewAction(Enum):
    ACCEPT = "accept"
    EDIT = "edit"
    REGENERATE = "regenerate"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ReviewDecision:
    """What the reviewer chose; ``text`` carries the edited message."""

    action: ReviewAction
    text: Optional[str] = None


# Called with the current message and, after a rejected edit, the
# validation error of that edit.
Reviewer = Callable[[CommitMessage, Optional[ValidationError]], ReviewDecision]


@dataclass
class ReviewOutcome:
    """Terminal result of :meth:`ReviewOrchestrator.run`.

    ``error`` is ``None`` for ``READY`` and for runs the user cancelled
    or interrupted. ``attempts`` counts model calls.
    """

    state: ReviewState
    message: Optional[CommitMessage] = None
    error: Optional[Exception] = None
    history: List[ReviewState] = field(default_factory=list)
    attempts: int = 0
    filter_result: Optional[FilterResult] = None
    classification: Optional[ClassificationResult] = None
    score: Optional[ComplexityScore] = None

    @property
    def cancelled(self) -> bool:
        return self.state is ReviewState.ABORTED and self.error is None


class ReviewOrchestrator:
    """Drive one generate-validate-review run.

    Parameters
    ----------
    config : PipelineConfig
        Budget, tuning constants, models and the regeneration cap.
    change_source
        Object with ``get_changes() -> List[ChangedFile]``, usually a
        :class:`~commit_wizard.vcs.git_client.GitClient`.
    model_client
        Object with ``generate(prompt, model=None, system=None) -> str``.
    reviewer : Reviewer, optional
        Decides on each valid message. Without one the first valid
        message is accepted.
    on_state : Callable[[ReviewState, ReviewOutcome], None], optional
        Notified on every state transition with the outcome built so far.
    """

    def __init__(
        self,
        config: PipelineConfig,
        change_source,
        model_client,
        reviewer: Optional[Reviewer] = None,
        on_state: Optional[Callable[[ReviewState, "ReviewOutcome"], None]] = None,
    ) -> None:
        self.config = config
        self.change_source = change_source
        self.model_client = model_client
        self.reviewer = reviewer
        self.on_state = on_state

    def run(self) -> ReviewOutcome:
        """Run the state machine to a terminal state.

        Returns
        -------
        ReviewOutcome
            ``READY`` with the accepted message, or ``ABORTED`` with the
            error that ended the run (``None`` when cancelled).

        Raises
        ------
        GitError
            If the change source fails; that is not a review outcome.
        """
        outcome = ReviewOutcome(state=ReviewState.COLLECTING)

        def enter(state: ReviewState) -> None:
            outcome.state = state
            outcome.history.append(state)
            logger.info("Review state: %s", state.value)
            if self.on_state is not None:
                self.on_state(state, outcome)

        def abort(error: Optional[Exception] = None) -> ReviewOutcome:
            outcome.error = error
            outcome.message = None
            enter(ReviewState.ABORTED)
            return outcome

        enter(ReviewState.COLLECTING)
        try:
            files = self.change_source.get_changes()
            filter_result = analyze(files, self.config.budget)
        except (NoChanges, EmptySelection) as exc:
            logger.info("Nothing to analyze: %s", exc)
            return abort(exc)
        outcome.filter_result = filter_result

        enter(ReviewState.CLASSIFYING)
        classification = classify(filter_result.kept, settings=self.config.detector)
        complexity = score(filter_result.kept, classification, self.config.scoring)
        model = select_model(complexity, self.config.models)
        system = system_prompt(complexity)
        outcome.classification = classification
        outcome.score = complexity
        logger.debug("Selected model %s for %s change set", model, complexity.describe())

        feedback: Optional[str] = None
        regenerations = 0
        while True:
            enter(ReviewState.AWAITING_MODEL)
            prompt = build_prompt(filter_result, classification, complexity, feedback)
            outcome.attempts += 1
            try:
                raw = self.model_client.generate(prompt, model=model, system=system)
            except ExternalProviderError as exc:
                logger.error("Model request failed: %s", exc)
                return abort(exc)
            except KeyboardInterrupt:
                logger.info("Interrupted while waiting for the model")
                return abort()

            enter(ReviewState.VALIDATING)
            try:
                message = validate(raw, classification, self.config.validator)
            except ValidationError as exc:
                if regenerations >= self.config.max_regenerations:
                    logger.error("Giving up after %d regeneration(s): %s", regenerations, exc)
                    return abort(exc)
                regenerations += 1
                logger.warning(
                    "Model reply rejected (%s); regenerating (%d/%d)",
                    exc, regenerations, self.config.max_regenerations,
                )
                feedback = f"{exc.rule}: {exc.detail}\nRejected reply:\n{(raw or '').strip()}"
                continue
            feedback = None

            if self.reviewer is None:
                outcome.message = message
                enter(ReviewState.READY)
                return outcome

            decision = self._review(message, classification, enter)
            if decision is None:
                return abort()
            if isinstance(decision, CommitMessage):
                outcome.message = decision
                enter(ReviewState.READY)
                return outcome
            # Regenerate on request; user regenerations are not capped.

    def _review(self, message: CommitMessage, classification: ClassificationResult, enter):
        """Ask the reviewer until it accepts, cancels or asks to regenerate.

        Returns the accepted message, ``None`` for cancel and
        :attr:`ReviewAction.REGENERATE` for a regeneration.
        """
        edit_error: Optional[ValidationError] = None
        while True:
            try:
                decision = self.reviewer(message, edit_error)
            except KeyboardInterrupt:
                logger.info("Interrupted during review")
                return None
            edit_error = None
            if decision.action is ReviewAction.ACCEPT:
                return message
            if decision.action is ReviewAction.CANCEL:
                logger.info("Review cancelled by user")
                return None
            if decision.action is ReviewAction.REGENERATE:
                logger.info("Regeneration requested by user")
                return ReviewAction.REGENERATE
            enter(ReviewState.VALIDATING)
            try:
                message = validate(decision.text, classification, self.config.validator)
            except ValidationError as exc:
                logger.warning("Edited message rejected: %s", exc)
                edit_error = exc
