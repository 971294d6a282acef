import unittest

from commit_wizard.analysis.change_filter import EmptySelection, NoChanges
from commit_wizard.analysis.models import ChangedFile
from commit_wizard.config.settings import ModelSettings, PipelineConfig
from commit_wizard.llm.prompt_builder import SIMPLE_SYSTEM_PROMPT
from commit_wizard.llm.provider import ExternalProviderError
from commit_wizard.message.commit_message import ValidationError
from commit_wizard.review.orchestrator import (
    ReviewAction,
    ReviewDecision,
    ReviewOrchestrator,
    ReviewState,
)
from commit_wizard.vcs.git_client import GitError


AUTH_DIFF = (
    "diff --git a/src/auth.rs b/src/auth.rs\n"
    "--- a/src/auth.rs\n"
    "+++ b/src/auth.rs\n"
    "@@ -1,0 +1,3 @@\n"
    "+pub fn authenticate(token: &str) -> bool {\n"
    "+    session::verify(token)\n"
    "+}\n"
)


class FakeSource:
    def __init__(self, files=None, error=None):
        self.files = files if files is not None else [ChangedFile("src/auth.rs", diff=AUTH_DIFF)]
        self.error = error

    def get_changes(self):
        if self.error is not None:
            raise self.error
        return list(self.files)


class FakeModel:
    """Returns scripted replies; an exception in the script is raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def generate(self, prompt, model=None, system=None):
        self.calls.append({"prompt": prompt, "model": model, "system": system})
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class ScriptedReviewer:
    def __init__(self, *decisions):
        self.decisions = list(decisions)
        self.seen = []

    def __call__(self, message, edit_error):
        self.seen.append((message, edit_error))
        decision = self.decisions.pop(0)
        if isinstance(decision, BaseException):
            raise decision
        return decision


def run(model, source=None, reviewer=None, **config):
    orchestrator = ReviewOrchestrator(
        PipelineConfig(**config), source or FakeSource(), model, reviewer=reviewer
    )
    return orchestrator.run()


class TestCollecting(unittest.TestCase):
    def test_no_changes_aborts_without_calling_model(self) -> None:
        model = FakeModel()
        outcome = run(model, FakeSource(files=[]))
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertIsInstance(outcome.error, NoChanges)
        self.assertEqual(outcome.history, [ReviewState.COLLECTING, ReviewState.ABORTED])
        self.assertEqual(model.calls, [])
        self.assertFalse(outcome.cancelled)

    def test_everything_excluded_aborts(self) -> None:
        model = FakeModel()
        outcome = run(model, FakeSource(files=[ChangedFile("Cargo.lock", diff="+x\n")]))
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertIsInstance(outcome.error, EmptySelection)
        self.assertEqual(model.calls, [])

    def test_git_errors_propagate(self) -> None:
        with self.assertRaises(GitError):
            run(FakeModel(), FakeSource(error=GitError("fatal: not a git repository")))


class TestGeneration(unittest.TestCase):
    def test_first_valid_reply_is_ready(self) -> None:
        model = FakeModel("feat: add token login")
        outcome = run(model)

        self.assertEqual(outcome.state, ReviewState.READY)
        self.assertEqual(outcome.message.render(), "feat(auth): add token login\n")
        self.assertIsNone(outcome.error)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(
            outcome.history,
            [
                ReviewState.COLLECTING,
                ReviewState.CLASSIFYING,
                ReviewState.AWAITING_MODEL,
                ReviewState.VALIDATING,
                ReviewState.READY,
            ],
        )
        self.assertEqual(outcome.filter_result.kept_paths, ["src/auth.rs"])
        self.assertEqual(outcome.classification.primary_type, "feat")
        self.assertEqual(model.calls[0]["model"], "llama3.2")
        self.assertEqual(model.calls[0]["system"], SIMPLE_SYSTEM_PROMPT)
        self.assertIn("CANDIDATE SCOPES: auth", model.calls[0]["prompt"])

    def test_model_override(self) -> None:
        model = FakeModel("feat(auth): add token login")
        run(model, models=ModelSettings(override="custom-model"))
        self.assertEqual(model.calls[0]["model"], "custom-model")

    def test_invalid_reply_is_regenerated_with_feedback(self) -> None:
        model = FakeModel("feature: add thing", "feat: add thing")
        outcome = run(model)

        self.assertEqual(outcome.state, ReviewState.READY)
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(outcome.history.count(ReviewState.AWAITING_MODEL), 2)
        self.assertNotIn("REJECTED", model.calls[0]["prompt"])
        retry_prompt = model.calls[1]["prompt"]
        self.assertIn("YOUR PREVIOUS REPLY WAS REJECTED:", retry_prompt)
        self.assertIn("type: unknown commit type 'feature'", retry_prompt)
        self.assertIn("Rejected reply:\nfeature: add thing", retry_prompt)

    def test_regenerations_are_capped(self) -> None:
        model = FakeModel("feature: a", "feature: b", "feature: c")
        outcome = run(model, max_regenerations=1)
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertIsInstance(outcome.error, ValidationError)
        self.assertEqual(outcome.error.rule, "type")
        self.assertEqual(outcome.attempts, 2)
        self.assertIsNone(outcome.message)

    def test_no_regeneration_when_cap_is_zero(self) -> None:
        model = FakeModel("not a commit message")
        outcome = run(model, max_regenerations=0)
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertEqual(outcome.error.rule, "header")
        self.assertEqual(len(model.calls), 1)

    def test_provider_error_aborts(self) -> None:
        model = FakeModel(ExternalProviderError("connection refused"))
        outcome = run(model)
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertIsInstance(outcome.error, ExternalProviderError)
        self.assertFalse(outcome.cancelled)

    def test_interrupt_while_waiting_cancels(self) -> None:
        outcome = run(FakeModel(KeyboardInterrupt()))
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertTrue(outcome.cancelled)

    def test_state_callback_sees_every_transition(self) -> None:
        seen = []
        orchestrator = ReviewOrchestrator(
            PipelineConfig(),
            FakeSource(),
            FakeModel("feat: add token login"),
            on_state=lambda state, outcome: seen.append((state, outcome.attempts)),
        )
        orchestrator.run()
        self.assertEqual(
            seen,
            [
                (ReviewState.COLLECTING, 0),
                (ReviewState.CLASSIFYING, 0),
                (ReviewState.AWAITING_MODEL, 0),
                (ReviewState.VALIDATING, 1),
                (ReviewState.READY, 1),
            ],
        )


class TestReview(unittest.TestCase):
    def test_accept(self) -> None:
        reviewer = ScriptedReviewer(ReviewDecision(ReviewAction.ACCEPT))
        outcome = run(FakeModel("feat: add token login"), reviewer=reviewer)
        self.assertEqual(outcome.state, ReviewState.READY)
        self.assertEqual(outcome.message.header, "feat(auth): add token login")
        self.assertIsNone(reviewer.seen[0][1])

    def test_cancel(self) -> None:
        reviewer = ScriptedReviewer(ReviewDecision(ReviewAction.CANCEL))
        outcome = run(FakeModel("feat: add token login"), reviewer=reviewer)
        self.assertEqual(outcome.state, ReviewState.ABORTED)
        self.assertTrue(outcome.cancelled)
        self.assertIsNone(outcome.message)

    def test_interrupt_during_review_cancels(self) -> None:
        reviewer = ScriptedReviewer(KeyboardInterrupt())
        outcome = run(FakeModel("feat: add token login"), reviewer=reviewer)
        self.assertTrue(outcome.cancelled)

    def test_valid_edit_is_accepted(self) -> None:
        reviewer = ScriptedReviewer(
            ReviewDecision(ReviewAction.EDIT, "fix(auth): reject expired tokens"),
            ReviewDecision(ReviewAction.ACCEPT),
        )
        outcome = run(FakeModel("feat: add token login"), reviewer=reviewer)
        self.assertEqual(outcome.state, ReviewState.READY)
        self.assertEqual(outcome.message.header, "fix(auth): reject expired tokens")
        self.assertEqual(reviewer.seen[1][0].header, "fix(auth): reject expired tokens")

    def test_invalid_edit_is_reported_and_original_kept(self) -> None:
        reviewer = ScriptedReviewer(
            ReviewDecision(ReviewAction.EDIT, "feature: something"),
            ReviewDecision(ReviewAction.ACCEPT),
        )
        outcome = run(FakeModel("feat: add token login"), reviewer=reviewer)
        self.assertEqual(outcome.state, ReviewState.READY)
        self.assertEqual(outcome.message.header, "feat(auth): add token login")
        message, edit_error = reviewer.seen[1]
        self.assertEqual(message.header, "feat(auth): add token login")
        self.assertEqual(edit_error.rule, "type")

    def test_user_regenerations_are_not_capped(self) -> None:
        reviewer = ScriptedReviewer(
            ReviewDecision(ReviewAction.REGENERATE),
            ReviewDecision(ReviewAction.REGENERATE),
            ReviewDecision(ReviewAction.ACCEPT),
        )
        model = FakeModel("feat: add token login", "feat: add login", "feat: support token login")
        outcome = run(model, reviewer=reviewer, max_regenerations=0)
        self.assertEqual(outcome.state, ReviewState.READY)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(outcome.message.description, "support token login")


if __name__ == "__main__":
    unittest.main()
