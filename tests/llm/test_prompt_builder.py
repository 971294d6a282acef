import unittest

from commit_wizard.analysis.complexity import ComplexityScore, ComplexityTier
from commit_wizard.analysis.models import (
    ChangedFile,
    ClassificationResult,
    ExcludedFile,
    ExclusionReason,
    FileStatus,
    FilterResult,
    SignatureMatch,
)
from commit_wizard.llm.prompt_builder import (
    BODY_SYSTEM_PROMPT,
    COMPLEX_SYSTEM_PROMPT,
    SIMPLE_SYSTEM_PROMPT,
    build_prompt,
    system_prompt,
)


DIFF = "@@ -1,0 +1,1 @@\n+def login(token): ...\n"


def filter_result(truncated: bool = False, count: int = 1) -> FilterResult:
    kept = tuple(
        ChangedFile(f"src/auth{i}.py", status=FileStatus.MODIFIED, diff=DIFF) for i in range(count)
    )
    lock = ChangedFile("poetry.lock")
    return FilterResult(
        kept=kept,
        excluded=(ExcludedFile(lock, ExclusionReason.LOCK_FILE),),
        truncated=truncated,
        total_diff_lines=2 * count,
    )


AUTH = ClassificationResult(
    matches=(SignatureMatch("auth", 0.85, "feat", "auth"),),
    primary_type="feat",
    candidate_scopes=("auth",),
)
SIMPLE = ComplexityScore(1.1, ComplexityTier.SIMPLE)


class TestBuildPrompt(unittest.TestCase):
    def test_sections(self) -> None:
        prompt = build_prompt(filter_result(), AUTH, SIMPLE)
        self.assertIn("COMPLEXITY: 1.1/5.0 (simple)", prompt)
        self.assertIn("SINGLE LINE", prompt)
        self.assertIn("- auth: authentication or authorization logic changed (confidence 0.85)", prompt)
        self.assertIn("SUGGESTED TYPE: feat", prompt)
        self.assertIn("CANDIDATE SCOPES: auth", prompt)
        self.assertIn("ALLOWED TYPES: feat, fix, docs", prompt)
        self.assertIn("- src/auth0.py (modified)", prompt)
        self.assertIn("Not shown: poetry.lock (LockFile)", prompt)
        self.assertIn("### modified src/auth0.py\n@@ -1,0 +1,1 @@\n+def login(token): ...", prompt)
        self.assertIn("FORMAT RULES:", prompt)
        self.assertNotIn("truncated", prompt)
        self.assertNotIn("REJECTED", prompt)

    def test_body_requirement_and_truncation(self) -> None:
        score = ComplexityScore(3.2, ComplexityTier.COMPLEX, requires_body=True)
        prompt = build_prompt(filter_result(truncated=True), ClassificationResult.empty(), score)
        self.assertIn("BODY REQUIRED", prompt)
        self.assertIn("DETECTED PATTERNS:\n- none", prompt)
        self.assertIn("SUGGESTED TYPE: chore", prompt)
        self.assertIn("CANDIDATE SCOPES: none", prompt)
        self.assertIn("(truncated to fit the analysis budget)", prompt)

    def test_long_file_lists_are_shortened(self) -> None:
        prompt = build_prompt(filter_result(count=12), AUTH, SIMPLE)
        self.assertIn("- src/auth9.py (modified)", prompt)
        self.assertNotIn("- src/auth10.py (modified)", prompt)
        self.assertIn("... and 2 more files", prompt)

    def test_feedback_is_appended(self) -> None:
        prompt = build_prompt(filter_result(), AUTH, SIMPLE, feedback="type: unknown commit type 'feature'")
        self.assertTrue(
            prompt.rstrip().endswith(
                "YOUR PREVIOUS REPLY WAS REJECTED:\n"
                "type: unknown commit type 'feature'\n"
                "Fix this problem and answer again with the corrected message only."
            )
        )


class TestSystemPrompt(unittest.TestCase):
    def test_prompt_per_tier(self) -> None:
        self.assertEqual(system_prompt(SIMPLE), SIMPLE_SYSTEM_PROMPT)
        moderate = ComplexityScore(2.0, ComplexityTier.MODERATE, requires_body=True)
        self.assertEqual(system_prompt(moderate), BODY_SYSTEM_PROMPT)
        simple_with_body = ComplexityScore(1.3, ComplexityTier.SIMPLE, requires_body=True)
        self.assertEqual(system_prompt(simple_with_body), BODY_SYSTEM_PROMPT)
        complex_ = ComplexityScore(4.0, ComplexityTier.COMPLEX, requires_body=True)
        self.assertEqual(system_prompt(complex_), COMPLEX_SYSTEM_PROMPT)


if __name__ == "__main__":
    unittest.main()
