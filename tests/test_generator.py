"""Tests for walkthrough generation and hunk correlation."""

import litellm
import pytest

from docent.diff import parse_unified_diff
from docent.generator import (
    CREATE_WALKTHROUGH_TOOL,
    REMAINING_TITLE,
    SYSTEM_PROMPT,
    GenerationError,
    WalkthroughGenerator,
    build_prompt,
)
from docent.models import Priority

DIFF = """\
--- a/auth.py
+++ b/auth.py
@@ -1,2 +1,3 @@
 import os
+import hmac
 SECRET = os.environ["SECRET"]
--- a/auth_test.py
+++ b/auth_test.py
@@ -5,1 +5,2 @@
 def test_secret():
+    assert SECRET
--- a/README.md
+++ b/README.md
@@ -1 +1 @@
-Old
+New
"""


class FakeClient:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls = []

    def call_tool(self, system_prompt, prompt, tool):
        self.calls.append((system_prompt, prompt, tool))
        if self.error is not None:
            raise self.error
        return self.response


def _make_generator(response=None, error: Exception | None = None) -> WalkthroughGenerator:
    return WalkthroughGenerator(parse_unified_diff(DIFF), FakeClient(response, error))


def _step(title: str, indices: list, priority: str = "normal") -> dict:
    return {"title": title, "summary": f"About {title}", "priority": priority, "hunk_indices": indices}


class TestPrompt:
    def test_prompt_lists_numbered_hunks(self):
        prompt = build_prompt(parse_unified_diff(DIFF))
        assert "3 hunks" in prompt
        assert "=== Hunk 2 (auth_test.py, lines 5-6) ===" in prompt

    def test_generate_sends_tool(self):
        generator = _make_generator({"steps": [_step("All", [1, 2, 3])]})
        generator.generate()
        system_prompt, _, tool = generator.client.calls[0]
        assert system_prompt == SYSTEM_PROMPT
        assert tool is CREATE_WALKTHROUGH_TOOL


class TestCorrelate:
    def test_steps_in_model_order(self):
        walkthrough = _make_generator({"steps": [
            _step("Secret handling", [1], "critical"),
            _step("Tests and docs", [2, 3], "minor"),
        ]}).generate()
        assert [s.id for s in walkthrough.steps] == ["1", "2"]
        assert [s.title for s in walkthrough.steps] == ["Secret handling", "Tests and docs"]
        assert [s.priority for s in walkthrough.steps] == [Priority.CRITICAL, Priority.MINOR]
        assert [h.file_path for h in walkthrough.steps[1].hunks] == ["auth_test.py", "README.md"]

    def test_summary_seeds_conversation(self):
        walkthrough = _make_generator({"steps": [_step("All", [1, 2, 3])]}).generate()
        assert walkthrough.steps[0].conversation.messages[0].text == "About All"

    def test_unknown_priority_is_normal(self):
        walkthrough = _make_generator({"steps": [_step("All", [1, 2, 3], "urgent")]}).generate()
        assert walkthrough.steps[0].priority is Priority.NORMAL

    def test_duplicate_index_in_step_kept_once(self):
        walkthrough = _make_generator({"steps": [_step("All", [1, 1, 2, 3])]}).generate()
        assert len(walkthrough.steps[0].hunks) == 3

    def test_unclaimed_hunks_collected(self):
        walkthrough = _make_generator({"steps": [_step("Secret handling", [1])]}).generate()
        last = walkthrough.steps[-1]
        assert last.title == REMAINING_TITLE
        assert last.priority is Priority.MINOR
        assert last.id == "2"
        assert [h.file_path for h in last.hunks] == ["auth_test.py", "README.md"]

    def test_no_remaining_step_when_all_claimed(self):
        walkthrough = _make_generator({"steps": [_step("All", [1, 2, 3])]}).generate()
        assert all(s.title != REMAINING_TITLE for s in walkthrough.steps)

    @pytest.mark.parametrize("index", [0, 4, -1, "2"])
    def test_invalid_index(self, index):
        with pytest.raises(GenerationError, match="out of bounds"):
            _make_generator({"steps": [_step("Bad", [index])]}).generate()

    def test_missing_steps(self):
        with pytest.raises(GenerationError):
            _make_generator({"walkthrough": []}).generate()

    def test_step_not_an_object(self):
        with pytest.raises(GenerationError):
            _make_generator({"steps": ["nope"]}).generate()

    def test_empty_steps_get_remaining_step(self):
        walkthrough = _make_generator({"steps": []}).generate()
        assert [s.title for s in walkthrough.steps] == [REMAINING_TITLE]


class TestFailures:
    def test_unparseable_response(self):
        with pytest.raises(GenerationError, match="could not parse"):
            _make_generator(error=ValueError("response contains no JSON object")).generate()

    def test_provider_error(self):
        error = litellm.exceptions.AuthenticationError("bad key", llm_provider="anthropic", model="claude")
        with pytest.raises(GenerationError, match="authentication failed"):
            _make_generator(error=error).generate()

    def test_other_error(self):
        with pytest.raises(GenerationError, match="model request failed"):
            _make_generator(error=RuntimeError("claude exited with code 1")).generate()
