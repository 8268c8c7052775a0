"""Tests for walkthrough, step and thread models."""

import pytest

from docent.mock_walkthrough import mock_walkthrough
from docent.models import (
    Hunk,
    InvalidWalkthrough,
    OutOfRange,
    Priority,
    Role,
    Step,
    Thread,
    Walkthrough,
    WalkthroughStatus,
)


def _make_hunk(path: str = "app.py", start: int = 1, lines: int = 3) -> Hunk:
    body = "\n".join(f"+line {i}" for i in range(lines))
    return Hunk(file_path=path, start_line=start, end_line=start + lines - 1, content=f"@@ -0,0 +{start},{lines} @@\n{body}")


def _make_walkthrough(count: int = 3) -> Walkthrough:
    return Walkthrough([
        Step(id=str(i + 1), title=f"Step {i + 1}", summary=f"Summary {i + 1}", hunks=(_make_hunk(start=10 * i + 1),))
        for i in range(count)
    ])


class TestPriority:
    def test_known_labels(self):
        assert Priority.from_label("critical") is Priority.CRITICAL
        assert Priority.from_label(" Minor ") is Priority.MINOR

    def test_unknown_and_missing_labels_are_normal(self):
        assert Priority.from_label("urgent") is Priority.NORMAL
        assert Priority.from_label(None) is Priority.NORMAL
        assert Priority.from_label("") is Priority.NORMAL


class TestHunk:
    def test_rejects_start_below_one(self):
        with pytest.raises(ValueError):
            Hunk(file_path="a.py", start_line=0, end_line=1, content="@@")

    def test_rejects_end_before_start(self):
        with pytest.raises(ValueError):
            Hunk(file_path="a.py", start_line=5, end_line=4, content="@@")

    def test_line_count(self):
        assert _make_hunk(lines=4).line_count == 5  # header plus body


class TestThread:
    def test_sequence_numbers_increase(self):
        thread = Thread()
        first = thread.append(Role.USER, "hi")
        second = thread.append(Role.ASSISTANT, "hello")
        assert (first.seq, second.seq) == (1, 2)
        assert thread.last_message is second

    def test_empty_thread_has_no_last_message(self):
        assert Thread().last_message is None


class TestStep:
    def test_conversation_seeded_with_summary(self):
        step = Step(id="1", title="t", summary="Explains the change")
        assert [m.text for m in step.conversation.messages] == ["Explains the change"]
        assert step.conversation.messages[0].role is Role.ASSISTANT

    def test_no_seed_without_summary(self):
        assert Step(id="1", title="t", summary="").conversation.messages == []

    def test_file_paths_distinct_in_order(self):
        step = Step(id="1", title="t", summary="", hunks=(
            _make_hunk("b.py"), _make_hunk("a.py", 20), _make_hunk("b.py", 40),
        ))
        assert step.file_paths == ["b.py", "a.py"]

    def test_thread_is_open_branch_only(self):
        step = Step(id="1", title="t", summary="")
        assert step.thread is None
        branch = Thread()
        step.branches.append(branch)
        assert step.thread is branch
        branch.active = False
        assert step.thread is None


class TestWalkthroughConstruction:
    def test_empty_walkthrough_rejected(self):
        with pytest.raises(InvalidWalkthrough):
            Walkthrough([])

    def test_duplicate_ids_rejected(self):
        with pytest.raises(InvalidWalkthrough):
            Walkthrough([Step(id="1", title="a", summary=""), Step(id="1", title="b", summary="")])

    def test_starts_on_first_step(self):
        walkthrough = _make_walkthrough()
        assert walkthrough.current_step_index == 0
        assert walkthrough.status is WalkthroughStatus.IN_PROGRESS


class TestNavigation:
    def test_advance_stops_at_last_step(self):
        walkthrough = _make_walkthrough(3)
        for _ in range(5):
            walkthrough.advance()
        assert walkthrough.current_step_index == 2

    def test_retreat_stops_at_first_step(self):
        walkthrough = _make_walkthrough(3)
        walkthrough.advance()
        for _ in range(5):
            walkthrough.retreat()
        assert walkthrough.current_step_index == 0

    def test_jump_to(self):
        walkthrough = _make_walkthrough(3)
        walkthrough.jump_to(2)
        assert walkthrough.current_step().id == "3"

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_jump_out_of_range_leaves_state(self, index):
        walkthrough = _make_walkthrough(3)
        walkthrough.jump_to(1)
        with pytest.raises(OutOfRange):
            walkthrough.jump_to(index)
        assert walkthrough.current_step_index == 1

    def test_out_of_range_is_an_index_error(self):
        assert issubclass(OutOfRange, IndexError)

    def test_step_lookup(self):
        walkthrough = _make_walkthrough(3)
        assert walkthrough.step_by_id("2").title == "Step 2"
        assert walkthrough.index_of("3") == 2
        with pytest.raises(KeyError):
            walkthrough.step_by_id("9")


class TestCompletion:
    def test_complete_and_undo_round_trip(self):
        walkthrough = _make_walkthrough(2)
        walkthrough.mark_current_complete()
        assert walkthrough.completed_count == 1
        walkthrough.undo_current_complete()
        assert walkthrough.completed_count == 0
        assert walkthrough.current_step_index == 0

    def test_status_completed_when_all_done(self):
        walkthrough = _make_walkthrough(2)
        walkthrough.mark_current_complete()
        walkthrough.advance()
        walkthrough.mark_current_complete()
        assert walkthrough.status is WalkthroughStatus.COMPLETED

    def test_reviewed_diff_lines(self):
        walkthrough = _make_walkthrough(2)
        per_step = walkthrough.steps[0].diff_line_count
        assert walkthrough.total_diff_lines() == 2 * per_step
        walkthrough.mark_current_complete()
        assert walkthrough.reviewed_diff_lines() == per_step

    def test_steps_is_a_copy(self):
        walkthrough = _make_walkthrough(2)
        walkthrough.steps.clear()
        assert len(walkthrough) == 2


class TestMockWalkthrough:
    def test_five_steps_with_priorities(self):
        walkthrough = mock_walkthrough()
        assert [s.priority for s in walkthrough.steps] == [
            Priority.CRITICAL, Priority.CRITICAL, Priority.NORMAL, Priority.MINOR, Priority.MINOR,
        ]
        assert [s.id for s in walkthrough.steps] == ["1", "2", "3", "4", "5"]

    def test_every_step_has_hunks(self):
        assert all(step.hunks for step in mock_walkthrough().steps)
