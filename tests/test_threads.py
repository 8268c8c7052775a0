"""Tests for branch threads and closing comments."""

import pytest

from docent.mock_walkthrough import mock_walkthrough
from docent.models import Role
from docent.threads import NoActiveThread, ThreadAlreadyOpen, ThreadManager


def _make_manager() -> ThreadManager:
    return ThreadManager(mock_walkthrough())


class TestOpenBranch:
    def test_open_creates_branch_on_step(self):
        manager = _make_manager()
        thread = manager.open_branch("2", restore_point="saved")
        step = manager.walkthrough.step_by_id("2")
        assert step.branches == [thread]
        assert step.thread is thread
        assert manager.active.step_id == "2"
        assert manager.active_thread is thread

    def test_second_open_rejected_and_first_untouched(self):
        manager = _make_manager()
        first = manager.open_branch("1")
        with pytest.raises(ThreadAlreadyOpen):
            manager.open_branch("3")
        assert manager.active_thread is first
        assert manager.walkthrough.step_by_id("3").branches == []

    def test_unknown_step(self):
        manager = _make_manager()
        with pytest.raises(KeyError):
            manager.open_branch("99")
        assert manager.active is None


class TestMessages:
    def test_messages_go_to_main_conversation_without_branch(self):
        manager = _make_manager()
        message = manager.post_message(Role.USER, "why?", "1")
        conversation = manager.walkthrough.step_by_id("1").conversation
        assert conversation.last_message is message

    def test_messages_go_to_open_branch(self):
        manager = _make_manager()
        thread = manager.open_branch("1")
        manager.post_message(Role.USER, "side question", "1")
        assert [m.text for m in thread.messages] == ["side question"]
        main = manager.walkthrough.step_by_id("1").conversation
        assert all(m.text != "side question" for m in main.messages)

    def test_other_steps_use_their_own_conversation(self):
        manager = _make_manager()
        manager.open_branch("1")
        assert manager.thread_for("2") is manager.walkthrough.step_by_id("2").conversation


class TestCloseBranch:
    def test_close_returns_restore_point(self):
        manager = _make_manager()
        manager.open_branch("1", restore_point={"scroll": 3})
        assert manager.close_branch() == {"scroll": 3}
        assert manager.active is None

    def test_comment_recorded_on_thread_and_step(self):
        manager = _make_manager()
        thread = manager.open_branch("2")
        manager.close_branch("  Needs a test for expiry.  ")
        step = manager.walkthrough.step_by_id("2")
        assert thread.recorded_comment == "Needs a test for expiry."
        assert step.recorded_comment == "Needs a test for expiry."
        assert not thread.active
        assert step.thread is None

    def test_blank_comment_not_recorded(self):
        manager = _make_manager()
        thread = manager.open_branch("2")
        manager.close_branch("   ")
        assert thread.recorded_comment is None
        assert manager.walkthrough.step_by_id("2").recorded_comment is None

    def test_close_without_branch(self):
        with pytest.raises(NoActiveThread):
            _make_manager().close_branch("text")

    def test_reopen_after_close(self):
        manager = _make_manager()
        manager.open_branch("1")
        manager.close_branch()
        manager.open_branch("1")
        assert len(manager.walkthrough.step_by_id("1").branches) == 2
