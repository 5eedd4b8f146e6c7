import contextlib

import pytest
from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from hospitality_ledger.models import TransactionCategory
from hospitality_ledger.term_ui import (
    prompt_confirm_match,
    prompt_duplicate_decision,
    prompt_yes_no,
    select_category,
)

CATEGORIES = [c.value for c in TransactionCategory]


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


@pytest.mark.parametrize(
    ("text", "expected"),
    [("y\r", True), ("include\r", True), ("N\r", False), ("exclude\r", False)],
)
def test_yes_no_accepts_long_and_short_answers(text: str, expected: bool):
    with pipe_session() as (pipe, sess):
        pipe.send_text(text)
        assert prompt_yes_no("Go?", default=False, session=sess) is expected


def test_empty_answer_takes_the_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert prompt_yes_no("Go?", default=True, session=sess) is True


def test_duplicate_prompt_defaults_to_exclude():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert prompt_duplicate_decision("2026-03-02 WOOLWORTHS 350.00 ZAR", session=sess) is False


def test_match_prompt_defaults_to_accept():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert prompt_confirm_match("LS-1001 -> LEKKESLAAP PAYOUT", session=sess) is True


def test_ctrl_c_cancels_with_none():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x03")
        assert prompt_confirm_match("LS-1001", session=sess) is None


def test_select_category_accepts_default_with_enter():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert select_category(CATEGORIES, default="OTHER", session=sess) == "OTHER"


def test_select_category_change_by_typing_full_name():
    with pipe_session() as (pipe, sess):
        # Ctrl-A (home), Ctrl-K (kill to end), type the target, Enter
        pipe.send_text("\x01\x0bUTILITIES\r")
        assert select_category(CATEGORIES, default="OTHER", session=sess) == "UTILITIES"


def test_tab_completes_a_typed_prefix():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bMAI\t\r")
        assert select_category(CATEGORIES, default="OTHER", session=sess) == "MAINTENANCE"


def test_enter_commits_a_prefix_completion():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bsal\r")
        assert select_category(CATEGORIES, default="OTHER", session=sess) == "SALARIES"


def test_lowercase_answer_returns_canonical_spelling():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bcleaning\r")
        assert select_category(CATEGORIES, default="OTHER", session=sess) == "CLEANING"


def test_tab_on_empty_buffer_opens_dropdown_and_enter_accepts_first():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0b")
        pipe.send_text("\t\r")
        assert select_category(CATEGORIES, default="OTHER", session=sess) == "ACCOMMODATION"
