"""
Tests for the voice guide instruction builder.
"""
from datetime import datetime, timedelta, timezone

from lifeplan.instructions import (
    CLARIFY_ACTION,
    STYLE_RULES,
    build_instructions,
    recent_conversation,
    summarize_completed,
)
from lifeplan.models import AnswerStatus, LifePlanState, Progress, Role
from lifeplan.progress import compute_progress
from lifeplan.store import append_transcript, set_answer


def _state(catalog) -> LifePlanState:
    return LifePlanState.fresh("alice", catalog)


def test_opening_turn_asks_first_question(catalog):
    state = _state(catalog)
    text = build_instructions(state, compute_progress(state, catalog), catalog)

    assert STYLE_RULES in text
    assert "Status: IN PROGRESS. Required complete: 0/2." in text
    assert "No conversation yet" in text
    assert "None yet." in text
    assert catalog.get("Q1").prompt in text
    assert "Follow-up hints (use at most ONE):" in text
    assert "What feels most urgent?" in text
    assert "confirm if they'd like to update it" in text


def test_style_rules_cover_conversation_contract():
    rules = STYLE_RULES.lower()
    assert "one question at a time" in rules
    assert "fill" in rules and "form" in rules
    assert "off-topic" in rules
    assert "therapy" in rules
    assert "already shared" in rules
    assert "short" in rules


def test_done_state_wraps_up_without_prompt(catalog):
    state = _state(catalog)
    set_answer(state, "Q1", AnswerStatus.COMPLETE, "clarity", confidence=0.9)
    set_answer(state, "Q2", AnswerStatus.COMPLETE, "calmer days", confidence=0.9)
    progress = compute_progress(state, catalog)

    text = build_instructions(state, progress, catalog)

    assert "Status: COMPLETE" in text
    assert "Wrap up" in text
    assert "stop prompting" in text
    for q in catalog:
        assert q.prompt not in text


def test_done_wins_over_current_question(catalog):
    state = _state(catalog)
    progress = Progress(
        current_question=catalog.get("Q3"),
        done=True,
        required_complete_count=2,
        required_total_count=2,
    )

    text = build_instructions(state, progress, catalog)

    assert catalog.get("Q3").prompt not in text
    assert "Wrap up" in text


def test_no_current_question_falls_back_to_clarifying(catalog):
    state = _state(catalog)
    progress = Progress(current_question=None, done=False, required_complete_count=0, required_total_count=2)

    text = build_instructions(state, progress, catalog)

    assert CLARIFY_ACTION in text


def test_insight_precedes_question(catalog):
    state = _state(catalog)
    text = build_instructions(state, compute_progress(state, catalog), catalog, insight="Small steps count.")

    assert "Small steps count." in text
    assert text.index("Small steps count.") < text.index(catalog.get("Q1").prompt)


def test_question_without_hints_has_no_hint_block(catalog):
    state = _state(catalog)
    set_answer(state, "Q1", AnswerStatus.COMPLETE, "clarity", confidence=0.9)

    text = build_instructions(state, compute_progress(state, catalog), catalog)

    assert catalog.get("Q2").prompt in text
    assert "Follow-up hints" not in text


def test_history_keeps_last_ten_with_roles(catalog):
    state = _state(catalog)
    for i in range(12):
        append_transcript(state, f"user line {i}")
    append_transcript(state, "assistant line", role=Role.ASSISTANT)

    history = recent_conversation(state)
    lines = history.split("\n")

    assert len(lines) == 10
    assert "user line 2" not in history
    assert lines[0] == "User: user line 3"
    assert lines[-1] == "You: assistant line"


def test_history_truncates_long_entries(catalog):
    state = _state(catalog)
    append_transcript(state, "a" * 400)

    history = recent_conversation(state)

    assert history == "User: " + "a" * 300 + "…"


def test_history_leaves_short_entries_alone(catalog):
    state = _state(catalog)
    append_transcript(state, "b" * 300)

    assert recent_conversation(state) == "User: " + "b" * 300


def test_highlights_most_recent_first_and_bounded(catalog):
    state = _state(catalog)
    now = datetime.now(timezone.utc)
    set_answer(state, "Q1", AnswerStatus.COMPLETE, "older answer", confidence=0.9)
    state.answers["Q1"].updated_at = now - timedelta(minutes=5)
    set_answer(state, "Q3", AnswerStatus.COMPLETE, "x" * 200, confidence=0.9)
    state.answers["Q3"].updated_at = now
    set_answer(state, "Q2", AnswerStatus.PARTIAL, "partial answer", confidence=0.9)

    summary = summarize_completed(state, catalog)
    lines = summary.split("\n")

    assert len(lines) == 2
    assert lines[0] == "- Closing: " + "x" * 140 + "…"
    assert lines[1] == "- Foundation: older answer"
    assert "partial answer" not in summary


def test_highlights_capped_at_max(catalog):
    state = _state(catalog)
    for qid in ("Q1", "Q2", "Q3"):
        set_answer(state, qid, AnswerStatus.COMPLETE, f"answer {qid}", confidence=0.9)

    assert len(summarize_completed(state, catalog, max_items=2).split("\n")) == 2
