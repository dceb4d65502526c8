"""
Voice guide instructions.

Renders the directive the realtime voice agent receives before each turn:
style rules, current status, recent conversation, completed highlights and
exactly one next action.

Per the guide's conversation style:
- Warm, practical, short (1-3 sentences)
- One question at a time
- Never feels like filling out a form
- No therapy claims
"""

from typing import Optional

from .models import AnswerStatus, LifePlanState, Progress, Role
from .questions import Catalog

MAX_HISTORY_ENTRIES = 10
MAX_HISTORY_CHARS = 300
MAX_HIGHLIGHTS = 6
MAX_HIGHLIGHT_CHARS = 140
ELLIPSIS = "…"

STYLE_RULES = """
You are a calm, warm, practical voice guide having a real conversation, not conducting an interview.
The user should NOT feel like they are filling out a form. Do not mention questionnaires, modules, worksheets, or that you are storing anything.
Keep responses short (1-3 sentences) and ask ONE question at a time.
CRITICAL: Use the conversation history below to maintain continuity. Reference what the user has already shared to create natural transitions (e.g. 'You mentioned X earlier, building on that...' or 'That connects to something interesting...').
Do not over-paraphrase or repeat the user's words back to them. Acknowledge briefly and move forward.
When transitioning to a new topic, bridge naturally from what was just discussed. Never abruptly jump to a new question without connecting it to the flow of conversation.
If the user goes off-topic, respond naturally, capture the useful part mentally, then gently steer back to the current question.
If a user answer is thin, ask ONE follow-up question; otherwise advance to the next topic.
Avoid therapy claims. Encourage professional support if the user asks for mental health treatment advice.
""".strip()

WRAP_UP_ACTION = """
Wrap up with a brief, encouraging summary of what was created.
Ask if they want to stop here, or if they want to refine anything.
If they say they're done, say goodbye clearly and stop prompting.
""".strip()

CLARIFY_ACTION = "Ask a gentle clarifying question to identify what they want to focus on first."

ALREADY_ANSWERED_ACTION = (
    "If they already answered this earlier, smoothly confirm if they'd like to update it; "
    "otherwise move to the next topic."
)


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[:limit].strip() + ELLIPSIS
    return text


def recent_conversation(state: LifePlanState, max_entries: int = MAX_HISTORY_ENTRIES) -> str:
    if not state.transcript:
        return "No conversation yet; this is the opening turn."

    lines = []
    for entry in state.transcript[-max_entries:]:
        label = "User" if entry.role == Role.USER else "You"
        lines.append(f"{label}: {_truncate(entry.text, MAX_HISTORY_CHARS)}")
    return "\n".join(lines)


def summarize_completed(state: LifePlanState, catalog: Catalog, max_items: int = MAX_HIGHLIGHTS) -> str:
    completed = [
        a for a in state.answers.values()
        if a.status == AnswerStatus.COMPLETE and a.answer_text.strip()
    ]
    completed.sort(key=lambda a: a.updated_at.isoformat() if a.updated_at else "", reverse=True)

    if not completed:
        return "None yet."

    lines = []
    for answer in completed[:max_items]:
        question = catalog.get(answer.question_id)
        text = _truncate(answer.answer_text, MAX_HIGHLIGHT_CHARS)
        lines.append(f"- {question.module_title}: {text}" if question else f"- {text}")
    return "\n".join(lines)


def status_line(progress: Progress) -> str:
    if progress.done:
        return "Status: COMPLETE (all required areas are covered)."
    return (
        f"Status: IN PROGRESS. Required complete: "
        f"{progress.required_complete_count}/{progress.required_total_count}."
    )


def next_action(progress: Progress, insight: Optional[str] = None) -> str:
    """
    What the guide should do this turn.

    Wrap-up takes precedence over any open question once the plan is done.
    """
    if progress.done:
        return WRAP_UP_ACTION

    current = progress.current_question
    if current is None:
        return CLARIFY_ACTION

    blocks = []
    if insight:
        blocks.append(f"Optional 1-sentence insight to share before moving on:\n- {insight}")
    blocks.append(f"Ask this next question (exactly one question, conversational tone):\n- {current.prompt}")
    if current.hints:
        blocks.append("Follow-up hints (use at most ONE):\n- " + "\n- ".join(current.hints))
    blocks.append(ALREADY_ANSWERED_ACTION)
    return "\n\n".join(blocks)


def build_instructions(
    state: LifePlanState,
    progress: Progress,
    catalog: Catalog,
    insight: Optional[str] = None,
) -> str:
    """
    Build the full instruction text for the voice agent.

    Args:
        state: Current user state
        progress: Progress computed from the same state
        catalog: Question catalog (for module titles of highlights)
        insight: Optional one-time insight; the caller has already marked it used

    Returns:
        Complete instruction string
    """
    return "\n".join([
        "LIFEPLAN VOICE GUIDE INSTRUCTIONS",
        "",
        STYLE_RULES,
        "",
        status_line(progress),
        "",
        "Conversation so far (use this to maintain flow and make natural transitions):",
        recent_conversation(state),
        "",
        "Recent completed highlights (for your context only; do not read verbatim):",
        summarize_completed(state, catalog),
        "",
        "What to do now:",
        next_action(progress, insight),
    ])
