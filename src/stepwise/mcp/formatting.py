"""Markdown renderings of tool results for chat display."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from stepwise.retrieval.ops import ContextResult, WorkshopList
from stepwise.retrieval.search import TopicSearchResult
from stepwise.retrieval.truncation import RetrievalSection

WORKSHOP_PREVIEW_LIMIT = 50


def format_bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def format_optional_cursor(cursor: str | None) -> str:
    return f"`{cursor}`" if cursor else "_none_"


def format_optional_step(step_number: int | None) -> str:
    return str(step_number) if step_number is not None else "_all steps_"


def _section_heading(index: int, section: RetrievalSection) -> str:
    source = f"\n_Source_: `{section.source_path}`" if section.source_path else ""
    return f"### {index}) {section.label}\n_kind_: `{section.kind}`{source}"


def format_sections(sections: Sequence[RetrievalSection], *, diff: bool = False) -> str:
    if not sections:
        return "_No diff sections returned._" if diff else "_No sections returned._"
    blocks = []
    for index, section in enumerate(sections, start=1):
        body = section.content.strip()
        if diff:
            rendered = f"```diff\n{body}\n```" if body else "_Empty diff._"
        else:
            rendered = body or "_Empty section content._"
        blocks.append(f"{_section_heading(index, section)}\n\n{rendered}")
    return "\n\n---\n\n".join(blocks)


def _next_section(steps: Sequence[str]) -> str:
    return f"\n\nNext:\n{format_bullets(steps)}" if steps else ""


def format_context(
    tool: str,
    result: ContextResult,
    *,
    diff: bool,
    max_chars: int | None = None,
    focus: str | None = None,
    random: bool = False,
) -> str:
    scope = [
        f"- workshop: `{result.workshop}`",
        f"- exerciseNumber: {result.exercise_number}",
        f"- stepNumber: {format_optional_step(result.step_number)}",
    ]
    if diff:
        scope.append(f"- focus: `{focus}`" if focus else "- focus: _none_")
    else:
        scope.append(f"- random: `{str(random).lower()}`")

    steps: list[str] = []
    if result.truncated and result.next_cursor:
        step_part = f", stepNumber: {result.step_number}" if result.step_number is not None else ""
        focus_part = f', focus: "{focus}"' if diff and focus else ""
        steps.append(
            f'Call `{tool}` again with {{ workshop: "{result.workshop}", '
            f"exerciseNumber: {result.exercise_number}{step_part}{focus_part}, cursor: nextCursor }}."
        )

    title = "Diff context" if diff else "Learning context"
    count_label = "diffSections" if diff else "sections"
    max_chars_label = f"`{max_chars}`" if max_chars is not None else "_default_"
    return (
        f"## {title}\n\n"
        "Scope:\n" + "\n".join(scope) + "\n\n"
        "Payload:\n"
        f"- maxChars (requested): {max_chars_label}\n"
        f"- truncated: `{str(result.truncated).lower()}`\n"
        f"- nextCursor: {format_optional_cursor(result.next_cursor)}\n"
        f"- {count_label}: **{len(result.sections)}**\n\n"
        f"{format_sections(result.sections, diff=diff)}{_next_section(steps)}"
    )


def format_workshops(result: WorkshopList, *, paginated: bool) -> str:
    preview = result.workshops[:WORKSHOP_PREVIEW_LIMIT]
    lines = []
    for w in preview:
        product = f" ({w.product})" if w.product else ""
        diffs = "yes" if w.has_diffs else "no"
        lines.append(
            f"- `{w.workshop}`: {w.title}{product} | exercises: {w.exercise_count} "
            f"| diffs: {diffs} | lastIndexedAt: {w.last_indexed_at}"
        )
    more = ""
    if len(result.workshops) > len(preview):
        more = (
            f"\n\n_...and {len(result.workshops) - len(preview)} more. "
            "See the structured output for the full list._"
        )
    steps: list[str] = []
    if paginated:
        if result.next_cursor:
            steps.append(
                "Call `list_workshops` again with { all: false, cursor: nextCursor } "
                "to fetch the next page."
            )
        else:
            steps.append("No nextCursor returned; this is the last page.")
    return (
        "## Indexed workshops\n\n"
        f"Returned: **{len(result.workshops)}**\n"
        f"Next cursor: {format_optional_cursor(result.next_cursor)}\n\n"
        + ("\n".join(lines) if lines else "_No workshops indexed._")
        + more
        + _next_section(steps)
    )


def format_topic_search(result: TopicSearchResult) -> str:
    warnings = f"\n\n### Warnings\n{format_bullets(result.warnings)}" if result.warnings else ""
    if result.matches:
        blocks = []
        for index, match in enumerate(result.matches, start=1):
            scope = [f"`{match.workshop}`"]
            if match.exercise_number is not None:
                scope.append(f"exercise {match.exercise_number}")
            if match.step_number is not None:
                scope.append(f"step {match.step_number}")
            source = f"\n_Source_: `{match.source_path}`" if match.source_path else ""
            vector = f"\n_vectorId_: `{match.vector_id}`" if match.vector_id else ""
            blocks.append(
                f"#### {index}) {' '.join(scope)} (score: {match.score:.3f}){vector}{source}\n\n"
                f"{match.chunk.strip()}"
            )
        matches = "\n\n### Matches\n" + "\n".join(blocks)
        steps = [
            "Pick a match and retrieve full context with retrieve_learning_context or "
            "retrieve_diff_context using its workshop/exercise/step scope."
        ]
    else:
        matches = "\n\n_No matches returned._"
        steps = []
    return (
        "## Topic search\n\n"
        f"**Query**: `{result.query}`\n"
        f"**Mode**: `{result.mode}`\n"
        f"**Vector search available**: `{str(result.vector_search_available).lower()}`\n"
        f"**Matches**: **{len(result.matches)}** (limit: {result.limit})"
        f"{warnings}{matches}{_next_section(steps)}"
    )


def format_quiz_instructions(data: dict[str, Any]) -> str:
    topic = f"`{data['topic']}`" if data["topic"] else "_ask the learner_"
    goal = f"`{data['learnerGoal']}`" if data["learnerGoal"] else "_unspecified_"
    steps = [
        "Gather source material with retrieve_learning_context or search_topic_context.",
        "Ask one question at a time and follow the protocol.",
    ]
    return (
        "## Quiz protocol\n\n"
        f"topic: {topic}\n"
        f"learnerGoal: {goal}\n"
        f"targetQuestionCount: `{data['targetQuestionCount']}`\n\n"
        f"{data['instructionsMarkdown']}"
        f"{_next_section(steps)}"
    )
