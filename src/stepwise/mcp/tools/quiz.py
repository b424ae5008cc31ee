"""Quiz MCP surface - the quiz protocol tool and the conversation-starter prompts.

The protocol is static text; nothing here touches the index. Agents call
``retrieve_quiz_instructions`` first and then pull source material with the
workshop tools.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import Field

from stepwise.config.constants import (
    QUIZ_DEFAULT_QUESTION_COUNT,
    QUIZ_MAX_QUESTION_COUNT,
    TOPIC_SEARCH_MAX_LIMIT,
)
from stepwise.mcp.formatting import format_quiz_instructions
from stepwise.mcp.server import run_tool
from stepwise.mcp.tools.workshops import ToolParams

if TYPE_CHECKING:
    from fastmcp import FastMCP

TOOL_NAMES = ("retrieve_quiz_instructions",)
PROMPT_NAMES = ("quiz_me", "find_where_topic_is_taught")

QUIZ_HINTS = (
    "Every argument is optional; retry with fewer inputs.",
    f"questionCount must be between 1 and {QUIZ_MAX_QUESTION_COUNT}.",
)


@dataclass(frozen=True, slots=True)
class QuestionType:
    id: str
    label: str
    prompt_template: str
    listen_for: tuple[str, ...]
    follow_ups: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "promptTemplate": self.prompt_template,
            "whatToListenFor": list(self.listen_for),
            "followUps": list(self.follow_ups),
        }


QUESTION_TYPES = (
    QuestionType(
        "free-recall",
        "Free recall",
        "In your own words, what is <concept> and why does it matter?",
        ("an accurate definition, not a synonym", "the key constraints", "a concrete example"),
        ("What do people often get wrong about it?", "What changes if <constraint> is different?"),
    ),
    QuestionType(
        "apply-to-scenario",
        "Apply to a scenario",
        "Given <scenario>, what would you do and why? What could go wrong?",
        ("picks a suitable approach", "explains the tradeoffs", "names failure modes"),
        ("How would you test that it works?", "When would the simplest alternative be better?"),
    ),
    QuestionType(
        "compare-contrast",
        "Compare and contrast",
        "Compare <A> with <B>. When is each the better choice?",
        ("real differences rather than surface ones", "situational guidance", "tradeoffs"),
        ("Give a case where your choice would be wrong.", "What if the requirements change?"),
    ),
    QuestionType(
        "debug-explain",
        "Debug and explain",
        "You see <symptom>. What are two or three plausible causes and how would you narrow them down?",
        ("several hypotheses", "concrete checks that tell them apart", "converges on evidence"),
        ("What would you log or inspect first?", "What is the smallest reproduction you would try?"),
    ),
    QuestionType(
        "teach-back",
        "Teach-back",
        "Explain this concept to a peer in sixty seconds, with an analogy and one example.",
        ("a clear mental model", "no missing steps", "an analogy that does not mislead"),
        ("Which part would they misunderstand first?", "How would you correct that?"),
    ),
)

CHECKLIST = (
    "Ask exactly one question at a time.",
    "Wait for an attempt before revealing the answer.",
    "Start with short-answer recall; use multiple choice only as a fallback.",
    "Ask why or how to check understanding, not just recall.",
    "Give specific feedback right after each attempt.",
    "Come back to missed concepts later in the session.",
)

CLOSING_STEPS = (
    "Ask the learner for their three most important takeaways.",
    "Name the one to three gaps that showed up during the quiz.",
    "Suggest two or three practice prompts to revisit tomorrow.",
)


class RetrieveQuizInstructionsParams(ToolParams):
    topic: str | None = None
    learner_goal: str | None = Field(None, alias="learnerGoal")
    question_count: int | None = Field(None, ge=1, le=QUIZ_MAX_QUESTION_COUNT, alias="questionCount")


def _protocol_markdown(topic: str | None, learner_goal: str | None, question_count: int) -> str:
    return "\n".join(
        [
            "Quiz facilitation protocol",
            "",
            f"Topic: {topic}" if topic else "Topic: (ask the learner)",
            f"Goal: {learner_goal}" if learner_goal else "Goal: check and reinforce understanding",
            f"Target: {question_count} questions",
            "",
            "How to run the quiz",
            "1) Agree on the scope and on what a good answer looks like.",
            "2) Ask one question, then wait for the full answer before going on.",
            "3) Lead with free-recall questions; fall back to multiple choice only when stuck.",
            '4) Ask "why?" or "how do you know?" after each answer.',
            "5) Give feedback straight after the attempt:",
            "   - Correct: confirm it and add one nuance or edge case.",
            "   - Partly correct: say what is missing and ask one focused follow-up.",
            "   - Incorrect: give a small hint and let them try again before revealing the answer.",
            "6) Make questions easier when they struggle and harder when they are fluent.",
            "7) Near the end, revisit one or two earlier questions, especially missed ones.",
            "8) Close by listing gaps and having the learner restate the corrected ideas.",
        ]
    )


def build_quiz_instructions(params: RetrieveQuizInstructionsParams) -> dict[str, Any]:
    """Structured quiz protocol; blank strings count as not provided."""
    topic = params.topic or None
    learner_goal = params.learner_goal or None
    question_count = params.question_count or QUIZ_DEFAULT_QUESTION_COUNT
    return {
        "tool": "retrieve_quiz_instructions",
        "version": "1",
        "topic": topic,
        "learnerGoal": learner_goal,
        "targetQuestionCount": question_count,
        "instructionsMarkdown": _protocol_markdown(topic, learner_goal, question_count),
        "checklist": list(CHECKLIST),
        "questionTypes": [question_type.to_dict() for question_type in QUESTION_TYPES],
        "closingSteps": list(CLOSING_STEPS),
    }


async def retrieve_quiz_instructions_handler(params: RetrieveQuizInstructionsParams) -> dict[str, Any]:
    data = build_quiz_instructions(params)
    data["markdown"] = format_quiz_instructions(data)
    return data


def quiz_me_text(
    topic: str | None = None,
    question_count: int | None = None,
    workshop: str | None = None,
    exercise_number: int | None = None,
    step_number: int | None = None,
) -> str:
    def shown(value: object) -> str:
        return "(any)" if value is None else str(value)

    return "\n".join(
        [
            "I want to be quizzed. Please run a quiz session with me.",
            "",
            f"Topic: {topic}" if topic else "Topic: (ask me)",
            f"Target question count: {question_count if question_count else '(default)'}",
            "",
            "Preferred scope (optional):",
            f"- workshop: {shown(workshop)}",
            f"- exerciseNumber: {shown(exercise_number)}",
            f"- stepNumber: {shown(step_number)}",
            "",
            "Instructions:",
            "1) Call `retrieve_quiz_instructions` first, passing `topic` and `questionCount` if given.",
            "2) Fetch material with `retrieve_learning_context`, using the scope above or `random: true`.",
            "3) Ask one question at a time, wait for my attempt, then give feedback.",
            "4) If the context is truncated, call again with `cursor: nextCursor`.",
        ]
    )


def find_topic_text(query: str, workshop: str | None = None, limit: int | None = None) -> str:
    return "\n".join(
        [
            "I want to find where a topic is taught in the indexed workshops.",
            "",
            f"Query: {query}",
            f"Workshop scope: {workshop or '(any)'}",
            f"Limit: {limit if limit else '(default)'}",
            "",
            "Instructions:",
            "1) Call `search_topic_context` with the query and any filters.",
            "2) Take the best match and call `retrieve_learning_context` with its scope.",
            "3) Summarize where the topic is taught and what to read next.",
        ]
    )


def register_tools(mcp: FastMCP) -> None:
    """Register the quiz tool and prompts with FastMCP server."""

    @mcp.tool
    async def retrieve_quiz_instructions(
        topic: str | None = Field(None, description="Quiz topic label."),
        learnerGoal: str | None = Field(None, description="What the learner wants to get out of the quiz."),  # noqa: N803
        questionCount: int | None = Field(  # noqa: N803
            None,
            description=f"Target number of questions (1-{QUIZ_MAX_QUESTION_COUNT}, "
            f"default {QUIZ_DEFAULT_QUESTION_COUNT}).",
        ),
    ) -> dict[str, Any]:
        """Return a quiz protocol: one question at a time, immediate feedback, spaced revisits.

        Use when the learner asks to be quizzed, then gather material with
        retrieve_learning_context or search_topic_context.
        """
        args = {
            k: v
            for k, v in {"topic": topic, "learnerGoal": learnerGoal, "questionCount": questionCount}.items()
            if v is not None
        }

        async def call() -> dict[str, Any]:
            params = RetrieveQuizInstructionsParams.model_validate(args)
            return await retrieve_quiz_instructions_handler(params)

        return await run_tool("retrieve_quiz_instructions", call, params=args, hints=QUIZ_HINTS)

    @mcp.prompt
    def quiz_me(
        topic: str | None = None,
        questionCount: int | None = Field(  # noqa: N803
            None, description=f"Target number of questions (1-{QUIZ_MAX_QUESTION_COUNT})."
        ),
        workshop: str | None = Field(None, description="Workshop slug from list_workshops."),
        exerciseNumber: int | None = None,  # noqa: N803
        stepNumber: int | None = None,  # noqa: N803
    ) -> str:
        """Start a quiz session that uses the retrieval tools and the quiz protocol."""
        return quiz_me_text(topic, questionCount, workshop, exerciseNumber, stepNumber)

    @mcp.prompt
    def find_where_topic_is_taught(
        query: str = Field(..., description='Search query of at least 3 characters, e.g. "oauth pkce".'),
        workshop: str | None = None,
        limit: int | None = Field(None, description=f"Max matches (1-{TOPIC_SEARCH_MAX_LIMIT})."),
    ) -> str:
        """Locate where a topic is taught, then read the matching scope."""
        return find_topic_text(query, workshop, limit)
