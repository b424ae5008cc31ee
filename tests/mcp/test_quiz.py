"""Tests for the quiz protocol tool and prompt text."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from stepwise.mcp.tools.quiz import (
    QUESTION_TYPES,
    RetrieveQuizInstructionsParams,
    build_quiz_instructions,
    find_topic_text,
    quiz_me_text,
    retrieve_quiz_instructions_handler,
)


class TestQuizParams:
    def test_aliases_and_trimming(self) -> None:
        params = RetrieveQuizInstructionsParams.model_validate(
            {"topic": "  closures ", "learnerGoal": "interview prep", "questionCount": 5}
        )

        assert (params.topic, params.learner_goal, params.question_count) == (
            "closures",
            "interview prep",
            5,
        )

    @pytest.mark.parametrize("count", [0, 21])
    def test_question_count_bounds(self, count: int) -> None:
        with pytest.raises(ValidationError):
            RetrieveQuizInstructionsParams.model_validate({"questionCount": count})


class TestBuildQuizInstructions:
    def test_defaults(self) -> None:
        data = build_quiz_instructions(RetrieveQuizInstructionsParams())

        assert data["tool"] == "retrieve_quiz_instructions"
        assert data["topic"] is None
        assert data["learnerGoal"] is None
        assert data["targetQuestionCount"] == 8
        assert "Topic: (ask the learner)" in data["instructionsMarkdown"]
        assert "Target: 8 questions" in data["instructionsMarkdown"]
        assert [q["id"] for q in data["questionTypes"]] == [q.id for q in QUESTION_TYPES]
        assert data["checklist"][0] == "Ask exactly one question at a time."
        assert len(data["closingSteps"]) == 3

    def test_blank_topic_treated_as_missing(self) -> None:
        data = build_quiz_instructions(RetrieveQuizInstructionsParams.model_validate({"topic": "   "}))

        assert data["topic"] is None

    @pytest.mark.asyncio
    async def test_handler_adds_markdown(self) -> None:
        params = RetrieveQuizInstructionsParams.model_validate(
            {"topic": "closures", "questionCount": 3}
        )

        data = await retrieve_quiz_instructions_handler(params)

        assert data["markdown"].startswith("## Quiz protocol")
        assert "topic: `closures`" in data["markdown"]
        assert "learnerGoal: _unspecified_" in data["markdown"]
        assert "targetQuestionCount: `3`" in data["markdown"]


class TestPromptText:
    def test_quiz_me_defaults(self) -> None:
        text = quiz_me_text()

        assert "Topic: (ask me)" in text
        assert "Target question count: (default)" in text
        assert "- exerciseNumber: (any)" in text

    def test_quiz_me_scope(self) -> None:
        text = quiz_me_text("hooks", 4, "react-hooks", 2, 1)

        assert "Topic: hooks" in text
        assert "Target question count: 4" in text
        assert "- workshop: react-hooks" in text
        assert "- exerciseNumber: 2" in text
        assert "- stepNumber: 1" in text

    def test_find_topic(self) -> None:
        text = find_topic_text("oauth pkce", limit=5)

        assert "Query: oauth pkce" in text
        assert "Workshop scope: (any)" in text
        assert "Limit: 5" in text
        assert "search_topic_context" in text
