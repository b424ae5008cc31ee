"""Tests for RetrievalService over indexed demo workshops."""

from __future__ import annotations

import pytest
import pytest_asyncio

from stepwise.config.models import RetrievalConfig
from stepwise.core.pagination import OffsetCursor
from stepwise.index import ReindexCoordinator
from stepwise.index._internal.db import Database
from stepwise.retrieval.errors import ContextNotFoundError, ScopeNotFoundError
from stepwise.retrieval.ops import RetrievalService, filter_by_focus
from stepwise.retrieval.truncation import RetrievalSection


@pytest_asyncio.fixture
async def service(indexed_db: Database) -> RetrievalService:
    return RetrievalService(indexed_db)


@pytest_asyncio.fixture
async def many_workshops(temp_db: Database, source_client_factory, demo_files) -> Database:
    client = source_client_factory({f"w{i:02d}": dict(demo_files) for i in range(5)})
    await ReindexCoordinator(temp_db, client).reindex(batch_size=5)
    return temp_db


class TestListWorkshops:
    @pytest.mark.asyncio
    async def test_demo_summary(self, service: RetrievalService) -> None:
        result = service.list_workshops()
        (summary,) = result.workshops

        assert result.next_cursor is None
        data = summary.to_dict()
        assert data["workshop"] == "demo"
        assert data["title"] == "Demo Workshop"
        assert data["product"] == "epicreact.dev"
        assert data["exerciseCount"] == 1
        assert data["hasDiffs"] is True
        assert data["lastIndexedAt"].endswith("Z")

    @pytest.mark.asyncio
    async def test_filters(self, service: RetrievalService) -> None:
        assert service.list_workshops(product="epicweb.dev").workshops == []
        assert service.list_workshops(has_diffs=False).workshops == []
        assert len(service.list_workshops(product="epicreact.dev", has_diffs=True).workshops) == 1

    @pytest.mark.asyncio
    async def test_pagination(self, many_workshops: Database) -> None:
        service = RetrievalService(many_workshops)

        first = service.list_workshops(limit=2)
        assert [w.workshop for w in first.workshops] == ["w00", "w01"]
        assert OffsetCursor.from_string(first.next_cursor).offset == 2

        second = service.list_workshops(limit=2, cursor=first.next_cursor)
        assert [w.workshop for w in second.workshops] == ["w02", "w03"]

        last = service.list_workshops(limit=2, cursor=second.next_cursor)
        assert [w.workshop for w in last.workshops] == ["w04"]
        assert last.next_cursor is None

    @pytest.mark.asyncio
    async def test_list_all_walks_pages(self, many_workshops: Database) -> None:
        result = RetrievalService(many_workshops).list_all_workshops(limit=2)

        assert [w.workshop for w in result.workshops] == ["w00", "w01", "w02", "w03", "w04"]
        assert result.next_cursor is None

    @pytest.mark.asyncio
    async def test_default_limit_from_config(self, many_workshops: Database) -> None:
        service = RetrievalService(many_workshops, RetrievalConfig(list_limit_default=3))

        assert len(service.list_workshops().workshops) == 3


class TestRetrieveLearningContext:
    @pytest.mark.asyncio
    async def test_step_scope(self, service: RetrievalService) -> None:
        result = service.retrieve_learning_context(workshop="demo", exercise_number=1, step_number=1)

        assert not result.truncated
        assert [s.label for s in result.sections][:2] == [
            "Workshop instructions",
            "Exercise 1 instructions",
        ]
        assert len(result.sections) == 8
        data = result.to_dict()
        assert data["stepNumber"] == 1
        assert "nextCursor" not in data

    @pytest.mark.asyncio
    async def test_truncation_and_cursor(self, service: RetrievalService) -> None:
        first = service.retrieve_learning_context(workshop="demo", exercise_number=1, max_chars=40)
        assert first.truncated
        assert first.next_cursor is not None
        assert sum(len(s.content) for s in first.sections) == 40

        second = service.retrieve_learning_context(
            workshop="demo", exercise_number=1, max_chars=40, cursor=first.next_cursor
        )
        assert second.sections[0].content != first.sections[0].content

    @pytest.mark.asyncio
    async def test_unknown_workshop(self, service: RetrievalService) -> None:
        with pytest.raises(ScopeNotFoundError, match='Unknown workshop "nope".'):
            service.retrieve_learning_context(workshop="nope", exercise_number=1)

    @pytest.mark.asyncio
    async def test_unknown_exercise(self, service: RetrievalService) -> None:
        with pytest.raises(ScopeNotFoundError, match='Unknown exercise 4 for workshop "demo".'):
            service.retrieve_learning_context(workshop="demo", exercise_number=4)

    @pytest.mark.asyncio
    async def test_unknown_step(self, service: RetrievalService) -> None:
        with pytest.raises(
            ScopeNotFoundError, match='Unknown step 2 for workshop "demo" exercise 1.'
        ):
            service.retrieve_learning_context(workshop="demo", exercise_number=1, step_number=2)

    @pytest.mark.asyncio
    async def test_random(self, service: RetrievalService) -> None:
        result = service.retrieve_learning_context(random=True)

        assert (result.workshop, result.exercise_number, result.step_number) == ("demo", 1, None)

    def test_random_with_empty_index(self, temp_db: Database) -> None:
        with pytest.raises(ContextNotFoundError, match="No indexed exercises are available"):
            RetrievalService(temp_db).retrieve_learning_context(random=True)


class TestRetrieveDiffContext:
    @pytest.mark.asyncio
    async def test_demo_diff(self, service: RetrievalService) -> None:
        result = service.retrieve_diff_context(workshop="demo", exercise_number=1)
        summary, hunk = result.sections

        assert summary.content == "- modified src/index.ts"
        assert hunk.content.startswith("diff --git a/src/index.ts b/src/index.ts")
        assert result.to_dict("diffSections")["diffSections"][0]["kind"] == "diff-summary"

    @pytest.mark.asyncio
    async def test_focus_filters(self, service: RetrievalService) -> None:
        result = service.retrieve_diff_context(workshop="demo", exercise_number=1, focus="  DIFF-HUNK ")

        assert [s.kind for s in result.sections] == ["diff-hunk"]

    @pytest.mark.asyncio
    async def test_focus_without_match(self, service: RetrievalService) -> None:
        with pytest.raises(ContextNotFoundError) as exc_info:
            service.retrieve_diff_context(workshop="demo", exercise_number=1, focus="webpack")

        assert exc_info.value.message == (
            'No diff context matched focus "webpack" for workshop "demo" exercise 1.'
        )

    @pytest.mark.asyncio
    async def test_no_diffs(
        self, temp_db: Database, source_client_factory, demo_files
    ) -> None:
        demo_files["exercises/01.basics/01.solution.hello/src/index.ts"] = "export const x = 1\n"
        await ReindexCoordinator(temp_db, source_client_factory({"demo": demo_files})).reindex()

        with pytest.raises(ContextNotFoundError) as exc_info:
            RetrievalService(temp_db).retrieve_diff_context(
                workshop="demo", exercise_number=1, step_number=1
            )

        assert exc_info.value.message == 'No diff context found for workshop "demo" exercise 1 step 1.'

    @pytest.mark.asyncio
    async def test_scope_checked_first(self, service: RetrievalService) -> None:
        with pytest.raises(ScopeNotFoundError):
            service.retrieve_diff_context(workshop="demo", exercise_number=2, focus="x")


class TestFilterByFocus:
    def test_matches_any_field(self) -> None:
        sections = [
            RetrievalSection("Diff summary", "diff-summary", "- added a.ts"),
            RetrievalSection("Diff chunk", "diff-hunk", "body", source_path="src/Widget.tsx"),
        ]

        assert filter_by_focus(sections, "widget") == [sections[1]]
        assert filter_by_focus(sections, "ADDED") == [sections[0]]
        assert filter_by_focus(sections, "   ") == sections
