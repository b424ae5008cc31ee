"""Turns one workshop repository tree into ordered index sections.

Emission order (section_order starts at 10 and increments by one):

1. Workshop instructions and finished notes.
2. Per exercise, by number then title: exercise instructions, finished notes.
3. Per step, by number: problem and solution instructions, then for each
   changed file the problem and solution code, then one diff summary and
   one diff hunk per changed file.

Content longer than the storage cap is cut with a visible marker.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import structlog

from stepwise.config.constants import (
    MAX_STORED_SECTION_CHARS,
    SECTION_ORDER_START,
    SECTION_TRUNCATION_MARKER,
)
from stepwise.index._internal.diff import FileDiff, diff_file
from stepwise.index._internal.ignore import DIFFIGNORE_PATH, DiffIgnore, is_likely_text_file
from stepwise.index._internal.paths import parse_exercise_path, parse_step_path
from stepwise.index.models import (
    ExerciseRecord,
    SectionKind,
    SectionRecord,
    StepRecord,
    WorkshopIndexData,
    WorkshopRecord,
)
from stepwise.source.blobs import BlobReader
from stepwise.source.models import RepoTree, TreeEntry, WorkshopRepository

log = structlog.get_logger(__name__)

INSTRUCTIONS_FILE = "README.mdx"
FINISHED_FILE = "FINISHED.mdx"


def to_section_content(content: str) -> str:
    if len(content) <= MAX_STORED_SECTION_CHARS:
        return content
    return content[:MAX_STORED_SECTION_CHARS] + SECTION_TRUNCATION_MARKER


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def read_workshop_metadata(package_json: str | None, fallback_title: str) -> tuple[str, str | None]:
    """(title, product) from the ``epicshop`` block of package.json."""
    try:
        data = json.loads(package_json) if package_json else {}
    except json.JSONDecodeError:
        data = {}
    epicshop = data.get("epicshop") if isinstance(data, dict) else None
    if not isinstance(epicshop, dict):
        epicshop = {}
    product_meta = epicshop.get("product")
    if not isinstance(product_meta, dict):
        product_meta = {}

    title = _clean(epicshop.get("title")) or fallback_title
    product = (
        _clean(product_meta.get("displayNameShort"))
        or _clean(product_meta.get("host"))
        or _clean(product_meta.get("slug"))
    )
    return title, product


@dataclass
class _StepNode:
    problem_dir: str | None = None
    solution_dir: str | None = None


@dataclass
class _ExerciseNode:
    exercise_dir: str
    title: str
    steps: dict[int, _StepNode] = field(default_factory=dict)


class SectionBuilder:
    """Builds ``WorkshopIndexData`` for one repository.

    The builder reads blobs through the given reader, so one ``BlobCache``
    serves the whole pass.
    """

    def __init__(self, repo: WorkshopRepository, tree: RepoTree, reader: BlobReader) -> None:
        self._repo = repo
        self._tree = tree
        self._reader = reader
        self._blobs = tree.blobs_by_path()
        self._order = SECTION_ORDER_START
        self._sections: list[SectionRecord] = []

    async def _read_path(self, path: str | None) -> str | None:
        if path is None:
            return None
        entry = self._blobs.get(path)
        if entry is None:
            return None
        return await self._reader.read(entry.sha)

    def _emit(
        self,
        kind: SectionKind,
        label: str,
        content: str,
        *,
        exercise_number: int | None = None,
        step_number: int | None = None,
        source_path: str | None = None,
        is_diff: bool = False,
    ) -> None:
        self._sections.append(
            SectionRecord(
                section_order=self._order,
                section_kind=kind,
                label=label,
                content=to_section_content(content),
                exercise_number=exercise_number,
                step_number=step_number,
                source_path=source_path,
                is_diff=is_diff,
            )
        )
        self._order += 1

    def _exercise_tree(self) -> dict[int, _ExerciseNode]:
        exercises: dict[int, _ExerciseNode] = {}
        for path in self._blobs:
            exercise = parse_exercise_path(path)
            if exercise is None:
                continue
            node = exercises.setdefault(
                exercise.exercise_number,
                _ExerciseNode(exercise_dir=exercise.exercise_dir, title=exercise.title),
            )
            step = parse_step_path(path)
            if step is None:
                continue
            step_node = node.steps.setdefault(step.step_number, _StepNode())
            if step.step_type == "problem":
                step_node.problem_dir = step.step_dir
            else:
                step_node.solution_dir = step.step_dir
        return exercises

    def _step_files(self, step_dir: str | None, ignore: DiffIgnore) -> dict[str, TreeEntry]:
        if step_dir is None:
            return {}
        prefix = f"{step_dir}/"
        files: dict[str, TreeEntry] = {}
        for path, entry in self._blobs.items():
            if not path.startswith(prefix):
                continue
            relative = path[len(prefix) :]
            if relative == INSTRUCTIONS_FILE:
                continue
            if not is_likely_text_file(relative, entry.size):
                continue
            if ignore.is_ignored(relative):
                continue
            files[relative] = entry
        return files

    async def build(self) -> WorkshopIndexData:
        repo = self._repo
        title, product = read_workshop_metadata(
            await self._read_path("package.json"), fallback_title=repo.name
        )
        ignore = DiffIgnore.from_file_content(await self._read_path(DIFFIGNORE_PATH))

        for kind, label, path in (
            (SectionKind.WORKSHOP_INSTRUCTIONS, "Workshop instructions", "exercises/README.mdx"),
            (SectionKind.WORKSHOP_FINISHED, "Workshop finished notes", "exercises/FINISHED.mdx"),
        ):
            content = await self._read_path(path)
            if content:
                self._emit(kind, label, content, source_path=path)

        exercises: list[ExerciseRecord] = []
        steps: list[StepRecord] = []
        tree = self._exercise_tree()
        for number, node in sorted(tree.items(), key=lambda item: (item[0], item[1].title)):
            step_numbers = sorted(node.steps)
            exercises.append(
                ExerciseRecord(exercise_number=number, title=node.title, step_count=len(step_numbers))
            )
            for kind, label, filename in (
                (SectionKind.EXERCISE_INSTRUCTIONS, f"Exercise {number} instructions", INSTRUCTIONS_FILE),
                (SectionKind.EXERCISE_FINISHED, f"Exercise {number} finished notes", FINISHED_FILE),
            ):
                path = f"exercises/{node.exercise_dir}/{filename}"
                content = await self._read_path(path)
                if content:
                    self._emit(kind, label, content, exercise_number=number, source_path=path)

            for step_number in step_numbers:
                steps.append(
                    await self._build_step(number, step_number, node.steps[step_number], ignore)
                )

        has_diffs = any(step.has_diff for step in steps)
        workshop = WorkshopRecord(
            workshop_slug=repo.name,
            title=title,
            product=product,
            repo_owner=repo.owner,
            repo_name=repo.name,
            default_branch=repo.default_branch,
            source_sha=self._tree.sha,
            exercise_count=len(exercises),
            has_diffs=has_diffs,
        )
        log.debug(
            "workshop_sections_built",
            workshop=repo.name,
            exercises=len(exercises),
            steps=len(steps),
            sections=len(self._sections),
            blob_cache_hits=self._reader.cache.hits,
        )
        return WorkshopIndexData(
            workshop=workshop, exercises=exercises, steps=steps, sections=self._sections
        )

    async def _build_step(
        self, exercise_number: int, step_number: int, node: _StepNode, ignore: DiffIgnore
    ) -> StepRecord:
        scope = {"exercise_number": exercise_number, "step_number": step_number}
        prefix = f"Exercise {exercise_number} step {step_number}"
        for kind, label, step_dir in (
            (SectionKind.PROBLEM_INSTRUCTIONS, f"{prefix} problem instructions", node.problem_dir),
            (SectionKind.SOLUTION_INSTRUCTIONS, f"{prefix} solution instructions", node.solution_dir),
        ):
            if step_dir is None:
                continue
            path = f"{step_dir}/{INSTRUCTIONS_FILE}"
            content = await self._read_path(path)
            if content:
                self._emit(kind, label, content, source_path=path, **scope)

        problem_files = self._step_files(node.problem_dir, ignore)
        solution_files = self._step_files(node.solution_dir, ignore)
        diffs: list[FileDiff] = []
        for relative in sorted(problem_files.keys() | solution_files.keys()):
            problem = problem_files.get(relative)
            solution = solution_files.get(relative)
            if problem is not None and solution is not None and problem.sha == solution.sha:
                continue
            problem_content = await self._reader.read(problem.sha) if problem else None
            solution_content = await self._reader.read(solution.sha) if solution else None
            if problem is not None and problem_content:
                self._emit(
                    SectionKind.PROBLEM_CODE,
                    f"Problem code: {relative}",
                    problem_content,
                    source_path=problem.path,
                    **scope,
                )
            if solution is not None and solution_content:
                self._emit(
                    SectionKind.SOLUTION_CODE,
                    f"Solution code: {relative}",
                    solution_content,
                    source_path=solution.path,
                    **scope,
                )
            file_diff = diff_file(relative, problem_content, solution_content)
            if file_diff is not None:
                diffs.append(file_diff)

        if diffs:
            self._emit(
                SectionKind.DIFF_SUMMARY,
                f"Diff summary for exercise {exercise_number} step {step_number}",
                "\n".join(f"- {d.summary}" for d in diffs),
                is_diff=True,
                **scope,
            )
            for file_diff in diffs:
                self._emit(
                    SectionKind.DIFF_HUNK,
                    f"Diff chunk for exercise {exercise_number} step {step_number}",
                    file_diff.text,
                    is_diff=True,
                    **scope,
                )

        return StepRecord(
            exercise_number=exercise_number,
            step_number=step_number,
            problem_dir=node.problem_dir,
            solution_dir=node.solution_dir,
            has_diff=bool(diffs),
        )


async def build_workshop_index(
    repo: WorkshopRepository, tree: RepoTree, reader: BlobReader
) -> WorkshopIndexData:
    return await SectionBuilder(repo, tree, reader).build()
