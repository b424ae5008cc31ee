"""Path grammar for workshop repositories.

Workshop repositories lay exercises out as::

    exercises/01.ping/README.mdx
    exercises/01.ping/01.problem.connect/src/index.ts
    exercises/01.ping/01.solution.connect/src/index.ts

Paths outside this layout simply do not match; nothing here raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

StepType = Literal["problem", "solution"]

_EXERCISE_RE = re.compile(r"^exercises/(?P<exercise_dir>\d+\.[^/]+)/")
_STEP_RE = re.compile(
    r"^exercises/(?P<exercise_dir>\d+\.[^/]+)/"
    r"(?P<step_number>\d+)\.(?P<step_type>problem|solution)(?:\.[^/]+)?/"
)


@dataclass(frozen=True, slots=True)
class ExerciseMatch:
    exercise_number: int
    exercise_dir: str

    @property
    def title(self) -> str:
        """Directory name without its number prefix, dots read as spaces."""
        return " ".join(self.exercise_dir.split(".")[1:])


@dataclass(frozen=True, slots=True)
class StepMatch:
    exercise_number: int
    exercise_dir: str
    step_number: int
    step_type: StepType
    step_dir: str


def _leading_number(exercise_dir: str) -> int:
    return int(exercise_dir.split(".", 1)[0])


def parse_exercise_path(path: str) -> ExerciseMatch | None:
    """Map a path to the exercise directory that contains it."""
    match = _EXERCISE_RE.match(path)
    if match is None:
        return None
    exercise_dir = match.group("exercise_dir")
    number = _leading_number(exercise_dir)
    if number <= 0:
        return None
    return ExerciseMatch(exercise_number=number, exercise_dir=exercise_dir)


def parse_step_path(path: str) -> StepMatch | None:
    """Map a path to the problem/solution step directory that contains it.

    The step directory may carry a trailing name (``01.problem.connect``)
    or none at all (``01.solution``).
    """
    match = _STEP_RE.match(path)
    if match is None:
        return None
    exercise_dir = match.group("exercise_dir")
    exercise_number = _leading_number(exercise_dir)
    step_number = int(match.group("step_number"))
    if exercise_number <= 0 or step_number <= 0:
        return None
    step_type: StepType = "problem" if match.group("step_type") == "problem" else "solution"
    return StepMatch(
        exercise_number=exercise_number,
        exercise_dir=exercise_dir,
        step_number=step_number,
        step_type=step_type,
        step_dir="/".join(path.split("/")[:3]),
    )
