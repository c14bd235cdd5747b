"""Proof exercise data and how it is laid out in an arena.

An exercise is a list of proof steps, for example

    { blank }
    > the assertion above should be a simplification of the one below
    { blank }
    b := 2 - a
    { blank }
    c := b + 2
    { d = 5 }

where each `{ blank }` is a `Hole` the student fills in. `build_exercise`
turns the steps into arena nodes; `load_proof_text` reads the text form.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from hlproof.errors import ParseTranslationError, ProofLoadError, syntax_error
from hlproof.lang.ast_nodes import Assertion, Command
from hlproof.lang.translate import parse_to_assertion, parse_to_command
from hlproof.proof.arena import Arena
from hlproof.proof.checker import AssertionPrevalidator
from hlproof.proof.nodes import (
    CommandNode, GivenAssertionNode, HoleNode, ProofExerciseNode, RemarkNode,
)

DEFAULT_PLACEHOLDER_PROMPT = "{ }"


class HoleType(Enum):
    ASSERTION_HOLE = "AssertionHole"


@dataclass
class Hole:
    """A blank in the proof for the student to fill in."""
    type: HoleType
    prevalidator: Any
    placeholder_prompt: str = DEFAULT_PLACEHOLDER_PROMPT
    initial_attempt: str = ""


@dataclass(frozen=True)
class Remark:
    body: str

    def __post_init__(self):
        object.__setattr__(self, "body", self.body.strip())


HLProofStep = Union[Assertion, Hole, Command, Remark]


def make_assertion_hole(placeholder_prompt: Optional[str] = None, initial_attempt: str = "") -> Hole:
    return Hole(
        HoleType.ASSERTION_HOLE,
        AssertionPrevalidator(),
        placeholder_prompt if placeholder_prompt is not None else DEFAULT_PLACEHOLDER_PROMPT,
        initial_attempt,
    )


@dataclass
class HLProofExercise:
    steps: list[HLProofStep] = field(default_factory=list)
    feedback_giver: Any = None

    def get_proof_step(self, index: int) -> Optional[HLProofStep]:
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None

    def __len__(self) -> int:
        return len(self.steps)


def _step_to_node(step: HLProofStep):
    if isinstance(step, Hole):
        node = HoleNode(step)
        node.attempt = step.initial_attempt
        return node
    if isinstance(step, Assertion):
        return GivenAssertionNode(step)
    if isinstance(step, Command):
        return CommandNode(step)
    if isinstance(step, Remark):
        return RemarkNode(step)
    raise TypeError(f"Not a proof step: {step!r}")


def build_exercise(arena: Arena, exercise: HLProofExercise) -> ProofExerciseNode:
    """Add one node per proof step, then the exercise node itself."""
    ids = [arena.add(_step_to_node(step)) for step in exercise.steps]
    node = ProofExerciseNode(ids, exercise.feedback_giver)
    arena.add(node)
    return node


# ---------------------------------------------------------------------------
# Text format
# ---------------------------------------------------------------------------

def load_proof_text(text: str, placeholder_prompt: Optional[str] = None) -> list[HLProofStep]:
    """Read proof steps, one per line.

      { ... }   a given assertion; may continue over lines until braces balance
      ? text    a hole, prefilled with `text` (which may be empty)
      > text    a remark
      # text    a comment, ignored
      other     a command (the trailing ';' is optional)

    Blank lines are ignored. Raises ProofLoadError on the first bad step.
    """
    steps: list[HLProofStep] = []
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        lineno = i + 1
        line = lines[i].strip()
        i += 1
        if not line or line.startswith("#"):
            continue

        if line.startswith("?"):
            steps.append(make_assertion_hole(placeholder_prompt, line[1:].strip()))
        elif line.startswith(">"):
            steps.append(Remark(line[1:]))
        elif line.startswith("{"):
            chunk = [line]
            depth = line.count("{") - line.count("}")
            while depth > 0 and i < len(lines):
                chunk.append(lines[i].strip())
                depth += lines[i].count("{") - lines[i].count("}")
                i += 1
            source = "\n".join(chunk)
            if depth > 0:
                raise ProofLoadError(lineno, ParseTranslationError(
                    syntax_error("Unclosed assertion starting with", found=line),
                ))
            try:
                steps.append(parse_to_assertion(source))
            except ParseTranslationError as exc:
                raise ProofLoadError(lineno, exc) from exc
        else:
            try:
                steps.append(parse_to_command(line))
            except ParseTranslationError as exc:
                raise ProofLoadError(lineno, exc) from exc
    return steps
