"""Feedback values and counterexample-driven feedback messages.

A failed triple check comes back from Z3 with a model. The model gives a
concrete starting state that satisfies the precondition; running the
command on it gives an end state that breaks the postcondition. The
messages below walk the student through exactly that.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import z3

from hlproof.engines.hoare import CheckResult, SolverOutcome, Z3Env, eval_arith
from hlproof.lang.ast_nodes import Assign, HoareTriple, Skip

INCORRECT_HEADER = "✗ Incorrect!"
CORRECT_MESSAGE = "✓ Correct!"

FALSE_PRECONDITION_MESSAGE = (
    f"{INCORRECT_HEADER}\n\n"
    "It's true that you can prove any postcondition from { false }.\n"
    " But we aren't allowing it as a precondition here, "
    "because we want you to practice applying the rules mechanically"
)

INDENT = "    "

ProgramState = dict[str, int]


class FeedbackKind(Enum):
    EMPTY = "empty"
    MESSAGE = "message"
    CORRECT = "correct"
    INCORRECT = "incorrect"


@dataclass(frozen=True)
class Feedback:
    """Feedback shown next to a proof step.

    An INCORRECT feedback without a body only marks the step as wrong;
    the explanation is shown on another step of the same triple.
    """
    kind: FeedbackKind
    body: Optional[str] = None

    @classmethod
    def empty(cls) -> Feedback:
        return cls(FeedbackKind.EMPTY)

    @classmethod
    def message(cls, body: str) -> Feedback:
        return cls(FeedbackKind.MESSAGE, body)

    @classmethod
    def correct(cls, body: str = CORRECT_MESSAGE) -> Feedback:
        return cls(FeedbackKind.CORRECT, body)

    @classmethod
    def incorrect(cls, body: Optional[str] = None) -> Feedback:
        return cls(FeedbackKind.INCORRECT, body)

    @property
    def is_empty(self) -> bool:
        return self.kind == FeedbackKind.EMPTY

    @property
    def is_correct(self) -> bool:
        return self.kind == FeedbackKind.CORRECT

    @property
    def is_incorrect(self) -> bool:
        return self.kind == FeedbackKind.INCORRECT

    @property
    def must_address(self) -> bool:
        """Whether the student has to act on this before resubmitting."""
        return bool(self.body) and not self.is_correct

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "body": self.body}


# ---------------------------------------------------------------------------
# Program states from a counterexample
# ---------------------------------------------------------------------------

def compute_pre_and_post_states(
    env: Z3Env, triple: HoareTriple, model: z3.ModelRef,
) -> tuple[ProgramState, ProgramState]:
    """Evaluate the precondition's variables in `model`, then run the command."""
    pre_state: ProgramState = {
        v.name: eval_arith(env, model, v) for v in triple.pre.formula.free_vars()
    }
    command = triple.command
    if isinstance(command, Assign):
        post_state = dict(pre_state)
        post_state[command.var.name] = eval_arith(env, model, command.rhs)
    elif isinstance(command, Skip):
        post_state = dict(pre_state)
    else:
        raise TypeError(f"No post state for {type(command).__name__}")
    return pre_state, post_state


def stringify_program_state(state: ProgramState) -> str:
    if not state:
        return f"{INDENT}(no variables)"
    return "\n".join(f"{INDENT}{name}: {state[name]}" for name in sorted(state))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def make_wrong_attempt_message(
    triple: HoareTriple, pre_state: ProgramState, post_state: ProgramState,
) -> str:
    pre_lines = [
        INCORRECT_HEADER,
        "The precondition does not guarantee that the postcondition will hold after the command(s).",
        "",
        "Suppose we start with the variables being set thus.",
        stringify_program_state(pre_state),
        "Then the precondition",
        f"{INDENT}{triple.pre.original_input}",
        "is satisfied.",
    ]
    if isinstance(triple.command, Skip):
        post_lines = [
            "But the postcondition",
            f"{INDENT}{triple.post.original_input}",
            "is not satisfied.",
        ]
    else:
        post_lines = [
            "But after running",
            f"{INDENT}{triple.command.original_input}",
            "the state of the program will be",
            stringify_program_state(post_state),
            "and the postcondition",
            f"{INDENT}{triple.post.original_input}",
            "will not be satisfied.",
        ]
    return "\n".join(pre_lines) + "\n\n" + "\n".join(post_lines)


def make_no_model_message(triple: HoareTriple) -> str:
    return "\n".join([
        INCORRECT_HEADER,
        "The solver could not show that the precondition",
        f"{INDENT}{triple.pre.original_input}",
        "guarantees the postcondition",
        f"{INDENT}{triple.post.original_input}",
        "after the command(s), and it did not produce a concrete counterexample.",
    ])


def feedback_for_result(env: Z3Env, triple: HoareTriple, result: CheckResult) -> Feedback:
    """Turn a triple check into correct or incorrect feedback."""
    if result.outcome == SolverOutcome.UNSAT:
        return Feedback.correct()
    if result.model is None:
        return Feedback.incorrect(make_no_model_message(triple))
    pre_state, post_state = compute_pre_and_post_states(env, triple, result.model)
    return Feedback.incorrect(make_wrong_attempt_message(triple, pre_state, post_state))
