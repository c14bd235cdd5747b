"""Prevalidation, triple checkers and the whole-proof checking pass."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from hlproof.engines.hoare import Z3Env, check_hoare_triple
from hlproof.errors import ParseTranslationError
from hlproof.feedback import FALSE_PRECONDITION_MESSAGE, Feedback, feedback_for_result
from hlproof.lang.ast_nodes import HoareTriple
from hlproof.lang.translate import parse_to_assertion
from hlproof.proof.arena import Arena
from hlproof.proof.nodes import HoareTripleNode, ProofExerciseNode, is_core_proof_step
from hlproof.proof.segment import segment_into_hoare_triples

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prevalidation
# ---------------------------------------------------------------------------

class AssertionPrevalidator:
    """Syntactic check of a hole attempt. Never raises.

    Returns empty feedback if the attempt parses as an assertion, otherwise
    message feedback explaining the parse error.
    """

    async def prevalidate(self, attempt: str) -> Feedback:
        try:
            parse_to_assertion(attempt)
        except ParseTranslationError as exc:
            return Feedback.message(f"Parse error:\n{exc}")
        except Exception:
            logger.warning("prevalidation of %r crashed", attempt, exc_info=True)
            return Feedback.message(f"An unknown error occurred when parsing {attempt}")
        return Feedback.empty()


# ---------------------------------------------------------------------------
# Triple checkers
# ---------------------------------------------------------------------------

class HoareTripleChecker(Protocol):
    async def check(self, triple: HoareTriple) -> Feedback: ...


class IsLegitHoareTripleZ3Checker:
    """Correct if pre => wp(command, post) is valid, else a counterexample."""

    def __init__(self, env: Z3Env):
        self.env = env

    async def check(self, triple: HoareTriple) -> Feedback:
        result = await check_hoare_triple(self.env, triple)
        return feedback_for_result(self.env, triple, result)


class NoFalsePrecondZ3Checker(IsLegitHoareTripleZ3Checker):
    """Like `IsLegitHoareTripleZ3Checker`, but `{ false }` is never accepted
    as a precondition.

    The rejection is message feedback, not an incorrect verdict, so the
    whole-proof pass goes on to the earlier triples.
    """

    async def check(self, triple: HoareTriple) -> Feedback:
        if str(triple.pre) == "{ false }":
            return Feedback.message(FALSE_PRECONDITION_MESSAGE)
        return await super().check(triple)


def make_triple_checker(env: Z3Env, config: Any) -> IsLegitHoareTripleZ3Checker:
    if config.allow_false_precondition:
        return IsLegitHoareTripleZ3Checker(env)
    return NoFalsePrecondZ3Checker(env)


# ---------------------------------------------------------------------------
# Whole-proof pass
# ---------------------------------------------------------------------------

class HLProofExerciseZ3Checker:
    """Checks every triple of a proof exercise and routes the feedback.

    Triples are checked last to first. The pass stops at the first
    triple that cannot be built yet (an endpoint hole is not prevalidated)
    and right after the first incorrect triple.
    """

    def __init__(self, env: Z3Env, triple_checker: Optional[HoareTripleChecker] = None):
        self.env = env
        self.triple_checker = triple_checker or IsLegitHoareTripleZ3Checker(env)

    async def give_and_show_feedback(
        self, arena: Arena, exercise: ProofExerciseNode,
    ) -> list[tuple[HoareTripleNode, Feedback]]:
        steps = [s for s in exercise.get_proof_steps(arena) if is_core_proof_step(s)]
        triples = segment_into_hoare_triples(steps)
        checked: list[tuple[HoareTripleNode, Feedback]] = []

        for triple_node in reversed(triples):
            triple = triple_node.get_hoare_triple(arena)
            if triple is None:
                logger.debug("%r is incomplete, stopping", triple_node)
                break

            feedback = await self.triple_checker.check(triple)
            exercise.route_triple_feedback(arena, triple_node, feedback)
            checked.append((triple_node, feedback))

            if feedback.is_incorrect:
                break

        return checked
