"""Proof-step nodes stored in an `Arena`, and feedback routing on triples.

Node kinds:
  GivenAssertionNode  an assertion supplied with the exercise
  CommandNode         a command supplied with the exercise
  HoleNode            an assertion the student fills in
  RemarkNode          display-only text
  HoareTripleNode     three step ids checked together (not stored)
  ProofExerciseNode   the ordered step ids of one exercise

Every mutation of a stored node is followed by `arena.publish(node.id)`.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from hlproof.feedback import Feedback
from hlproof.lang.ast_nodes import Assertion, Command, HoareTriple
from hlproof.lang.translate import parse_to_assertion
from hlproof.proof.arena import Arena, ArenaNode, Subscription

if TYPE_CHECKING:
    from hlproof.proof.exercise import Hole, Remark

logger = logging.getLogger(__name__)


class HoleState(Enum):
    UNVALIDATED = "unvalidated"
    PREVALIDATING = "prevalidating"
    PREVALIDATED = "prevalidated"
    PREVALIDATION_FAILED = "prevalidation_failed"


class FeedbackNode(ArenaNode):
    """A node that can show feedback."""

    def __init__(self):
        self.feedback = Feedback.empty()

    def set_feedback(self, arena: Arena, feedback: Feedback) -> None:
        self.feedback = feedback
        arena.publish(self.id)


class GivenAssertionNode(FeedbackNode):
    def __init__(self, assertion: Assertion):
        super().__init__()
        self.assertion = assertion

    def get_assertion(self, arena: Arena) -> Optional[Assertion]:
        return self.assertion

    def __repr__(self) -> str:
        return f"GivenAssertionNode({self.id}, {self.assertion.original_input!r})"


class CommandNode(FeedbackNode):
    def __init__(self, command: Command):
        super().__init__()
        self.command = command

    def __repr__(self) -> str:
        return f"CommandNode({self.id}, {self.command.original_input!r})"


class RemarkNode(ArenaNode):
    def __init__(self, remark: Remark):
        self.remark = remark

    def __repr__(self) -> str:
        return f"RemarkNode({self.id}, {self.remark.body!r})"


class HoleNode(FeedbackNode):
    """A student-fillable assertion together with its feedback.

    State machine:
      UNVALIDATED -> PREVALIDATING -> PREVALIDATED | PREVALIDATION_FAILED
    Any edit of the attempt goes back to UNVALIDATED.
    """

    def __init__(self, hole: Hole):
        super().__init__()
        self.hole = hole
        self.attempt = ""
        self.state = HoleState.UNVALIDATED
        self._parse_feedback: Optional[Feedback] = None

    @property
    def placeholder_prompt(self) -> str:
        return self.hole.placeholder_prompt

    def set_attempt(self, arena: Arena, attempt: str) -> None:
        self.attempt = attempt
        self.state = HoleState.UNVALIDATED
        arena.publish(self.id)

    async def prevalidate(self, arena: Arena) -> Feedback:
        """Check that the attempt parses as an assertion.

        A parse failure becomes message feedback on this hole. Success
        clears the parse-failure message this hole set earlier but leaves
        checker feedback alone, messages included.
        """
        attempt = self.attempt
        self.state = HoleState.PREVALIDATING
        feedback = await self.hole.prevalidator.prevalidate(attempt)

        if self.attempt != attempt:
            # Edited while we were prevalidating; the result is stale.
            return feedback

        if feedback.is_empty:
            self.state = HoleState.PREVALIDATED
            if self._parse_feedback is not None and self.feedback == self._parse_feedback:
                self.set_feedback(arena, Feedback.empty())
            self._parse_feedback = None
        else:
            self.state = HoleState.PREVALIDATION_FAILED
            self._parse_feedback = feedback
            self.set_feedback(arena, feedback)
        return feedback

    async def update_attempt(self, arena: Arena, attempt: str) -> Optional[Feedback]:
        """Set the attempt, then prevalidate it once typing has settled.

        Returns None if another edit arrived during the debounce window.
        """
        self.set_attempt(arena, attempt)
        await asyncio.sleep(arena.feedback_debounce_ms / 1000)
        if self.attempt != attempt:
            return None
        return await self.prevalidate(arena)

    def get_assertion(self, arena: Arena) -> Optional[Assertion]:
        if self.state != HoleState.PREVALIDATED:
            return None
        return parse_to_assertion(self.attempt)

    def can_submit(self) -> bool:
        return self.state == HoleState.PREVALIDATED and not self.feedback.must_address

    def __repr__(self) -> str:
        return f"HoleNode({self.id}, {self.attempt!r}, {self.state.value})"


def has_assertion(node: ArenaNode) -> bool:
    return isinstance(node, (GivenAssertionNode, HoleNode))


def is_core_proof_step(node: ArenaNode) -> bool:
    return isinstance(node, (GivenAssertionNode, HoleNode, CommandNode))


class HoareTripleNode:
    """Three consecutive proof steps checked as {pre} command {post}.

    Holds ids only; the same step may belong to two overlapping triples.
    """

    def __init__(self, pre: int, command: int, post: int):
        self.pre = pre
        self.command = command
        self.post = post

    @property
    def ids(self) -> tuple[int, int, int]:
        return (self.pre, self.command, self.post)

    def get_children(self, arena: Arena) -> list[FeedbackNode]:
        return [arena.get(i) for i in self.ids]

    def get_hoare_triple(self, arena: Arena) -> Optional[HoareTriple]:
        """The triple to check, or None while an endpoint has no assertion yet."""
        pre = arena.get(self.pre).get_assertion(arena)
        post = arena.get(self.post).get_assertion(arena)
        if pre is None or post is None:
            return None
        return HoareTriple(pre, arena.get(self.command).command, post)

    def set_empty_feedback(self, arena: Arena) -> None:
        for child in self.get_children(arena):
            child.set_feedback(arena, Feedback.empty())

    def set_feedback(self, arena: Arena, feedback: Feedback) -> list[Subscription]:
        """Route `feedback` to the three steps.

        Correct feedback goes to every step. Anything else clears the
        triple, puts the full message on the first hole and marks the
        other steps as incorrect without a message. A triple with no holes
        still shows the message, on its precondition.

        Returns the subscriptions that clear the triple on the first edit
        of one of its holes.
        """
        children = self.get_children(arena)

        if feedback.is_correct:
            for child in children:
                child.set_feedback(arena, feedback)
            return []

        # Clear first so old and new feedback never mix.
        self.set_empty_feedback(arena)

        holes = [c for c in children if isinstance(c, HoleNode)]
        first = holes[0] if holes else children[0]
        first.set_feedback(arena, feedback)
        styles_only = Feedback.incorrect()
        for child in children:
            if child is not first:
                child.set_feedback(arena, styles_only)

        return self._clear_on_first_edit(arena, holes)

    def _clear_on_first_edit(self, arena: Arena, holes: list[HoleNode]) -> list[Subscription]:
        """Clear the triple's feedback once, when any of its holes is edited."""
        fired = False
        subscriptions: list[Subscription] = []

        def make_listener(hole_id: int, old_attempt: str):
            def on_change(arena: Arena, node_id: int) -> None:
                nonlocal fired
                if fired or node_id != hole_id:
                    return
                if arena.get(hole_id).attempt == old_attempt:
                    return
                fired = True
                # Unsubscribe before clearing: clearing publishes again.
                for sub in subscriptions:
                    sub.unsubscribe()
                logger.debug("hole %d edited, clearing feedback on %s", hole_id, self.ids)
                self.set_empty_feedback(arena)
            return on_change

        for hole in holes:
            subscriptions.append(arena.subscribe(make_listener(hole.id, hole.attempt)))
        return subscriptions

    def __repr__(self) -> str:
        return f"HoareTripleNode{self.ids}"


class ProofExerciseNode(ArenaNode):
    """An exercise: ordered proof-step ids plus whatever gives feedback on them."""

    def __init__(self, step_ids: list[int], feedback_giver: Any):
        self.step_ids = list(step_ids)
        self.feedback_giver = feedback_giver
        self._triple_subscriptions: dict[tuple[int, int, int], list[Subscription]] = {}

    def route_triple_feedback(self, arena: Arena, triple: HoareTripleNode, feedback: Feedback) -> None:
        """Set feedback on `triple`, dropping the clear-on-edit listeners of
        its previous feedback."""
        for sub in self._triple_subscriptions.pop(triple.ids, []):
            sub.unsubscribe()
        subscriptions = triple.set_feedback(arena, feedback)
        if subscriptions:
            self._triple_subscriptions[triple.ids] = subscriptions

    def get_proof_steps(self, arena: Arena) -> list[ArenaNode]:
        return [arena.get(i) for i in self.step_ids]

    def get_holes(self, arena: Arena) -> list[HoleNode]:
        return [n for n in self.get_proof_steps(arena) if isinstance(n, HoleNode)]

    async def submit(self, arena: Arena, from_hole: Optional[int] = None) -> bool:
        """Check the whole proof. Returns False if `from_hole` may not submit."""
        if from_hole is not None and not arena.get(from_hole).can_submit():
            logger.debug("submit from hole %d refused", from_hole)
            return False
        logger.debug("submitting exercise %d", self.id)
        await self.feedback_giver.give_and_show_feedback(arena, self)
        return True
