"""hlproof Proof Checking Tests: CHECK-001 through CHECK-007."""

import asyncio

import pytest

from hlproof.config import HLProofConfig
from hlproof.engines.hoare import Z3Env
from hlproof.feedback import FALSE_PRECONDITION_MESSAGE, Feedback, FeedbackKind
from hlproof.lang import parse_to_assertion, parse_to_command
from hlproof.proof.arena import Arena
from hlproof.proof.checker import (
    AssertionPrevalidator, HLProofExerciseZ3Checker, IsLegitHoareTripleZ3Checker,
    NoFalsePrecondZ3Checker, make_triple_checker,
)
from hlproof.proof.exercise import HLProofExercise, Remark, build_exercise, make_assertion_hole
from hlproof.proof.nodes import HoareTripleNode, HoleState


class ScriptedChecker:
    """Incorrect for the listed commands, correct for everything else."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.seen = []

    async def check(self, triple):
        cmd = triple.command.original_input
        self.seen.append(cmd)
        if cmd in self.failing:
            return Feedback.incorrect(f"bad {cmd}")
        return Feedback.correct()


def A(src):
    return parse_to_assertion(src)


def C(src):
    return parse_to_command(src)


def H(attempt=""):
    return make_assertion_hole(initial_attempt=attempt)


def make_exercise(steps, triple_checker=None, debounce_ms=0):
    arena = Arena(feedback_debounce_ms=debounce_ms)
    checker = HLProofExerciseZ3Checker(Z3Env(), triple_checker)
    exercise = build_exercise(arena, HLProofExercise(steps, checker))
    return arena, exercise


def run_pass(arena, exercise):
    return asyncio.run(exercise.feedback_giver.give_and_show_feedback(arena, exercise))


def kinds(arena, ids):
    return [arena.get(i).feedback.kind for i in ids]


def prevalidate_all(arena, exercise):
    async def go():
        for hole in exercise.get_holes(arena):
            await hole.prevalidate(arena)
    asyncio.run(go())


CORRECT = FeedbackKind.CORRECT
INCORRECT = FeedbackKind.INCORRECT
EMPTY = FeedbackKind.EMPTY


class TestPrevalidator:
    """CHECK-001: Syntactic prevalidation never raises."""

    def test_accepts_assertion(self):
        fb = asyncio.run(AssertionPrevalidator().prevalidate("{ x > 0 }"))
        assert fb.is_empty

    def test_parse_error_message(self):
        fb = asyncio.run(AssertionPrevalidator().prevalidate("{ x > }"))
        assert fb.kind == FeedbackKind.MESSAGE
        assert fb.body.startswith("Parse error:\n")

    def test_command_is_not_an_assertion(self):
        fb = asyncio.run(AssertionPrevalidator().prevalidate("x := 1;"))
        assert "Expected an Assertion but got" in fb.body

    def test_unexpected_exception(self, monkeypatch):
        def boom(src):
            raise RuntimeError("boom")
        monkeypatch.setattr("hlproof.proof.checker.parse_to_assertion", boom)
        fb = asyncio.run(AssertionPrevalidator().prevalidate("{ true }"))
        assert fb.body == "An unknown error occurred when parsing { true }"


class EditingPrevalidator:
    """Edits the hole while its prevalidation is in flight."""

    def __init__(self, arena, node):
        self.arena = arena
        self.node = node

    async def prevalidate(self, attempt):
        self.node.set_attempt(self.arena, "{ y > 0 }")
        return Feedback.message("stale")


class TestHoleStateMachine:
    """CHECK-002: Hole prevalidation states."""

    def setup_method(self):
        self.arena, self.exercise = make_exercise([H()])
        self.hole = self.exercise.get_holes(self.arena)[0]

    def test_initial(self):
        assert self.hole.state == HoleState.UNVALIDATED
        assert self.hole.get_assertion(self.arena) is None
        assert not self.hole.can_submit()
        assert self.hole.placeholder_prompt == "{ }"

    def test_prevalidated(self):
        self.hole.set_attempt(self.arena, "{ x > 0 }")
        asyncio.run(self.hole.prevalidate(self.arena))
        assert self.hole.state == HoleState.PREVALIDATED
        assert str(self.hole.get_assertion(self.arena)) == "{ (x > 0) }"
        assert self.hole.can_submit()

    def test_failed(self):
        self.hole.set_attempt(self.arena, "{ x > }")
        asyncio.run(self.hole.prevalidate(self.arena))
        assert self.hole.state == HoleState.PREVALIDATION_FAILED
        assert self.hole.feedback.kind == FeedbackKind.MESSAGE
        assert self.hole.get_assertion(self.arena) is None
        assert not self.hole.can_submit()

    def test_fix_clears_parse_error(self):
        self.hole.set_attempt(self.arena, "{ x > }")
        asyncio.run(self.hole.prevalidate(self.arena))
        self.hole.set_attempt(self.arena, "{ x > 1 }")
        assert self.hole.state == HoleState.UNVALIDATED
        asyncio.run(self.hole.prevalidate(self.arena))
        assert self.hole.state == HoleState.PREVALIDATED
        assert self.hole.feedback.is_empty

    def test_semantic_feedback_survives_prevalidation(self):
        self.hole.set_attempt(self.arena, "{ x > 1 }")
        self.hole.set_feedback(self.arena, Feedback.incorrect("wrong"))
        asyncio.run(self.hole.prevalidate(self.arena))
        assert self.hole.feedback == Feedback.incorrect("wrong")
        assert not self.hole.can_submit()

    def test_stale_result_ignored(self):
        self.hole.hole.prevalidator = EditingPrevalidator(self.arena, self.hole)
        self.hole.set_attempt(self.arena, "{ x > }")
        asyncio.run(self.hole.prevalidate(self.arena))
        assert self.hole.attempt == "{ y > 0 }"
        assert self.hole.state == HoleState.UNVALIDATED
        assert self.hole.feedback.is_empty

    def test_edit_publishes(self):
        changed = []
        self.arena.subscribe(lambda arena, node_id: changed.append(node_id))
        self.hole.set_attempt(self.arena, "{ true }")
        assert changed == [self.hole.id]


class TestDebounce:
    """CHECK-003: Edits settle before prevalidation."""

    def test_update_attempt(self):
        arena, exercise = make_exercise([H()])
        hole = exercise.get_holes(arena)[0]
        fb = asyncio.run(hole.update_attempt(arena, "{ x = 1 }"))
        assert fb.is_empty
        assert hole.state == HoleState.PREVALIDATED

    def test_superseded_edit(self):
        arena, exercise = make_exercise([H()], debounce_ms=20)
        hole = exercise.get_holes(arena)[0]

        async def scenario():
            first = asyncio.create_task(hole.update_attempt(arena, "{ x > }"))
            await asyncio.sleep(0)
            second = await hole.update_attempt(arena, "{ x > 0 }")
            return await first, second

        first, second = asyncio.run(scenario())
        assert first is None
        assert second.is_empty
        assert hole.state == HoleState.PREVALIDATED
        assert hole.feedback.is_empty


class TestWalk:
    """CHECK-004: Reversed walk, stopping at the first failure."""

    STEPS = [A("{ x = 1 }"), C("y := x"), A("{ y = 1 }"), C("z := y"), A("{ z = 1 }")]

    def test_all_correct(self):
        checker = ScriptedChecker()
        arena, exercise = make_exercise(self.STEPS, checker)
        checked = run_pass(arena, exercise)
        assert checker.seen == ["z := y;", "y := x;"]
        assert [t.ids for t, _ in checked] == [(2, 3, 4), (0, 1, 2)]
        assert kinds(arena, range(5)) == [CORRECT] * 5

    def test_earlier_triple_invalid(self):
        checker = ScriptedChecker(failing={"y := x;"})
        arena, exercise = make_exercise(self.STEPS, checker)
        checked = run_pass(arena, exercise)
        assert checker.seen == ["z := y;", "y := x;"]
        assert [fb.kind for _, fb in checked] == [CORRECT, INCORRECT]
        # No hole in the failing triple: the message goes to its precondition.
        assert arena.get(0).feedback == Feedback.incorrect("bad y := x;")
        assert kinds(arena, range(5)) == [INCORRECT, INCORRECT, INCORRECT, CORRECT, CORRECT]
        assert arena.get(2).feedback.body is None

    def test_later_triple_invalid_stops_walk(self):
        checker = ScriptedChecker(failing={"z := y;"})
        arena, exercise = make_exercise(self.STEPS, checker)
        checked = run_pass(arena, exercise)
        assert checker.seen == ["z := y;"]
        assert len(checked) == 1
        assert kinds(arena, range(5)) == [EMPTY, EMPTY, INCORRECT, INCORRECT, INCORRECT]

    def test_middle_triple_invalid(self):
        steps = self.STEPS + [C("w := z"), A("{ w = 1 }")]
        checker = ScriptedChecker(failing={"z := y;"})
        arena, exercise = make_exercise(steps, checker)
        run_pass(arena, exercise)
        assert checker.seen == ["w := z;", "z := y;"]
        assert kinds(arena, range(7)) == [EMPTY, EMPTY, INCORRECT, INCORRECT, INCORRECT, CORRECT, CORRECT]

    def test_unvalidated_hole_stops_walk(self):
        steps = [A("{ x = 1 }"), C("y := x"), H("{ y = 1 }"), C("z := y"), A("{ z = 1 }")]
        checker = ScriptedChecker()
        arena, exercise = make_exercise(steps, checker)
        assert run_pass(arena, exercise) == []
        assert checker.seen == []
        prevalidate_all(arena, exercise)
        assert len(run_pass(arena, exercise)) == 2

    def test_remarks_skipped(self):
        steps = [A("{ x = 1 }"), Remark("assign"), C("y := x"), A("{ y = 1 }")]
        checker = ScriptedChecker()
        arena, exercise = make_exercise(steps, checker)
        checked = run_pass(arena, exercise)
        assert [t.ids for t, _ in checked] == [(0, 2, 3)]


class TestRouting:
    """CHECK-005: Who gets which feedback, and clearing on edit."""

    def test_message_goes_to_first_hole(self):
        steps = [A("{ x = 1 }"), C("y := x"), H("{ y = 2 }")]
        arena, exercise = make_exercise(steps, ScriptedChecker(failing={"y := x;"}))
        prevalidate_all(arena, exercise)
        run_pass(arena, exercise)
        assert arena.get(2).feedback == Feedback.incorrect("bad y := x;")
        assert arena.get(0).feedback == Feedback.incorrect()
        assert arena.get(1).feedback == Feedback.incorrect()
        assert not arena.get(2).can_submit()

    def test_first_of_two_holes(self):
        steps = [H("{ x = 1 }"), C("y := x"), H("{ y = 2 }")]
        arena, exercise = make_exercise(steps, ScriptedChecker(failing={"y := x;"}))
        prevalidate_all(arena, exercise)
        run_pass(arena, exercise)
        assert arena.get(0).feedback.body == "bad y := x;"
        assert arena.get(2).feedback == Feedback.incorrect()

    def test_edit_clears_triple_once(self):
        steps = [A("{ x = 1 }"), C("y := x"), H("{ y = 2 }")]
        arena, exercise = make_exercise(steps, ScriptedChecker(failing={"y := x;"}))
        prevalidate_all(arena, exercise)
        run_pass(arena, exercise)
        assert arena.listener_count == 1

        arena.get(2).set_attempt(arena, "{ y = 1 }")
        assert kinds(arena, range(3)) == [EMPTY, EMPTY, EMPTY]
        assert arena.listener_count == 0

    def test_feedback_change_without_edit_keeps_listener(self):
        steps = [A("{ x = 1 }"), C("y := x"), H("{ y = 2 }")]
        arena, exercise = make_exercise(steps, ScriptedChecker(failing={"y := x;"}))
        prevalidate_all(arena, exercise)
        run_pass(arena, exercise)
        arena.get(2).set_feedback(arena, Feedback.message("note"))
        assert arena.listener_count == 1
        assert arena.get(0).feedback == Feedback.incorrect()

    def test_one_shot_across_holes(self):
        steps = [H("{ x = 1 }"), C("y := x"), H("{ y = 2 }")]
        arena, exercise = make_exercise(steps, ScriptedChecker(failing={"y := x;"}))
        prevalidate_all(arena, exercise)
        run_pass(arena, exercise)
        assert arena.listener_count == 2

        arena.get(2).set_attempt(arena, "{ y = 1 }")
        assert arena.listener_count == 0
        assert kinds(arena, range(3)) == [EMPTY, EMPTY, EMPTY]

        arena.get(1).set_feedback(arena, Feedback.message("kept"))
        arena.get(0).set_attempt(arena, "{ x = 2 }")
        assert arena.get(1).feedback == Feedback.message("kept")

    def test_repeated_passes_keep_one_listener_set(self):
        steps = [H("{ x = 1 }"), C("y := x"), H("{ y = 2 }")]
        arena, exercise = make_exercise(steps, ScriptedChecker(failing={"y := x;"}))
        prevalidate_all(arena, exercise)
        for _ in range(3):
            asyncio.run(exercise.submit(arena))
        assert arena.listener_count == 2

        arena.get(0).set_attempt(arena, "{ x = 2 }")
        assert arena.listener_count == 0
        assert kinds(arena, range(3)) == [EMPTY, EMPTY, EMPTY]

    def test_correct_goes_everywhere(self):
        node = HoareTripleNode(0, 1, 2)
        arena, _ = make_exercise([H("{ y = 1 }"), C("skip"), A("{ y = 1 }")])
        node.set_feedback(arena, Feedback.correct())
        assert kinds(arena, range(3)) == [CORRECT, CORRECT, CORRECT]
        assert arena.listener_count == 0

    def test_incomplete_triple(self):
        arena, _ = make_exercise([H(), C("skip"), A("{ true }")])
        assert HoareTripleNode(0, 1, 2).get_hoare_triple(arena) is None


class TestSubmit:
    """CHECK-006: Submitting from a hole."""

    STEPS = [A("{ x = 1 }"), C("y := x"), H("{ y = 1 }")]

    def test_refused_until_prevalidated(self):
        checker = ScriptedChecker()
        arena, exercise = make_exercise(self.STEPS, checker)
        assert asyncio.run(exercise.submit(arena, from_hole=2)) is False
        assert checker.seen == []

    def test_accepted(self):
        checker = ScriptedChecker()
        arena, exercise = make_exercise(self.STEPS, checker)
        prevalidate_all(arena, exercise)
        assert asyncio.run(exercise.submit(arena, from_hole=2)) is True
        assert checker.seen == ["y := x;"]

    def test_refused_with_outstanding_feedback(self):
        checker = ScriptedChecker(failing={"y := x;"})
        arena, exercise = make_exercise(self.STEPS, checker)
        prevalidate_all(arena, exercise)
        asyncio.run(exercise.submit(arena, from_hole=2))
        assert asyncio.run(exercise.submit(arena, from_hole=2)) is False
        assert checker.seen == ["y := x;"]

    def test_without_hole(self):
        arena, exercise = make_exercise(self.STEPS, ScriptedChecker())
        assert asyncio.run(exercise.submit(arena)) is True


class TestZ3Checkers:
    """CHECK-007: Triple checkers backed by Z3."""

    def test_whole_proof_with_z3(self):
        steps = [
            A("{ x = 1 }"), C("y := x + 1"), H("{ y = 2 }"), C("z := y * 2"), A("{ z = 4 }"),
        ]
        arena, exercise = make_exercise(steps)
        prevalidate_all(arena, exercise)
        checked = run_pass(arena, exercise)
        assert [fb.kind for _, fb in checked] == [CORRECT, CORRECT]

    def test_wrong_hole_with_z3(self):
        steps = [
            A("{ x = 1 }"), C("y := x + 1"), H("{ y = 3 }"), C("z := y * 2"), A("{ z = 4 }"),
        ]
        arena, exercise = make_exercise(steps)
        prevalidate_all(arena, exercise)
        checked = run_pass(arena, exercise)
        assert len(checked) == 1
        body = arena.get(2).feedback.body
        assert "    y: 3" in body and "    z: 6" in body
        assert "    z := y * 2;" in body

    def test_false_precondition_allowed(self):
        triple = HoareTripleNode(0, 1, 2)
        arena, _ = make_exercise([A("{ false }"), C("x := 1"), A("{ x = 2 }")])
        checker = IsLegitHoareTripleZ3Checker(Z3Env())
        fb = asyncio.run(checker.check(triple.get_hoare_triple(arena)))
        assert fb.is_correct

    def test_false_precondition_rejected(self):
        triple = HoareTripleNode(0, 1, 2)
        arena, _ = make_exercise([A("{false}"), C("x := 1"), A("{ x = 2 }")])
        checker = NoFalsePrecondZ3Checker(Z3Env())
        fb = asyncio.run(checker.check(triple.get_hoare_triple(arena)))
        assert fb == Feedback.message(FALSE_PRECONDITION_MESSAGE)
        assert not fb.is_incorrect

    def test_other_preconditions_still_checked(self):
        triple = HoareTripleNode(0, 1, 2)
        arena, _ = make_exercise([A("{ x = 1 }"), C("y := x"), A("{ y = 1 }")])
        checker = NoFalsePrecondZ3Checker(Z3Env())
        assert asyncio.run(checker.check(triple.get_hoare_triple(arena))).is_correct

    def test_walk_continues_past_false_precondition(self):
        steps = [
            A("{ x = 0 }"), C("x := 1"), H("{ false }"), C("y := 1"), A("{ y = 1 }"),
        ]
        arena, exercise = make_exercise(steps, NoFalsePrecondZ3Checker(Z3Env()))
        prevalidate_all(arena, exercise)
        checked = run_pass(arena, exercise)
        assert [(t.ids, fb.kind) for t, fb in checked] == [
            ((2, 3, 4), FeedbackKind.MESSAGE),
            ((0, 1, 2), INCORRECT),
        ]
        # The earlier triple re-routes the shared hole.
        assert "    x: 1" in arena.get(2).feedback.body
        assert kinds(arena, range(5)) == [INCORRECT, INCORRECT, INCORRECT, INCORRECT, INCORRECT]

    def test_false_precondition_message_survives_prevalidation(self):
        steps = [H("{ false }"), C("y := 1"), A("{ y = 1 }")]
        arena, exercise = make_exercise(steps, NoFalsePrecondZ3Checker(Z3Env()))
        prevalidate_all(arena, exercise)
        run_pass(arena, exercise)
        prevalidate_all(arena, exercise)
        assert arena.get(0).feedback == Feedback.message(FALSE_PRECONDITION_MESSAGE)
        assert arena.get(1).feedback == Feedback.incorrect()
        assert not arena.get(0).can_submit()

    @pytest.mark.parametrize("allow, cls", [
        (True, IsLegitHoareTripleZ3Checker),
        (False, NoFalsePrecondZ3Checker),
    ])
    def test_make_triple_checker(self, allow, cls):
        checker = make_triple_checker(Z3Env(), HLProofConfig(allow_false_precondition=allow))
        assert type(checker) is cls
