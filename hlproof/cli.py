"""hlproof CLI: command-line interface for the Hoare-logic proof checker.

Commands:
  hlproof parse <source> [--tree]               Parse and pretty-print one assertion or command
  hlproof check <file> [--json] [--config PATH] Check a proof written in the text format
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from hlproof import __version__
from hlproof.config import HLProofConfig, load_config
from hlproof.engines.hoare import Z3Env
from hlproof.errors import ParseTranslationError, ProofLoadError
from hlproof.lang.parser import parse_concrete
from hlproof.lang.translate import parse
from hlproof.proof.arena import Arena
from hlproof.proof.checker import HLProofExerciseZ3Checker, make_triple_checker
from hlproof.proof.exercise import HLProofExercise, build_exercise, load_proof_text
from hlproof.proof.nodes import (
    CommandNode, GivenAssertionNode, HoleNode, ProofExerciseNode, RemarkNode,
    is_core_proof_step,
)
from hlproof.proof.segment import segment_into_hoare_triples

logger = logging.getLogger(__name__)


def _configure_logging(config: HLProofConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse a single declaration and print its pretty-printed form."""
    try:
        if args.tree:
            tree = parse_concrete(args.source.strip())
            print(tree.root.pretty(tree.source))
            return 0
        decl = parse(args.source)
    except ParseTranslationError as e:
        print(e.to_json())
        return 1
    print(decl)
    return 0


async def _check_exercise(arena: Arena, exercise: ProofExerciseNode) -> list:
    for hole in exercise.get_holes(arena):
        await hole.prevalidate(arena)
    return await exercise.feedback_giver.give_and_show_feedback(arena, exercise)


def _describe(node) -> tuple[str, str]:
    if isinstance(node, GivenAssertionNode):
        return "assertion", node.assertion.original_input
    if isinstance(node, CommandNode):
        return "command", node.command.original_input
    if isinstance(node, HoleNode):
        return "hole", node.attempt or node.placeholder_prompt
    if isinstance(node, RemarkNode):
        return "remark", node.remark.body
    return type(node).__name__, ""


def _format_pretty(arena: Arena, exercise: ProofExerciseNode) -> str:
    lines = []
    for node in exercise.get_proof_steps(arena):
        kind, text = _describe(node)
        if kind == "remark":
            lines.append(f"    > {text}")
            continue
        feedback = node.feedback
        mark = " "
        if feedback.is_correct:
            mark = "✓"
        elif feedback.is_incorrect:
            mark = "✗"
        elif not feedback.is_empty:
            mark = "!"
        lines.append(f"{mark} [{node.id}] {text}")
        if feedback.body and not feedback.is_correct:
            lines.extend(f"      {line}" for line in feedback.body.splitlines())
    return "\n".join(lines)


def _format_json(arena: Arena, exercise: ProofExerciseNode, checked: list, complete: bool) -> str:
    steps = []
    for node in exercise.get_proof_steps(arena):
        kind, text = _describe(node)
        entry = {"id": node.id, "kind": kind, "text": text}
        if hasattr(node, "feedback"):
            entry["feedback"] = node.feedback.to_dict()
        if isinstance(node, HoleNode):
            entry["state"] = node.state.value
        steps.append(entry)
    triples = [
        {"ids": list(triple.ids), "feedback": feedback.to_dict()}
        for triple, feedback in checked
    ]
    return json.dumps({"steps": steps, "triples": triples, "complete": complete}, indent=2, ensure_ascii=False)


def cmd_check(args: argparse.Namespace) -> int:
    """Check every Hoare triple of a proof file."""
    source_path = args.file
    if args.config:
        config = load_config(args.config)
    else:
        config = load_config(start_dir=os.path.dirname(os.path.abspath(source_path)))
    _configure_logging(config)

    if not os.path.exists(source_path):
        print(json.dumps({"error": f"File not found: {source_path}"}))
        return 2

    with open(source_path, "r") as f:
        text = f.read()

    try:
        steps = load_proof_text(text, config.placeholder_prompt)
    except ProofLoadError as e:
        print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False))
        return 2

    env = Z3Env.from_config(config)
    checker = HLProofExerciseZ3Checker(env, make_triple_checker(env, config))
    arena = Arena(config.feedback_debounce_ms)
    exercise = build_exercise(arena, HLProofExercise(steps, checker))

    checked = asyncio.run(_check_exercise(arena, exercise))
    core_steps = [s for s in exercise.get_proof_steps(arena) if is_core_proof_step(s)]
    total = len(segment_into_hoare_triples(core_steps))
    complete = len(checked) == total and all(fb.is_correct for _, fb in checked)
    logger.debug("checked %d of %d triples", len(checked), total)

    if args.json:
        print(_format_json(arena, exercise, checked, complete))
    else:
        print(_format_pretty(arena, exercise))
        print()
        print(f"{len(checked)}/{total} triples checked: {'proof correct' if complete else 'proof not yet correct'}")
    return 0 if complete else 1


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="hlproof",
        description="Hoare-logic proof checker for the Imp language",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # parse
    p_parse = subparsers.add_parser("parse", help="Parse and pretty-print an assertion or command")
    p_parse.add_argument("source", help="Imp source, e.g. '{ x > 0 }' or 'x := x + 1;'")
    p_parse.add_argument("--tree", action="store_true", help="Print the concrete syntax tree")
    p_parse.set_defaults(func=cmd_parse)

    # check
    p_check = subparsers.add_parser("check", help="Check a proof file")
    p_check.add_argument("file", help="Proof text file")
    p_check.add_argument("--json", action="store_true", help="Print results as JSON")
    p_check.add_argument("--config", help="Path to a .hlproofrc.json file")
    p_check.set_defaults(func=cmd_check)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
