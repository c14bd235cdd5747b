"""Split a straight-line proof into overlapping Hoare triples.

    { assertion1 }
    command1
    { assertion2 }
    command2
    { assertion3 }

is segmented into [(assertion1, command1, assertion2),
(assertion2, command2, assertion3)]. Holes count as assertions.
"""

from __future__ import annotations

from hlproof.proof.arena import ArenaNode
from hlproof.proof.nodes import CommandNode, HoareTripleNode, has_assertion

HOARE_TRIPLE_SIZE = 3


def _is_hoare_triple(window: list[ArenaNode]) -> bool:
    pre, cmd, post = window
    return has_assertion(pre) and isinstance(cmd, CommandNode) and has_assertion(post)


def segment_into_hoare_triples(proof_steps: list[ArenaNode]) -> list[HoareTripleNode]:
    """Every assertion/command/assertion window, left to right.

    `proof_steps` must already be restricted to core steps (no remarks).
    """
    windows = [
        proof_steps[i:i + HOARE_TRIPLE_SIZE]
        for i in range(len(proof_steps) - HOARE_TRIPLE_SIZE + 1)
    ]
    return [
        HoareTripleNode(pre.id, cmd.id, post.id)
        for pre, cmd, post in filter(_is_hoare_triple, windows)
    ]
