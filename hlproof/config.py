"""hlproof configuration: project-level .hlproofrc.json support.

Loads configuration from .hlproofrc.json (or hlproof.config.json) found
by walking up from the working directory. Missing or unreadable files
give the defaults.

Example .hlproofrc.json:
    {
      "solver_timeout_ms": 5000,
      "allow_false_precondition": false,
      "log_level": "DEBUG",
      "feedback_debounce_ms": 300,
      "placeholder_prompt": "{ }"
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class HLProofConfig:
    """Project-level hlproof configuration."""
    # Z3 timeout per triple
    solver_timeout_ms: int = 10000
    # When false, `{ false }` is rejected as a precondition
    allow_false_precondition: bool = True
    log_level: str = "WARNING"
    # Delay between the last edit of a hole and its prevalidation
    feedback_debounce_ms: int = 300
    # Text initially shown in an empty hole
    placeholder_prompt: str = "{ }"


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".hlproofrc.json",
    "hlproof.config.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> HLProofConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return HLProofConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (IOError, OSError, json.JSONDecodeError):
        return HLProofConfig()

    if not isinstance(data, dict):
        return HLProofConfig()
    return _dict_to_config(data)


def _dict_to_config(data: dict[str, Any]) -> HLProofConfig:
    """Convert a parsed dict to HLProofConfig."""
    config = HLProofConfig()

    if "solver_timeout_ms" in data:
        config.solver_timeout_ms = int(data["solver_timeout_ms"])
    if "allow_false_precondition" in data:
        config.allow_false_precondition = bool(data["allow_false_precondition"])
    if "log_level" in data:
        config.log_level = str(data["log_level"]).upper()
    if "feedback_debounce_ms" in data:
        config.feedback_debounce_ms = int(data["feedback_debounce_ms"])
    if "placeholder_prompt" in data:
        config.placeholder_prompt = str(data["placeholder_prompt"])

    return config
