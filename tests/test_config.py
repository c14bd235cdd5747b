"""hlproof Configuration Tests: CONFIG-001 through CONFIG-002."""

import json

from hlproof.config import HLProofConfig, find_config, load_config


class TestDefaults:
    """CONFIG-001: Defaults when nothing is configured."""

    def test_defaults(self):
        config = HLProofConfig()
        assert config.solver_timeout_ms == 10000
        assert config.allow_false_precondition is True
        assert config.log_level == "WARNING"
        assert config.feedback_debounce_ms == 300
        assert config.placeholder_prompt == "{ }"

    def test_missing_path(self, tmp_path):
        assert load_config(str(tmp_path / "absent.json")) == HLProofConfig()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / ".hlproofrc.json"
        path.write_text("{ not json")
        assert load_config(str(path)) == HLProofConfig()

    def test_not_an_object(self, tmp_path):
        path = tmp_path / ".hlproofrc.json"
        path.write_text("[1, 2]")
        assert load_config(str(path)) == HLProofConfig()


class TestLoading:
    """CONFIG-002: Reading and discovering config files."""

    def test_all_keys(self, tmp_path):
        path = tmp_path / ".hlproofrc.json"
        path.write_text(json.dumps({
            "solver_timeout_ms": 500,
            "allow_false_precondition": False,
            "log_level": "debug",
            "feedback_debounce_ms": 50,
            "placeholder_prompt": "{ ... }",
        }))
        config = load_config(str(path))
        assert config == HLProofConfig(
            solver_timeout_ms=500,
            allow_false_precondition=False,
            log_level="DEBUG",
            feedback_debounce_ms=50,
            placeholder_prompt="{ ... }",
        )

    def test_partial(self, tmp_path):
        path = tmp_path / "hlproof.config.json"
        path.write_text(json.dumps({"solver_timeout_ms": 42}))
        config = load_config(str(path))
        assert config.solver_timeout_ms == 42
        assert config.allow_false_precondition is True

    def test_find_walks_up(self, tmp_path):
        (tmp_path / ".hlproofrc.json").write_text("{}")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(str(nested)) == str(tmp_path / ".hlproofrc.json")

    def test_priority(self, tmp_path):
        (tmp_path / "hlproof.config.json").write_text("{}")
        (tmp_path / ".hlproofrc.json").write_text("{}")
        assert find_config(str(tmp_path)) == str(tmp_path / ".hlproofrc.json")

    def test_nearest_wins(self, tmp_path):
        (tmp_path / ".hlproofrc.json").write_text(json.dumps({"solver_timeout_ms": 1}))
        inner = tmp_path / "inner"
        inner.mkdir()
        (inner / "hlproof.config.json").write_text(json.dumps({"solver_timeout_ms": 2}))
        assert load_config(start_dir=str(inner)).solver_timeout_ms == 2
