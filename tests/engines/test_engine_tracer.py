"""Tests for the engine invocation tracer."""

from workflow_engines.tracer import compute_input_fingerprint, traced_engine
from workflow_kernel.domain.workflow import State


class TestInputFingerprint:

    def test_deterministic(self):
        args = {"workflow": State(code="draft", name="Draft")}
        assert compute_input_fingerprint(("workflow",), args) == compute_input_fingerprint(("workflow",), args)

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("data",), {"data": {"x": 1, "y": 2}})
        b = compute_input_fingerprint(("data",), {"data": {"y": 2, "x": 1}})
        assert a == b

    def test_set_order_irrelevant(self):
        a = compute_input_fingerprint(("caps",), {"caps": frozenset({"a", "b", "c"})})
        b = compute_input_fingerprint(("caps",), {"caps": frozenset({"c", "b", "a"})})
        assert a == b

    def test_different_inputs_differ(self):
        a = compute_input_fingerprint(("workflow",), {"workflow": State(code="draft")})
        b = compute_input_fingerprint(("workflow",), {"workflow": State(code="done")})
        assert a != b

    def test_missing_field_is_null(self):
        assert len(compute_input_fingerprint(("absent",), {})) == 16


class TestTracedEngine:

    def test_returns_result_and_logs(self, captured_logs):
        @traced_engine("doubler", "2.1", fingerprint_fields=("value",))
        def double(value):
            return value * 2

        assert double(value=21) == 42
        traces = [r for r in captured_logs() if r["message"] == "WORKFLOW_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "doubler"
        assert traces[0]["engine_version"] == "2.1"
        assert traces[0]["trace_type"] == "WORKFLOW_ENGINE_TRACE"
        assert "duration_ms" in traces[0]

    def test_positional_arguments_fingerprinted(self, captured_logs):
        @traced_engine("echo", "1.0", fingerprint_fields=("value",))
        def echo(value):
            return value

        echo(5)
        echo(value=5)
        prints = [r["input_fingerprint"] for r in captured_logs() if r["message"] == "WORKFLOW_ENGINE_TRACE"]
        assert prints[0] == prints[1] != ""
