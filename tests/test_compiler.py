# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Tests for compiler.py module."""

import pytest
import yaml

from ibmi.compiler import CompileError, compile_flow, list_flows, load_flow_yaml
from conftest import CONNECTION


def _flow(**overrides):
    flow = {
        "id": "nightly",
        "namespace": "banking.core",
        "tasks": [
            {
                "id": "calc",
                "type": "cobol.call_job",
                "connection": CONNECTION,
                "library": "FINLIB",
                "program": "CALCINT",
                "parameters": ["{{ inputs.run_date }}"],
            },
        ],
    }
    flow.update(overrides)
    return flow


class TestLoadFlowYaml:
    """Test flow loading."""

    def test_by_id(self, tmp_path):
        (tmp_path / "nightly.yaml").write_text(yaml.safe_dump(_flow()))
        assert load_flow_yaml("nightly", tmp_path)["id"] == "nightly"

    def test_by_path(self, tmp_path):
        path = tmp_path / "custom.yml"
        path.write_text(yaml.safe_dump(_flow(id="custom")))
        assert load_flow_yaml(str(path))["id"] == "custom"

    def test_not_found(self, tmp_path):
        with pytest.raises(CompileError, match="Flow not found: missing"):
            load_flow_yaml("missing", tmp_path)

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("id: [unclosed\n")
        with pytest.raises(CompileError, match="Invalid YAML"):
            load_flow_yaml("broken", tmp_path)

    def test_not_a_mapping(self, tmp_path):
        (tmp_path / "list.yaml").write_text("- a\n")
        with pytest.raises(CompileError, match="must be a mapping"):
            load_flow_yaml("list", tmp_path)

    def test_list_flows(self, tmp_path):
        (tmp_path / "b.yaml").write_text("id: b\n")
        (tmp_path / "a.yaml").write_text("id: a\n")
        (tmp_path / "notes.txt").write_text("")
        assert list_flows(tmp_path) == ["a", "b"]

    def test_list_flows_missing_dir(self, tmp_path):
        assert list_flows(tmp_path / "nope") == []


class TestCompileFlow:
    """Test flow compilation."""

    def test_compiles_tasks(self):
        instance = compile_flow(_flow(), inputs={"run_date": "2026-01-31"})

        assert instance.flow_id == "nightly"
        assert instance.namespace == "banking.core"
        assert instance.revision == 1
        assert len(instance.tasks) == 1

        task = instance.tasks[0]
        assert task.task_id == "calc"
        assert task.type == "cobol.call_job"
        assert task.allow_failure is False
        # Templates are left for the run context
        assert task.properties["parameters"] == ["{{ inputs.run_date }}"]
        assert "id" not in task.properties
        assert "type" not in task.properties

    def test_allow_failure(self):
        flow = _flow()
        flow["tasks"][0]["allow_failure"] = True
        assert compile_flow(flow).tasks[0].allow_failure is True

    @pytest.mark.parametrize("key", ["id", "namespace"])
    def test_missing_flow_key(self, key):
        with pytest.raises(CompileError, match=f"missing '{key}'"):
            compile_flow(_flow(**{key: None}))

    def test_no_tasks(self):
        with pytest.raises(CompileError, match="has no tasks"):
            compile_flow(_flow(tasks=[]))

    def test_task_missing_type(self):
        with pytest.raises(CompileError, match="missing 'type'"):
            compile_flow(_flow(tasks=[{"id": "x"}]))

    def test_task_missing_id(self):
        with pytest.raises(CompileError, match="Task #1 is missing 'id'"):
            compile_flow(_flow(tasks=[{"type": "cobol.call_job"}]))

    def test_unknown_type(self):
        with pytest.raises(CompileError, match="Unknown task type 'cobol.Run'"):
            compile_flow(_flow(tasks=[{"id": "x", "type": "cobol.Run"}]))

    def test_duplicate_ids(self):
        task = {"id": "x", "type": "cobol.call_job"}
        with pytest.raises(CompileError, match="Duplicate task id: x"):
            compile_flow(_flow(tasks=[task, dict(task)]))


class TestInputs:
    """Test input resolution."""

    def test_defaults_and_overrides(self):
        flow = _flow(inputs=[
            {"id": "run_date", "type": "STRING", "defaults": "2026-01-31"},
            {"id": "account_type", "defaults": "CHECKING"},
        ])

        instance = compile_flow(flow, inputs={"account_type": "SAVINGS"})

        assert instance.inputs == {"run_date": "2026-01-31", "account_type": "SAVINGS"}

    def test_required_missing(self):
        flow = _flow(inputs=[{"id": "business_date", "type": "STRING", "required": True}])
        with pytest.raises(CompileError, match="Missing required input: business_date"):
            compile_flow(flow)

    def test_optional_missing(self):
        flow = _flow(inputs=[{"id": "note", "required": False}])
        assert compile_flow(flow).inputs == {"note": None}

    def test_coercion(self):
        flow = _flow(inputs=[
            {"id": "date", "type": "STRING"},
            {"id": "count", "type": "INT"},
            {"id": "rate", "type": "FLOAT"},
            {"id": "full", "type": "BOOLEAN"},
        ])

        inputs = compile_flow(flow, inputs={"date": 20260131, "count": "3", "rate": "1.5", "full": "yes"}).inputs

        assert inputs == {"date": "20260131", "count": 3, "rate": 1.5, "full": True}

    def test_string_keeps_leading_zeros(self):
        flow = _flow(inputs=[{"id": "account", "type": "STRING"}])
        assert compile_flow(flow, inputs={"account": "007"}).inputs == {"account": "007"}

    def test_json_from_string(self):
        flow = _flow(inputs=[{"id": "accounts", "type": "JSON"}])
        inputs = compile_flow(flow, inputs={"accounts": '["007", "010"]'}).inputs
        assert inputs == {"accounts": ["007", "010"]}

    def test_invalid_json(self):
        flow = _flow(inputs=[{"id": "accounts", "type": "JSON"}])
        with pytest.raises(CompileError, match="not a valid JSON"):
            compile_flow(flow, inputs={"accounts": "[007"})

    def test_invalid_boolean(self):
        flow = _flow(inputs=[{"id": "full", "type": "BOOLEAN"}])
        with pytest.raises(CompileError, match="not a valid BOOLEAN"):
            compile_flow(flow, inputs={"full": "maybe"})

    def test_invalid_int(self):
        flow = _flow(inputs=[{"id": "count", "type": "INT"}])
        with pytest.raises(CompileError, match="not a valid INT"):
            compile_flow(flow, inputs={"count": "three"})

    def test_unknown_input_type(self):
        flow = _flow(inputs=[{"id": "when", "type": "DATETIME"}])
        with pytest.raises(CompileError, match="Unknown type 'DATETIME'"):
            compile_flow(flow)

    def test_undeclared_inputs_pass_through(self):
        assert compile_flow(_flow(), inputs={"extra": 1}).inputs == {"extra": 1}
