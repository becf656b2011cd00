# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for sub-workflow nodes, WorkflowLoader and the sequential runner
"""

import json
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from storyflow.core.errors import NotFoundError
from storyflow.workflow.context import ExecutionContext
from storyflow.workflow.executor import WorkflowExecutor
from storyflow.workflow.loader import WorkflowLoader
from storyflow.workflow.models import FailureKind, NodeStatus
from storyflow.workflow.runner import SequentialWorkflowRunner
from tests.helpers import LOCAL_PROVIDER, node, workflow


WORLD_BUILDER = {
    "id": "world-builder",
    "name": "World builder",
    "version": "2.0.0",
    "graph": {
        "nodes": [
            {"id": "is-fantasy", "type": "conditional", "name": "Fantasy?",
             "condition": "premise == 'dragons'"},
            {"id": "setting", "type": "planning", "name": "Setting", "provider": LOCAL_PROVIDER,
             "agent": "worldbuilder", "prompt": "Describe a world for {{premise}}",
             "outputVariable": "world"},
        ],
        "edges": [{"id": "e1", "source": "is-fantasy", "target": "setting"}],
    },
}


@pytest.fixture
def workflows_dir():
    """Temporary workflows directory holding world-builder.json"""
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir)
        (path / "world-builder.json").write_text(json.dumps(WORLD_BUILDER))
        yield path


@pytest.fixture
def loader(workflows_dir):
    return WorkflowLoader(base_dir=str(workflows_dir))


@pytest.fixture
def sub_executor(provider_manager, loader, config):
    return WorkflowExecutor(provider_manager, workflow_loader=loader, config=config)


class TestWorkflowLoader:
    """Test WorkflowLoader"""

    @pytest.mark.asyncio
    async def test_load_latest(self, loader):
        """Should load <id>.json as latest"""
        definition = await loader.load("world-builder")

        assert definition.version == "2.0.0"
        assert [n.id for n in definition.graph.nodes] == ["is-fantasy", "setting"]

    @pytest.mark.asyncio
    async def test_load_pinned_version(self, loader, workflows_dir):
        """Should prefer <id>@<version>.json for an exact version"""
        pinned = dict(WORLD_BUILDER, version="1.0.0", name="Old world builder")
        (workflows_dir / "world-builder@1.0.0.json").write_text(json.dumps(pinned))

        definition = await loader.load("world-builder", "1.0.0")

        assert definition.name == "Old world builder"

    @pytest.mark.asyncio
    async def test_load_yaml(self, workflows_dir, loader):
        """Should read YAML definitions"""
        (workflows_dir / "tiny.yaml").write_text(
            "id: tiny\nname: Tiny\ngraph:\n  nodes:\n"
            "    - {id: check, type: conditional, name: Check, condition: 'true'}\n"
        )

        definition = await loader.load("tiny")

        assert definition.graph.nodes[0].condition == "true"

    @pytest.mark.asyncio
    async def test_version_mismatch(self, loader):
        """Should raise NotFoundError when no file has the version"""
        with pytest.raises(NotFoundError):
            await loader.load("world-builder", "9.9.9")

    @pytest.mark.asyncio
    async def test_save_then_load(self, loader):
        """Should save definitions as camelCase JSON"""
        definition = workflow("saved", [{"id": "check", "type": "conditional", "name": "Check",
                                         "condition": "true", "conditionType": "expression"}])

        path = await loader.save(definition, pin_version=True)

        assert path.endswith("saved@1.0.0.json")
        assert '"conditionType": "expression"' in Path(path).read_text()
        loaded = await loader.load("saved", "1.0.0")
        assert loaded.graph.nodes[0].condition_type == "expression"


class TestSubWorkflowNode:
    """Sub-workflow execution through the executor"""

    @pytest.mark.asyncio
    async def test_runs_child_and_merges_variables(self, sub_executor, context, scripted_adapter):
        """Should run the child in its own context and merge its variables back"""
        context.variables["premise"] = "dragons"
        scripted_adapter.outputs = ['{"continent": "Velmora"}']

        result = await sub_executor.execute(
            node("world", "subworkflow", subWorkflowId="world-builder"), context
        )

        assert result.status == NodeStatus.SUCCESS
        assert result.output["status"] == "success"
        assert result.output["instanceId"] == "run-1-sub-world"
        assert result.output["completedNodes"] == ["is-fantasy", "setting"]
        assert context.variables["conditionResult"] is True
        assert context.variables["world"] == {"continent": "Velmora"}
        # Child node outputs stay in the child context
        assert list(context.node_outputs) == ["world"]
        assert scripted_adapter.requests[0].prompt.startswith("Describe a world for dragons")

    @pytest.mark.asyncio
    async def test_advanced_mode_passes_inputs_only(self, sub_executor, context, scripted_adapter):
        """Should hand the child only the mapped inputs"""
        context.variables.update({"storyPremise": "dragons", "draft": "unrelated"})

        result = await sub_executor.execute(node(
            "world", "subworkflow", subWorkflowId="world-builder",
            contextConfig={
                "mode": "advanced",
                "inputs": [{"source": "storyPremise", "target": "premise"}],
                "outputs": [{"source": "output.variables.world", "target": "worldNotes"}],
            },
        ), context)

        assert result.status == NodeStatus.SUCCESS
        assert "draft" not in result.output["variables"]
        assert context.variables["worldNotes"] == "ok"
        assert "conditionResult" not in context.variables

    @pytest.mark.asyncio
    async def test_missing_workflow(self, sub_executor, context):
        """Should be a configuration error when the child does not exist"""
        result = await sub_executor.execute(
            node("world", "subworkflow", subWorkflowId="no-such-flow"), context
        )

        assert result.error_kind == FailureKind.CONFIGURATION

    @pytest.mark.asyncio
    async def test_child_failure(self, sub_executor, context):
        """Should fail when a child node fails"""
        # premise is undefined, so the child's conditional cannot evaluate
        result = await sub_executor.execute(
            node("world", "subworkflow", subWorkflowId="world-builder"), context
        )

        assert result.status == NodeStatus.FAILED
        assert result.error_kind == FailureKind.EXECUTION
        assert result.output["status"] == "failed"

    @pytest.mark.asyncio
    async def test_child_failure_with_continue_on_error(self, sub_executor, context):
        """Should succeed with the child's failed status when continueOnError is set"""
        result = await sub_executor.execute(node(
            "world", "subworkflow", subWorkflowId="world-builder", continueOnError=True
        ), context)

        assert result.status == NodeStatus.SUCCESS
        assert result.output["status"] == "failed"

    @pytest.mark.asyncio
    async def test_depth_limit(self, sub_executor, config):
        """Should refuse to nest deeper than the configured depth"""
        deep = ExecutionContext("run-1", "novel-pipeline", depth=config.subworkflow_max_depth)

        result = await sub_executor.execute(
            node("world", "subworkflow", subWorkflowId="world-builder"), deep
        )

        assert result.error_kind == FailureKind.CONFIGURATION

    @pytest.mark.asyncio
    async def test_without_loader(self, executor, context):
        """Should be a configuration error without a workflow loader"""
        result = await executor.execute(
            node("world", "subworkflow", subWorkflowId="world-builder"), context
        )

        assert result.error_kind == FailureKind.CONFIGURATION


class TestSequentialRunner:
    """Test SequentialWorkflowRunner"""

    @pytest.mark.asyncio
    async def test_runs_in_topological_order(self, executor, context):
        """Should run nodes in dependency order"""
        definition = workflow("flow", [
            {"id": "second", "type": "conditional", "name": "Second", "condition": "conditionResult"},
            {"id": "first", "type": "conditional", "name": "First", "condition": "1 < 2"},
        ], [{"id": "e1", "source": "first", "target": "second"}])

        run = await SequentialWorkflowRunner(executor).run(definition, context)

        assert run.status == NodeStatus.SUCCESS
        assert [r.node_id for r in run.results] == ["first", "second"]
        assert context.completed_at is not None

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, executor, context):
        """Should stop after the first failed node"""
        definition = workflow("flow", [
            {"id": "broken", "type": "conditional", "name": "Broken", "condition": "missing"},
            {"id": "after", "type": "conditional", "name": "After", "condition": "true"},
        ])

        run = await SequentialWorkflowRunner(executor).run(definition, context)

        assert run.status == NodeStatus.FAILED
        assert [r.node_id for r in run.results] == ["broken"]
        assert "broken" in run.error

    @pytest.mark.asyncio
    async def test_pops_loop_frames(self, executor, context):
        """Should leave no loop frame behind"""
        definition = workflow("flow", [
            {"id": "twice", "type": "loop", "name": "Twice", "loopType": "count", "count": 2},
            {"id": "after", "type": "conditional", "name": "After", "condition": "iterationCount == 2"},
        ], [{"id": "e1", "source": "twice", "target": "after"}])

        run = await SequentialWorkflowRunner(executor).run(definition, context)

        assert run.status == NodeStatus.SUCCESS
        assert context.current_loop is None
        assert context.variables["conditionResult"] is True
