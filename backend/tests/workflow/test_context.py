# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for ExecutionContext
"""

import pytest

from storyflow.workflow.context import ExecutionContext, LoopFrame
from storyflow.workflow.exceptions import WorkflowError
from storyflow.workflow.models import NodeOutput, NodeStatus


def output(node_id, status=NodeStatus.SUCCESS, value="done"):
    return NodeOutput(node_id=node_id, node_name=node_id.title(), status=status, output=value)


def frame(loop_id, items, iterator="item", index="index"):
    return LoopFrame(
        loop_node_id=loop_id,
        iterator_variable=iterator,
        index_variable=index,
        iterations=[{"index": i, "item": item} for i, item in enumerate(items)],
    )


@pytest.fixture
def ctx():
    return ExecutionContext("run-1", "novel-pipeline", project_folder="/books/one",
                            variables={"premise": "dragons"})


class TestNodeOutputs:
    """One output entry per node id"""

    def test_failed_output_can_be_replaced(self, ctx):
        """Should let a retry replace a failed entry"""
        ctx.record_output(output("review", NodeStatus.FAILED, "65"))
        ctx.record_output(output("review", NodeStatus.SUCCESS, "85"))

        assert ctx.get_output("review").output == "85"
        assert len(ctx.node_outputs) == 1

    def test_rerun_replaces_success(self, ctx):
        """Should keep one entry holding the latest run outside a loop"""
        ctx.record_output(output("outline", value="draft 1"))
        ctx.record_output(output("outline", value="draft 2"))

        assert ctx.get_output("outline").output == "draft 2"
        assert len(ctx.node_outputs) == 1

    def test_success_replaced_inside_loop(self, ctx):
        """Should allow re-entry of a loop body and keep per-iteration outputs"""
        ctx.push_loop(frame("each", ["a", "b"]))

        ctx.enter_iteration(0)
        ctx.record_output(output("draft", value="draft a"))
        ctx.enter_iteration(1)
        ctx.record_output(output("draft", value="draft b"))

        iterations = ctx.variables["iterations"]
        assert iterations[0]["outputs"] == {"draft": "draft a"}
        assert iterations[1]["outputs"] == {"draft": "draft b"}

    def test_loop_node_not_recorded_in_own_iterations(self, ctx):
        """Should not add the loop node's output to its own iteration record"""
        ctx.push_loop(frame("each", ["a"]))
        ctx.enter_iteration(0)

        ctx.record_output(output("each"))

        assert "outputs" not in ctx.variables["iterations"][0]

    def test_completed_nodes_in_order(self, ctx):
        ctx.mark_completed("a")
        ctx.mark_completed("b")
        ctx.mark_completed("a")

        assert ctx.completed_nodes == ["a", "b"]
        assert ctx.is_completed("b")


class TestLoopStack:
    """Nested loop frames"""

    def test_enter_iteration_binds_variables(self, ctx):
        ctx.push_loop(frame("each", ["Arrival", "Storm"], iterator="chapter", index="chapterIndex"))

        bindings = ctx.enter_iteration(1)

        assert bindings == {"chapter": "Storm", "chapterIndex": 1}
        assert ctx.variables["chapter"] == "Storm"
        assert ctx.variables["iterationCount"] == 2

    def test_enter_iteration_out_of_range(self, ctx):
        ctx.push_loop(frame("each", ["a"]))

        with pytest.raises(WorkflowError):
            ctx.enter_iteration(3)

    def test_enter_iteration_without_loop(self, ctx):
        with pytest.raises(WorkflowError):
            ctx.enter_iteration(0)

    def test_exit_restores_outer_loop(self, ctx):
        """Should restore the outer loop's iterations and bindings"""
        ctx.push_loop(frame("books", ["Book one", "Book two"], iterator="book"))
        ctx.enter_iteration(1)
        ctx.push_loop(frame("chapters", ["c1", "c2", "c3"], iterator="chapter"))
        assert ctx.variables["iterationCount"] == 3

        popped = ctx.exit_loop()

        assert popped.loop_node_id == "chapters"
        assert ctx.current_loop.loop_node_id == "books"
        assert ctx.variables["iterationCount"] == 2
        assert ctx.variables["book"] == "Book two"

    def test_exit_without_loop(self, ctx):
        with pytest.raises(WorkflowError):
            ctx.exit_loop()


class TestViews:
    """Read-only views and child contexts"""

    def test_view_shape(self, ctx):
        ctx.record_output(output("outline"))

        view = ctx.view()

        assert view["variables"]["premise"] == "dragons"
        assert view["nodeOutputs"]["outline"]["nodeName"] == "Outline"
        assert view["projectFolder"] == "/books/one"
        assert view["instanceId"] == "run-1"
        assert view["workflowId"] == "novel-pipeline"

    def test_create_child(self, ctx):
        """Should build an isolated child one level deeper"""
        child = ctx.create_child("world", "world-builder", {"premise": "dragons"})

        assert child.instance_id == "run-1-sub-world"
        assert child.workflow_id == "world-builder"
        assert child.depth == 1
        assert child.project_folder == "/books/one"
        child.variables["extra"] = 1
        assert "extra" not in ctx.variables

    def test_finalize(self, ctx):
        assert ctx.completed_at is None
        ctx.finalize()
        assert ctx.completed_at is not None
