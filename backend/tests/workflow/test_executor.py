# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for WorkflowExecutor
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from storyflow.llm.manager import ProviderManager
from storyflow.llm.models import LLMResponse
from storyflow.workflow.executor import WorkflowExecutor
from storyflow.workflow.models import FailureKind, NodeStatus, NodeType
from tests.helpers import ScriptedAdapter, agent_node, node


class TestAgentNodes:
    """Planning / writing nodes in simple mode"""

    @pytest.mark.asyncio
    async def test_success_records_one_output(self, executor, context, scripted_adapter):
        """Should record exactly one nodeOutputs entry for the node"""
        scripted_adapter.outputs = ["An outline"]

        result = await executor.execute(agent_node("outline"), context)

        assert result.status == NodeStatus.SUCCESS
        assert result.output == "An outline"
        assert list(context.node_outputs) == ["outline"]
        assert context.node_outputs["outline"].status == NodeStatus.SUCCESS
        assert context.node_outputs["outline"].node_name == "Outline"
        assert context.completed_nodes == ["outline"]

    @pytest.mark.asyncio
    async def test_reports_usage(self, executor, context):
        """Should pass the provider's token usage through"""
        result = await executor.execute(agent_node("outline"), context)

        assert result.usage.prompt_tokens == 10
        assert result.usage.completion_tokens == 5
        assert result.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_returns_changed_variables_only(self, executor, context, scripted_adapter):
        """Should return only the variables the node added or replaced"""
        context.variables["premise"] = "dragons"
        scripted_adapter.outputs = ['{"chapters": ["Arrival", "Storm"]}']

        result = await executor.execute(agent_node("outline", outputVariable="outline"), context)

        assert set(result.variables) == {"output", "parsed", "outline"}
        assert result.variables["outline"] == {"chapters": ["Arrival", "Storm"]}
        assert "premise" not in result.variables

    @pytest.mark.asyncio
    async def test_returned_variables_are_copies(self, executor, context, scripted_adapter):
        """Should not hand out references into the context"""
        scripted_adapter.outputs = ['{"chapters": ["Arrival"]}']

        result = await executor.execute(agent_node("outline", outputVariable="outline"), context)
        result.variables["outline"]["chapters"].append("Tampered")

        assert context.variables["outline"] == {"chapters": ["Arrival"]}

    @pytest.mark.asyncio
    async def test_prompt_placeholders_substituted(self, executor, context, scripted_adapter):
        """Should fill {{...}} placeholders from variables"""
        context.variables["premise"] = "dragons"

        await executor.execute(agent_node("outline", prompt="Outline a story about {{premise}}"), context)

        assert scripted_adapter.requests[0].prompt.startswith("Outline a story about dragons")

    @pytest.mark.asyncio
    async def test_simple_mode_sees_previous_outputs(self, executor, context, scripted_adapter):
        """Should hand later nodes every upstream output"""
        scripted_adapter.outputs = ["Chapter plan", "Chapter one"]

        await executor.execute(agent_node("outline"), context)
        await executor.execute(agent_node("draft", "writing"), context)

        request = scripted_adapter.requests[1]
        assert request.context["previousOutputs"] == {"outline": "Chapter plan"}
        assert "## Workflow context" in request.prompt
        assert "Chapter plan" in request.prompt

    @pytest.mark.asyncio
    async def test_loop_back_retry_after_gate_failure(self, executor, context, scripted_adapter):
        """Should re-run the writer after a failed gate and keep its latest draft"""
        scripted_adapter.outputs = ["Draft one", '{"score": 65}', "Draft two", '{"score": 85}']
        writer = agent_node("writer-1", "writing", outputVariable="draft")
        gate = agent_node("review-1", "gate", gateCondition="score >= 80")

        await executor.execute(writer, context)
        rejected = await executor.execute(gate, context)
        rewritten = await executor.execute(writer, context)
        accepted = await executor.execute(gate, context)

        assert rejected.error_kind == FailureKind.GATE_CONDITION
        assert rewritten.status == NodeStatus.SUCCESS
        assert rewritten.variables["draft"] == "Draft two"
        assert accepted.status == NodeStatus.SUCCESS
        assert list(context.node_outputs) == ["writer-1", "review-1"]
        assert context.node_outputs["writer-1"].output == "Draft two"
        assert context.variables["draft"] == "Draft two"
        assert context.completed_nodes == ["writer-1", "review-1"]
        assert len(scripted_adapter.requests) == 4

    @pytest.mark.asyncio
    async def test_provider_failure_is_a_result(self, executor, context, scripted_adapter):
        """Should return provider failures instead of raising"""
        scripted_adapter.outputs = [LLMResponse.failure("Rate limit exceeded", "rate_limit")]

        result = await executor.execute(agent_node("outline"), context)

        assert result.status == NodeStatus.FAILED
        assert result.error_kind == FailureKind.PROVIDER
        assert "Rate limit exceeded" in result.error
        assert context.node_outputs["outline"].status == NodeStatus.FAILED
        assert "outline" not in context.completed_nodes

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_configuration_error(self, executor, context):
        """Should report a provider without adapter as a configuration failure"""
        gpt = {"id": "gpt", "name": "GPT", "type": "openai"}

        result = await executor.execute(agent_node("outline", provider=gpt), context)

        assert result.status == NodeStatus.FAILED
        assert result.error_kind == FailureKind.CONFIGURATION


class TestGateNodes:
    """Gate evaluation and retry through the same node id"""

    @pytest.mark.asyncio
    async def test_gate_rejects_then_accepts(self, executor, context, scripted_adapter):
        """Should fail at 65, then succeed on retry at 85 with one entry"""
        scripted_adapter.outputs = ['{"score": 65}', '{"score": 85}']
        gate = agent_node("review", "gate", gateCondition="score >= 80")

        first = await executor.execute(gate, context)

        assert first.status == NodeStatus.FAILED
        assert first.error_kind == FailureKind.GATE_CONDITION
        assert first.output == '{"score": 65}'
        assert context.node_outputs["review"].output == '{"score": 65}'

        second = await executor.execute(gate, context)

        assert second.status == NodeStatus.SUCCESS
        assert list(context.node_outputs) == ["review"]
        assert context.node_outputs["review"].status == NodeStatus.SUCCESS
        assert context.variables["parsed"] == {"score": 85}

    @pytest.mark.asyncio
    async def test_gate_condition_on_raw_output(self, executor, context, scripted_adapter):
        """Should evaluate conditions against the raw text as well"""
        scripted_adapter.outputs = ["APPROVED: strong opening"]
        gate = agent_node("review", "gate", gateCondition="'APPROVED' in output")

        result = await executor.execute(gate, context)

        assert result.status == NodeStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_gate_condition_on_missing_field(self, executor, context, scripted_adapter):
        """Should report an unresolvable gate field as configuration error"""
        scripted_adapter.outputs = ['{"rating": 90}']
        gate = agent_node("review", "gate", gateCondition="score >= 80")

        result = await executor.execute(gate, context)

        assert result.error_kind == FailureKind.CONFIGURATION


class TestAdvancedBinding:
    """Explicit input and output mappings"""

    @pytest.mark.asyncio
    async def test_output_mapping_extracts_field(self, executor, context, scripted_adapter):
        """Should copy output.characters[0].name into protagonistName"""
        scripted_adapter.outputs = ['{"characters": [{"name": "Ada"}, {"name": "Brin"}]}']
        characters = agent_node("characters", contextConfig={
            "mode": "advanced",
            "outputs": [{"source": "output.characters[0].name", "target": "protagonistName"}],
        })

        result = await executor.execute(characters, context)

        assert result.status == NodeStatus.SUCCESS
        assert context.variables["protagonistName"] == "Ada"
        assert result.variables == {"protagonistName": "Ada"}
        assert "output" not in context.variables

    @pytest.mark.asyncio
    async def test_input_mapping_limits_context(self, executor, context, scripted_adapter):
        """Should hand the provider only the mapped inputs"""
        context.variables.update({"premise": "dragons", "secret": "hidden"})
        draft = agent_node("draft", "writing", contextConfig={
            "mode": "advanced",
            "inputs": [{"source": "premise", "target": "storyPremise"}],
        })

        await executor.execute(draft, context)

        request = scripted_adapter.requests[0]
        assert request.context == {"inputs": {"storyPremise": "dragons"}}
        assert "## Inputs" in request.prompt
        assert "hidden" not in request.prompt

    @pytest.mark.asyncio
    async def test_input_mapping_from_node(self, executor, context, scripted_adapter):
        """Should resolve a mapping against another node's output"""
        scripted_adapter.outputs = ['{"title": "Emberfall"}', "Chapter one"]
        await executor.execute(agent_node("outline"), context)
        draft = agent_node("draft", "writing", contextConfig={
            "mode": "advanced",
            "inputs": [{"source": "output.title", "target": "title", "nodeId": "outline"}],
        })

        await executor.execute(draft, context)

        assert scripted_adapter.requests[1].context == {"inputs": {"title": "Emberfall"}}

    @pytest.mark.asyncio
    async def test_unresolvable_input_is_configuration_error(self, executor, context, scripted_adapter):
        """Should fail before calling the provider when an input is missing"""
        draft = agent_node("draft", "writing", contextConfig={
            "mode": "advanced",
            "inputs": [{"source": "premise", "target": "premise"}],
        })

        result = await executor.execute(draft, context)

        assert result.error_kind == FailureKind.CONFIGURATION
        assert scripted_adapter.requests == []


class TestNodeOptions:
    """skipCondition, timeoutMs and requiresApproval"""

    @pytest.mark.asyncio
    async def test_skip_condition(self, executor, context, scripted_adapter):
        """Should succeed without calling the provider when skipCondition holds"""
        context.variables["premise"] = "dragons"

        result = await executor.execute(
            agent_node("outline", skipCondition="premise === 'dragons'"), context
        )

        assert result.status == NodeStatus.SUCCESS
        assert result.skipped is True
        assert result.output == {"skipped": True}
        assert scripted_adapter.requests == []

    @pytest.mark.asyncio
    async def test_timeout(self, context, config):
        """Should fail with kind timeout when the node overruns timeoutMs"""
        manager = ProviderManager(adapters=[ScriptedAdapter(delay=2.0)], config=config)
        executor = WorkflowExecutor(manager, config=config)

        result = await executor.execute(agent_node("outline", timeoutMs=50), context)

        assert result.status == NodeStatus.FAILED
        assert result.error_kind == FailureKind.TIMEOUT
        assert context.node_outputs["outline"].status == NodeStatus.FAILED

    @pytest.mark.asyncio
    async def test_approval_rejected(self, provider_manager, context, config, scripted_adapter):
        """Should not run the node when approval is refused"""
        input_provider = AsyncMock()
        input_provider.request_approval.return_value = False
        executor = WorkflowExecutor(provider_manager, input_provider=input_provider, config=config)

        result = await executor.execute(agent_node("outline", requiresApproval=True), context)

        assert result.error_kind == FailureKind.APPROVAL_REJECTED
        assert scripted_adapter.requests == []
        request = input_provider.request_approval.await_args.args[0]
        assert request.kind == "approval"
        assert request.node_id == "outline"

    @pytest.mark.asyncio
    async def test_approval_granted(self, provider_manager, context, config):
        """Should run the node once approved"""
        input_provider = AsyncMock()
        input_provider.request_approval.return_value = True
        executor = WorkflowExecutor(provider_manager, input_provider=input_provider, config=config)

        result = await executor.execute(agent_node("outline", requiresApproval=True), context)

        assert result.status == NodeStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_approval_without_provider(self, executor, context):
        """Should report missing input provider as configuration error"""
        result = await executor.execute(agent_node("outline", requiresApproval=True), context)

        assert result.error_kind == FailureKind.CONFIGURATION


class TestConditionalNodes:
    """Conditional evaluation"""

    @pytest.mark.asyncio
    async def test_condition_over_node_output(self, executor, context, scripted_adapter):
        """Should read a field of an upstream JSON output"""
        scripted_adapter.outputs = ['{"wordCount": 1500}']
        await executor.execute(agent_node("draft", "writing"), context)

        result = await executor.execute(
            node("long-enough", "conditional", condition="$.draft.output.wordCount > 1000"), context
        )

        assert result.status == NodeStatus.SUCCESS
        assert context.variables["conditionResult"] is True
        assert result.output == {"condition": "$.draft.output.wordCount > 1000", "conditionResult": True}

    @pytest.mark.asyncio
    async def test_expression_condition(self, executor, context):
        """Should accept JavaScript-style operators and context.<name>"""
        context.variables["premise"] = "dragons"

        result = await executor.execute(node(
            "check", "conditional",
            condition="context.premise === 'dragons' && !false",
            conditionType="javascript",
        ), context)

        assert context.variables["conditionResult"] is True
        assert result.variables == {"conditionResult": True}

    @pytest.mark.asyncio
    async def test_undefined_name_is_configuration_error(self, executor, context):
        """Should fail rather than treat an unknown name as false"""
        result = await executor.execute(node("check", "conditional", condition="missing > 1"), context)

        assert result.status == NodeStatus.FAILED
        assert result.error_kind == FailureKind.CONFIGURATION
        assert "conditionResult" not in context.variables


class TestEventsAndErrors:
    """Update callbacks and unexpected exceptions"""

    @pytest.mark.asyncio
    async def test_emits_start_and_completion(self, provider_manager, context, config):
        """Should send node-started then node-completed"""
        callback = AsyncMock()
        executor = WorkflowExecutor(provider_manager, update_callback=callback, config=config)

        await executor.execute(agent_node("outline"), context)

        types = [call.args[0]["type"] for call in callback.await_args_list]
        assert types == ["node-started", "node-completed"]

    @pytest.mark.asyncio
    async def test_emits_failure(self, provider_manager, context, config, scripted_adapter):
        """Should send node-failed with the failure kind"""
        scripted_adapter.outputs = [LLMResponse.failure("down", "backend")]
        callback = AsyncMock()
        executor = WorkflowExecutor(provider_manager, update_callback=callback, config=config)

        await executor.execute(agent_node("outline"), context)

        last = callback.await_args_list[-1].args[0]
        assert last["type"] == "node-failed"
        assert last["error_kind"] == "provider_error"

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_break_execution(self, provider_manager, context, config):
        """Should ignore exceptions raised by the observer"""
        callback = AsyncMock(side_effect=RuntimeError("observer down"))
        executor = WorkflowExecutor(provider_manager, update_callback=callback, config=config)

        result = await executor.execute(agent_node("outline"), context)

        assert result.status == NodeStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_execution_error(self, executor, context):
        """Should normalize unexpected handler exceptions"""
        broken = MagicMock()
        broken.execute = AsyncMock(side_effect=RuntimeError("kaboom"))
        executor.handlers[NodeType.CONDITIONAL] = broken

        result = await executor.execute(node("check", "conditional", condition="true"), context)

        assert result.status == NodeStatus.FAILED
        assert result.error_kind == FailureKind.EXECUTION
        assert result.error == "RuntimeError: kaboom"

    def test_every_node_type_has_a_handler(self, executor):
        """Should dispatch every node type tag"""
        assert set(executor.handlers) == set(NodeType)
