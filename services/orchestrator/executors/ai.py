"""AI node executor: chat, agent, generate and workflow generation."""

import json
import logging
import re
from typing import Dict, List, Any
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver
from services.orchestrator.executors.base import NodeExecutor, model_options
from services.orchestrator.infra.llm_client import LLMClient
from shared.constants import AI_NODE_TYPES, ALLOWED_NODE_TYPES, DEFAULT_AGENT_SYSTEM_PROMPT
from shared.exceptions import NodeExecutionError
from shared.types import Node, NodeExecutionResult, UsageDelta
from shared.utils import isoformat

WORKFLOW_GENERATOR_PROMPT = (
    "You design automation workflows. Reply with a single JSON object of the form "
    '{{"name": string, "nodes": [{{"id": string, "type": string, "config": object}}]}} '
    "and nothing else. Allowed node types: {types}."
)

CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$")


class AIExecutor(NodeExecutor):
    """Handles every ai-* node type; unrecognized subtypes run as ai-chat"""

    node_types = tuple(sorted(AI_NODE_TYPES))

    def __init__(self, llm_client: LLMClient):
        self.llm = llm_client
        self._handlers = {
            "ai-chat": self.chat,
            "ai-agent": self.agent,
            "ai-generate": self.generate,
            "ai-workflow-generator": self.generate_workflow,
        }

    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        handler = self._handlers.get(node.type, self.chat)
        return handler(node, context)

    def chat(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        messages = self._build_messages(config, VariableResolver(context))
        if not any(message["role"] != "system" for message in messages):
            raise NodeExecutionError("AI chat node requires a prompt or messages", context.execution_id)

        response = self.llm.chat(messages, model_options(config))
        return NodeExecutionResult.ok(
            {
                "response": response.text,
                "model": response.model,
                "tokensUsed": response.tokens_used,
                "timestamp": isoformat(),
            },
            UsageDelta(tokens_used=response.tokens_used),
        )

    def agent(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        resolver = VariableResolver(context)
        prompt = resolver.resolve_text(config.get("prompt", ""))
        system_prompt = resolver.resolve_text(config.get("systemPrompt") or DEFAULT_AGENT_SYSTEM_PROMPT)

        tools: List[str] = list(config.get("tools") or []) if config.get("useTools") else []
        if tools:
            tool_lines = "\n".join(f"- {name}" for name in tools)
            system_prompt = (
                f"{system_prompt}\n\nAvailable tools:\n{tool_lines}\n\n"
                "Describe which tool you would use and with what arguments when one is needed."
            )

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]
        response = self.llm.chat(messages, model_options(config))
        return NodeExecutionResult.ok(
            {
                "response": response.text,
                "model": response.model,
                "tools": tools,
                "tokensUsed": response.tokens_used,
            },
            UsageDelta(tokens_used=response.tokens_used),
        )

    def generate(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        prompt = VariableResolver(context).resolve_text(node.config.get("prompt", ""))
        if not prompt.strip():
            raise NodeExecutionError("AI generate node requires a prompt", context.execution_id)

        response = self.llm.generate_text(prompt, model_options(node.config))
        return NodeExecutionResult.ok(
            {"generated": response.text, "model": response.model, "prompt": prompt},
            UsageDelta(tokens_used=response.tokens_used),
        )

    def generate_workflow(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        description = VariableResolver(context).resolve_text(node.config.get("prompt", ""))
        if not description.strip():
            raise NodeExecutionError("Workflow generator node requires a description prompt", context.execution_id)

        messages = [
            {"role": "system", "content": WORKFLOW_GENERATOR_PROMPT.format(types=", ".join(sorted(ALLOWED_NODE_TYPES)))},
            {"role": "user", "content": description},
        ]
        response = self.llm.chat(messages, model_options(node.config))
        usage = UsageDelta(tokens_used=response.tokens_used)

        try:
            workflow = json.loads(CODE_FENCE_PATTERN.sub("", response.text.strip()))
        except json.JSONDecodeError:
            raise NodeExecutionError("Generated workflow was not valid JSON", context.execution_id, usage=usage)

        if not isinstance(workflow, dict) or not isinstance(workflow.get("nodes"), list):
            raise NodeExecutionError("Generated workflow has no node list", context.execution_id, usage=usage)

        logging.info("Workflow generated", extra={
            "execution_id": context.execution_id,
            "node_id": node.id,
            "generated_nodes": len(workflow["nodes"])
        })
        return NodeExecutionResult.ok({"workflow": workflow, "generated": True, "model": response.model}, usage)

    def _build_messages(self, config: Dict[str, Any], resolver: VariableResolver) -> List[Dict[str, str]]:
        messages = []
        if config.get("systemPrompt"):
            messages.append({"role": "system", "content": resolver.resolve_text(config["systemPrompt"])})

        if config.get("messages"):
            for message in config["messages"]:
                messages.append({
                    "role": message.get("role", "user"),
                    "content": resolver.resolve_text(message.get("content", "")),
                })
        elif config.get("prompt"):
            messages.append({"role": "user", "content": resolver.resolve_text(config["prompt"])})

        return messages
