"""Integration node executor: HTTP requests, email and webhooks."""

import logging
import requests
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver
from services.orchestrator.executors.base import NodeExecutor
from services.orchestrator.infra.email_client import EmailSender
from services.orchestrator.infra.http_client import HttpClient
from shared.constants import DEFAULT_HTTP_METHOD, DEFAULT_HTTP_TIMEOUT_MS, WEBHOOK_TIMEOUT_MS
from shared.exceptions import NodeExecutionError, WorkflowError
from shared.types import Node, NodeExecutionResult, UsageDelta


class IntegrationExecutor(NodeExecutor):
    """Every outbound action counts as one API call, whether or not it succeeds"""

    node_types = ("email", "http-request", "webhook")

    def __init__(self, http_client: HttpClient, email_sender: EmailSender):
        self.http = http_client
        self.email_sender = email_sender
        self._handlers = {
            "http-request": self.http_request,
            "email": self.email,
            "webhook": self.webhook,
        }

    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        handler = self._handlers.get(node.type)
        if handler is None:
            raise NodeExecutionError(f"Unsupported integration type: {node.type}", context.execution_id)
        return handler(node, context)

    def http_request(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = VariableResolver(context).resolve(node.config)
        url = config.get("url")
        if not url:
            raise NodeExecutionError("URL is required for HTTP request", context.execution_id)

        method = (config.get("method") or DEFAULT_HTTP_METHOD).upper()
        usage = UsageDelta(api_calls=1)

        try:
            response = self.http.request(
                method,
                url,
                headers=config.get("headers"),
                body=config.get("body"),
                params=config.get("params"),
                timeout_ms=config.get("timeout") or DEFAULT_HTTP_TIMEOUT_MS,
            )
        except requests.exceptions.RequestException as e:
            raise NodeExecutionError(f"HTTP request failed: {e}", context.execution_id, usage=usage, url=url)

        output = {
            "status": response["status"],
            "statusText": response["statusText"],
            "headers": response["headers"],
            "data": response["data"],
        }
        if not response["ok"]:
            logging.warning("HTTP request returned an error status", extra={
                "execution_id": context.execution_id,
                "node_id": node.id,
                "status": response["status"]
            })
            output["error"] = True

        return NodeExecutionResult.ok(output, usage)

    def email(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = VariableResolver(context).resolve(node.config)
        to, subject, body = config.get("to"), config.get("subject"), config.get("body")
        if not to or not subject or not body:
            raise NodeExecutionError("Email requires to, subject, and body", context.execution_id)

        usage = UsageDelta(api_calls=1)
        try:
            ack = self.email_sender.send(to, subject, body)
        except (OSError, WorkflowError) as e:
            raise NodeExecutionError(f"Email failed: {e}", context.execution_id, usage=usage)

        return NodeExecutionResult.ok(
            {"success": True, "message": ack.get("message", "Email sent"), "to": to, "subject": subject},
            usage,
        )

    def webhook(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = VariableResolver(context).resolve(node.config)
        url = config.get("url")
        if not url:
            raise NodeExecutionError("Webhook URL is required", context.execution_id)

        payload = config.get("payload") or context.variables
        usage = UsageDelta(api_calls=1)

        try:
            response = self.http.request(
                "POST",
                url,
                headers={"Content-Type": "application/json", **(config.get("headers") or {})},
                body=payload,
                timeout_ms=WEBHOOK_TIMEOUT_MS,
            )
        except requests.exceptions.RequestException as e:
            raise NodeExecutionError(f"Webhook failed: {e}", context.execution_id, usage=usage, url=url)

        if not response["ok"]:
            raise NodeExecutionError(
                f"Webhook failed: status {response['status']}", context.execution_id, usage=usage, url=url
            )

        return NodeExecutionResult.ok({"success": True, "status": response["status"], "data": response["data"]}, usage)
