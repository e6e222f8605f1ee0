"""Configuration-time workflow validation."""

from typing import Dict, List, Any
from services.orchestrator.executors.human_approval import HumanApprovalExecutor
from shared.constants import (
    AI_NODE_TYPES,
    ALLOWED_NODE_TYPES,
    HUMAN_APPROVAL_NODE_TYPE,
    MAX_DELAY_MS,
    MAX_NODES_PER_WORKFLOW,
    TRIGGER_TYPES,
)
from shared.exceptions import ConfigValidationError

REQUIRED_FIELDS = {
    "conditional": ("condition",),
    "http-request": ("url",),
    "webhook": ("url",),
    "email": ("to", "subject", "body"),
}


def validate_workflow(nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Returns {valid, errors, warnings}; never raises"""
    errors: List[str] = []
    warnings: List[str] = []

    if not nodes:
        errors.append("Workflow must contain at least one node")
    if len(nodes) > MAX_NODES_PER_WORKFLOW:
        errors.append(f"Workflow exceeds maximum node limit: {len(nodes)} > {MAX_NODES_PER_WORKFLOW}")

    seen = set()
    for position, node in enumerate(nodes):
        if not isinstance(node, dict):
            errors.append(f"Node at position {position} must be an object")
            continue

        node_id = node.get("id")
        label = f"Node {node_id}" if node_id else f"Node at position {position}"
        if not node_id:
            errors.append(f"{label} is missing an id")
        elif not isinstance(node_id, str):
            errors.append(f"{label} id must be a string")
        elif node_id in seen:
            errors.append(f"Duplicate node ID: {node_id}")
        else:
            seen.add(node_id)

        node_type = node.get("type")
        if not node_type:
            errors.append(f"{label} is missing a type")
            continue
        if not isinstance(node_type, str) or node_type not in ALLOWED_NODE_TYPES:
            errors.append(f"{label} has unknown type: {node_type}")
            continue

        config = node.get("config", {})
        if not isinstance(config, dict):
            errors.append(f"{label} config must be an object")
            continue

        node_errors, node_warnings = validate_node_config(node_type, config)
        errors.extend(f"{label}: {message}" for message in node_errors)
        warnings.extend(f"{label}: {message}" for message in node_warnings)

    for position, node in enumerate(nodes):
        if not isinstance(node, dict) or node.get("type") != "conditional":
            continue
        config = node.get("config") or {}
        if not isinstance(config, dict):
            continue
        for key in ("trueNext", "falseNext"):
            target = config.get(key)
            if target and (not isinstance(target, str) or target not in _ids_after(nodes, position)):
                errors.append(f"Node {node.get('id')}: {key} must reference a later node, got {target}")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def validate_node_config(node_type: str, config: Dict[str, Any]):
    errors: List[str] = []
    warnings: List[str] = []

    for field in REQUIRED_FIELDS.get(node_type, ()):
        if not config.get(field):
            errors.append(f"{field} is required")

    if node_type == HUMAN_APPROVAL_NODE_TYPE:
        errors.extend(HumanApprovalExecutor.validate_config(config)["errors"])

    elif node_type in AI_NODE_TYPES:
        if not config.get("prompt") and not config.get("messages"):
            warnings.append("no prompt configured")

    elif node_type == "set-variable":
        if not config.get("name") and not isinstance(config.get("variables"), dict):
            errors.append("name or variables is required")

    elif node_type == "delay":
        duration = _number(config.get("duration") or config.get("durationMs") or 0)
        if config.get("seconds") is not None:
            seconds = _number(config["seconds"])
            duration = seconds * 1000 if seconds is not None else None
        if duration is None:
            errors.append("duration must be a number")
        elif duration < 0:
            errors.append("duration must not be negative")
        elif duration > MAX_DELAY_MS:
            warnings.append(f"delay will be capped at {MAX_DELAY_MS} ms")

    elif node_type == "trigger":
        trigger = config.get("trigger") or {}
        if not isinstance(trigger, dict):
            errors.append("trigger must be an object")
            trigger = {}
        trigger_type = trigger.get("type") or config.get("type") or "manual"
        if trigger_type not in TRIGGER_TYPES:
            warnings.append(f"trigger type {trigger_type} never fires")
        if trigger_type == "ai-condition" and not config.get("condition") and not trigger.get("condition"):
            warnings.append("ai-condition trigger without a condition never fires")

    return errors, warnings


def _number(value: Any):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _ids_after(nodes: List[Dict[str, Any]], position: int) -> set:
    return {node.get("id") for node in nodes[position + 1:] if isinstance(node, dict)}


def ensure_valid_workflow(nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    result = validate_workflow(nodes)
    if not result["valid"]:
        raise ConfigValidationError("Workflow validation failed", errors=result["errors"])
    return result
