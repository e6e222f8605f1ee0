"""Variable substitution for {{key}} and ${key} placeholders."""

import json
import re
from typing import Any, Optional, Tuple
from services.orchestrator.engine.context import ExecutionContext

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}|\$\{\s*([\w.\-]+)\s*\}")

_MISSING = object()


def _walk(value: Any, path: str) -> Any:
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return _MISSING
    return value


def to_text(value: Any) -> str:
    """Renders a value the way it is spliced into text"""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, bool)) or value is None:
        return json.dumps(value, default=str)
    return str(value)


class VariableResolver:
    """Best-effort substitution; unresolved placeholders are left verbatim"""

    def __init__(self, context: ExecutionContext):
        self.context = context

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """Resolves key against variables, then step results, then input.*"""
        variables = self.context.variables
        if key in variables:
            return True, variables[key]

        head, _, rest = key.partition(".")
        if rest and head in variables:
            value = _walk(variables[head], rest)
            if value is not _MISSING:
                return True, value

        if head in self.context.step_results:
            value = self.context.step_results[head]
            if rest:
                value = _walk(value, rest)
            if value is not _MISSING:
                return True, value

        if head == "input" and rest:
            value = _walk(self.context.input, rest)
            if value is not _MISSING:
                return True, value

        return False, None

    def resolve_text(self, text: Optional[str]) -> str:
        if not text:
            return text or ""

        def replace(match: re.Match) -> str:
            found, value = self.lookup(match.group(1) or match.group(2))
            return to_text(value) if found else match.group(0)

        return PLACEHOLDER_PATTERN.sub(replace, text)

    def resolve(self, value: Any) -> Any:
        """Recursively walks a config value and resolves all placeholders"""
        if isinstance(value, str):
            return self.resolve_text(value)
        elif isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.resolve(item) for item in value]
        return value


def resolve(context: ExecutionContext, value: Any) -> Any:
    return VariableResolver(context).resolve(value)
