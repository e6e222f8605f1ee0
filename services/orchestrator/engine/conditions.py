"""
Condition evaluation for conditional and trigger nodes.

Conditions are answered by the language model when asked to, and otherwise by
a restricted expression evaluator: known names are replaced by JSON literals,
the text must pass an allowlist, and the remaining expression is compiled by a
sandboxed Jinja2 environment with no callables exposed.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Tuple
from jinja2 import StrictUndefined
from jinja2.exceptions import TemplateError
from jinja2.sandbox import SandboxedEnvironment
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver
from shared.constants import (
    CONDITION_AI_MAX_TOKENS,
    CONDITION_AI_TEMPERATURE,
    CONDITION_ALLOWLIST_PATTERN,
    CONDITION_KEYWORDS,
)
from shared.exceptions import WorkflowError
from shared.types import UsageDelta

ALLOWLIST = re.compile(CONDITION_ALLOWLIST_PATTERN)
LITERAL_PATTERN = re.compile(r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'")
IDENTIFIER_PATTERN = re.compile(r"(?<![\w.])[A-Za-z_]\w*(?:\.\w+)*")
CALL_PATTERN = re.compile(r"([A-Za-z_][\w.]*)\s*\(")

OPERATOR_REWRITES = [
    (re.compile(r"==="), "=="),
    (re.compile(r"!=="), "!="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
    (re.compile(r"\bnull\b"), "none"),
]

AI_CONDITION_PROMPT = (
    'Evaluate the following condition and respond with only "true" or "false":\n\n'
    "Condition: {condition}\n\n"
    "Context:\n{context}"
)


@dataclass
class ConditionResult:
    result: bool
    method: str
    usage: UsageDelta = field(default_factory=UsageDelta)


def _segments(text: str) -> List[Tuple[str, bool]]:
    """Splits text into (segment, is_string_literal) pairs"""
    parts, position = [], 0
    for match in LITERAL_PATTERN.finditer(text):
        if match.start() > position:
            parts.append((text[position:match.start()], False))
        parts.append((match.group(0), True))
        position = match.end()
    if position < len(text):
        parts.append((text[position:], False))
    return parts


def _map_code(text: str, func) -> str:
    return "".join(segment if is_literal else func(segment) for segment, is_literal in _segments(text))


def _mask_literals(text: str) -> str:
    return "".join('""' if is_literal else segment for segment, is_literal in _segments(text))


def to_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "none"
    return json.dumps(value, default=str)


def parse_boolean_reply(text: str) -> Optional[bool]:
    reply = (text or "").strip().strip('."\'').lower()
    if reply == "true" or reply.startswith("true"):
        return True
    if reply == "false" or reply.startswith("false"):
        return False
    return None


class ConditionEvaluator:

    def __init__(self, llm_client=None):
        self.llm = llm_client
        self.jinja_env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)

    def evaluate(self, condition: str, context: ExecutionContext, use_ai: bool = False,
                 model_options: Optional[Dict[str, Any]] = None) -> ConditionResult:
        usage = UsageDelta()

        if use_ai and self.llm is not None:
            prompt = AI_CONDITION_PROMPT.format(
                condition=condition,
                context=json.dumps(context.snapshot(), default=str, indent=2),
            )
            options = dict(model_options or {})
            options.update({"temperature": CONDITION_AI_TEMPERATURE, "maxTokens": CONDITION_AI_MAX_TOKENS})

            try:
                response = self.llm.generate_text(prompt, options)
                usage = UsageDelta(tokens_used=response.tokens_used)
                verdict = parse_boolean_reply(response.text)
                if verdict is not None:
                    return ConditionResult(verdict, "ai", usage)
                logging.warning("AI condition reply was inconclusive, using expression fallback", extra={
                    "execution_id": context.execution_id,
                    "reply": response.text[:50]
                })
            except WorkflowError as e:
                logging.warning("AI condition evaluation failed, using expression fallback", extra={
                    "execution_id": context.execution_id,
                    "error": str(e)
                })

            return ConditionResult(self.evaluate_expression(condition, context), "fallback", usage)

        return ConditionResult(self.evaluate_expression(condition, context), "expression", usage)

    def evaluate_expression(self, expression: str, context: ExecutionContext) -> bool:
        """Restricted literal evaluation; any rejection or error resolves to False"""
        if not expression or not expression.strip():
            return False

        resolver = VariableResolver(context)

        def substitute(segment: str) -> str:
            def replace(match: re.Match) -> str:
                name = match.group(0)
                if name.lower() in CONDITION_KEYWORDS:
                    return name
                found, value = resolver.lookup(name)
                return to_literal(value) if found else name
            return IDENTIFIER_PATTERN.sub(replace, segment)

        substituted = _map_code(expression, substitute)

        if not ALLOWLIST.match(substituted):
            return self._reject(expression, "characters outside the allowlist", context)

        code = _mask_literals(substituted)
        if "__" in code:
            return self._reject(expression, "dunder access", context)
        for match in CALL_PATTERN.finditer(code):
            if match.group(1).lower() not in CONDITION_KEYWORDS:
                return self._reject(expression, "function call", context)

        def normalize(segment: str) -> str:
            for pattern, replacement in OPERATOR_REWRITES:
                segment = pattern.sub(replacement, segment)
            return segment

        normalized = _map_code(substituted, normalize)
        if re.search(r"[|&]", _mask_literals(normalized)):
            return self._reject(expression, "bitwise or filter operator", context)

        try:
            compiled = self.jinja_env.compile_expression(normalized, undefined_to_none=False)
            return bool(compiled())
        except (TemplateError, TypeError, ValueError) as e:
            logging.warning("Condition evaluation failed, resolving to false", extra={
                "execution_id": context.execution_id,
                "condition": expression,
                "error": str(e)
            })
            return False

    def _reject(self, expression: str, reason: str, context: ExecutionContext) -> bool:
        logging.warning("Condition rejected by safety allowlist", extra={
            "execution_id": context.execution_id,
            "condition": expression,
            "reason": reason
        })
        return False
