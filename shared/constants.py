"""Centralized constants"""

# Node types (closed set)
AI_NODE_TYPES = {"ai-chat", "ai-agent", "ai-generate", "ai-workflow-generator"}
INTEGRATION_NODE_TYPES = {"http-request", "email", "webhook"}
UTILITY_NODE_TYPES = {"delay", "log", "set-variable"}
CONTROL_NODE_TYPES = {"conditional", "trigger"}
HUMAN_APPROVAL_NODE_TYPE = "human-approval"

ALLOWED_NODE_TYPES = (
    AI_NODE_TYPES
    | INTEGRATION_NODE_TYPES
    | UTILITY_NODE_TYPES
    | CONTROL_NODE_TYPES
    | {HUMAN_APPROVAL_NODE_TYPE}
)

# Record store collections
WORKFLOWS = "workflows"
EXECUTIONS = "executions"
APPROVALS = "approvals"
BREAKPOINTS = "breakpoints"

# Limits
MAX_NODES_PER_WORKFLOW = 1000
MAX_DELAY_MS = 5 * 60 * 1000        # 5 minutes
MAX_LIST_LIMIT = 100
DEFAULT_LIST_LIMIT = 20
MAX_STACK_LINES = 10

# Integrations
DEFAULT_HTTP_TIMEOUT_MS = 30000
WEBHOOK_TIMEOUT_MS = 10000
DEFAULT_HTTP_METHOD = "GET"

# AI
DEFAULT_AGENT_SYSTEM_PROMPT = "You are a helpful AI assistant with access to tools."
CONDITION_AI_TEMPERATURE = 0.1
CONDITION_AI_MAX_TOKENS = 10
AI_ACTION_PREFIXES = ("ai:", "prompt:")

# Restricted condition evaluation
CONDITION_ALLOWLIST_PATTERN = r"^[a-zA-Z0-9_\.\s\(\)\"',<>=!&|\-]+$"
CONDITION_KEYWORDS = {"and", "or", "not", "true", "false", "none", "null", "in", "is"}

# Human approval
APPROVAL_TYPES = ("manual_review", "confirmation", "decision_making", "quality_check")
APPROVAL_FIELD_TYPES = ("text", "number", "boolean", "json")
DEFAULT_APPROVAL_TIMEOUT_HOURS = 24
DEFAULT_APPROVAL_MESSAGE = "Please review and approve this workflow step"

# Breakpoints
DEFAULT_BREAKPOINT_TIMEOUT_MINUTES = 60

# Periodic sweeps (cron minute fields)
APPROVAL_SWEEP_MINUTE = "*/30"
BREAKPOINT_SWEEP_MINUTE = "*/15"

# Trigger node types
TRIGGER_TYPES = ("manual", "ai-condition", "form-submit", "webhook", "scheduled")
