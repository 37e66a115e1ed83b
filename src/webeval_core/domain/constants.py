"""
Domain Constants

Centrally manages constants shared across the evaluation engine.
"""

# Step control defaults
DEFAULT_MAX_STEPS = 10
DEFAULT_EARLY_COMPLETION_THRESHOLD = 0.8
DEFAULT_STEP_TIMEOUT_SECONDS = 30
MIN_STEP_TIMEOUT_SECONDS = 5

# Buffer added on top of max_steps * step_timeout for setup/cleanup
TOTAL_TIMEOUT_BUFFER_SECONDS = 30

# "Consistent high confidence" rule (AUTO mode)
CONSISTENT_CONFIDENCE_WINDOW = 3
CONSISTENT_CONFIDENCE_MIN_STEPS = 2

# Task defaults
DEFAULT_TASK_TIMEOUT_SECONDS = 300
DEFAULT_TASK_MAX_RETRIES = 2

# Optimistic conflict retry: 3 attempts, 100ms -> 200ms -> 400ms
CONFLICT_MAX_ATTEMPTS = 3
CONFLICT_BASE_DELAY_SECONDS = 0.1

# Scheduler defaults
DISPATCH_INTERVAL_SECONDS = 60
REAP_INTERVAL_SECONDS = 600
EVALUATION_TIMEOUT_SECONDS = 2 * 60 * 60

# Messages recorded on finalized evaluations
EVALUATION_TIMEOUT_MESSAGE = "Evaluation exceeded maximum execution time"
EVALUATION_STARTED_MESSAGE = "Evaluation started"
EVALUATION_COMPLETED_MESSAGE = "Evaluation completed successfully"
EVALUATION_CANCELLED_MESSAGE = "Evaluation was cancelled"

# Supported model providers (see infrastructure.automation.factory)
SUPPORTED_PROVIDERS = ["anthropic", "lmstudio", "vertex_ai"]
