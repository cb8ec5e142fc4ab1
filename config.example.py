# config.example.py

"""
Documentation-only module (safe to commit).

Configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # Logging
    "LIFECYCLE_TASKS_LOG_LEVEL": "Logging level for the CLI and worker processes (default: INFO).",
    "LIFECYCLE_TASKS_LOG_DIR": "If set, also write full DEBUG logs to <dir>/lifecycle_tasks.log.",
    # Worker processes
    "LIFECYCLE_TASKS_PYTHON": "Interpreter used to spawn workers (default: the current one).",
    "LIFECYCLE_TASKS_HANDSHAKE_TIMEOUT_SECONDS": "Max wait for a worker's ready/load-error (default: 10).",
    "LIFECYCLE_TASKS_STOP_TIMEOUT_SECONDS": (
        "How long a worker lets run() react to a stop before cancelling it (default: 5, 0 = no limit)."
    ),
    "LIFECYCLE_TASKS_FORWARD_WORKER_STDERR": "Log worker stderr lines (true/false, default: true).",
}
