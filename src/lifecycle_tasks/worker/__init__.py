"""
Worker subsystem (child side of the process adapter).

Components:
- messages.py: control-message protocol (newline-delimited JSON)
- loader.py: turns a module path / dotted name into a TaskUnit
- runtime.py: answers start/stop for one loaded TaskUnit
- spawner.py: parent-side process spawning + WorkerChannel
- main.py: `python -m lifecycle_tasks.worker` entrypoint
"""
