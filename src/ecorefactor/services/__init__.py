"""Session orchestration, detection, metrics and status services."""
