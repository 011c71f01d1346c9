"""
Core sync engine.

The `SyncOrchestrator` drives a run through planning, downloading and
verification, delegating file selection to the planner and file work to the
content layer.
"""
