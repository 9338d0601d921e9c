"""
Monitoring subsystem.

Components:
- models.py: data structures (Task, Account, HistoryEntry, AgentSettings, ...)
- store.py: SQLite-backed storage for tasks, accounts, settings and history
- status_machine.py: task lifecycle transitions (pure)
- scheduler.py: timer loop that dispatches checks for running tasks
- reconciler.py: applies check results to durable state
- checker.py: HTTP client for the appointment backend
- health.py: periodic backend liveness probe
- service.py: bulk commands and CRUD over the working set
"""
