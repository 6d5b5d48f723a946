"""
Recurrence subsystem.

Components:
- predicate.py: "is task X active on day D?" for one-off and weekly tasks
- cache.py: bounded LRU cache of computed weeks with per-task-id invalidation
- resolver.py: expands task sets into (task, day) instances, finds the next occurrence
"""
