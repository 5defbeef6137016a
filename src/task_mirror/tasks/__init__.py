"""
Task subsystem.

Components:
- task_models.py: the Task entity and its mapping from remote documents
- task_cache.py: in-memory ordered cache + change listeners (the reactive view)
- subscription.py: keeps the cache a live view of one group's tasks
- reconciler.py: optimistic mutations (apply, commit remotely, roll back on failure)
"""
