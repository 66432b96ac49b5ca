"""
Task synchronization subsystem.

Components:
- task_models.py: data structures (Task, TaskDraft, TaskStatus, StatusCategory)
- sheet_source.py: spreadsheet adapter (positional rows -> tasks) + Sheets HTTP client
- record_source.py: relational adapter (records -> tasks) + PostgREST / local backends
- task_store.py: SQLite-backed local record store
- task_cache.py: single-flight, key-addressed snapshot cache
- task_refresher.py: periodic invalidation loop
- mutations.py: create / update / delete pipeline with cache invalidation
- views.py: pure derived views (classify, overdue, filter, sort, counts)
- task_api.py: TrackerSession, the surface a UI binds to
"""
