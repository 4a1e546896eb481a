"""
Time-windowed checklist instances.

Components:
- models.py: statuses, actions, decisions, instance/template records
- validator.py: window resolution, classification and action authorization
- expiry.py: idempotent transition to expired
- gate.py: authorization entry point bound to the server clock
- materializer.py: daily instance creation from checklist templates
- store.py: SQLite-backed templates/instances store
"""
