"""
Recurrence subsystem.

Components:
- models.py: data structures (RecurrencePattern, RecurringTaskDefinition, TaskOccurrence, GenerationReport)
- rules.py: pure due-date evaluation
- generator.py: batch occurrence generation + polling loop
- store.py: SQLite-backed definitions/occurrences store
"""
