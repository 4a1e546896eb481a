"""
ops_cadence: recurring-task generation and time-window validation engine.

Subpackages:
- core: ports (Protocols), clock, errors, record parsing, request cache
- recurrence: rule evaluator, occurrence generator, SQLite definitions store
- windows: window validator, expiry side-effector, action gate, checklist materializer
- notify: notification sinks
- cli: composition root + command line entrypoint
"""
