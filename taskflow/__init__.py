# TaskFlow: personal task board engine, persistence, and session management
#
# Components:
#   schema.py     - Data model (Task, Stage, Priority, Category, TimerState)
#   sequence.py   - Task id sequence with a persisted cursor
#   policy.py     - Progress-driven stage transitions
#   placement.py  - Drop-index search for drag reordering
#   board.py      - Stage lists and task mutation
#   timer.py      - Per-task countdowns sharing a single running slot
#   serializer.py - Snapshot/restore, export and import documents
#   events.py     - Event bus for UI and notification collaborators
#   analytics.py  - Board statistics and filtering
#   store.py      - SQLite key-value persistence
#   accounts.py   - Registration and login
#   session.py    - Per-user board session (load/save/import/logout)
#   config.py     - YAML configuration
