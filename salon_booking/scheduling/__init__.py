"""
Slot computation engine.

Pure functions, no database access:
- Time windows and wall-clock helpers (intervals.py)
- Opening-hours resolution per date (opening_hours.py)
- Slot generation (slots.py)
- Conflict filtering against booked intervals (conflicts.py)
- Multi-day availability planning (planner.py)
"""
