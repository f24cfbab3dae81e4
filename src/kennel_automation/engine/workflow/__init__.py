"""Workflow domain concepts.

This package holds first-class types for:
- Workflow definitions (trigger + graph of trigger/action/logic nodes)
- Trigger events and their context
- Enrollments and the enrollment state machine
- Dispatch, step execution and resumption of waiting runs

Control flow is deterministic: the same definition and event always take the
same path through the graph.
"""

__all__: list[str] = []
