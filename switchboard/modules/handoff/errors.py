class InvariantViolation(Exception):
    """A handoff record is in a shape the state machine cannot act on. Aborts the turn."""
