"""Action validation, execution, state machine and confirmation text."""
