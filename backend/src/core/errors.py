"""Input errors raised by the core.

Raised before any store call is made; the shell turns them into user-facing
error payloads.
"""


class CoachingInputError(ValueError):
    """Malformed or out-of-range user input."""
