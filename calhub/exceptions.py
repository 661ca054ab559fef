"""Base exception for calhub."""


class CalHubError(Exception):
    """Base exception for all calhub errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
