"""Metadata store errors."""


class StoreError(Exception):
    """Raised when the metadata store cannot complete a logical step.

    Attributes:
        step: Name of the logical step that failed (for example ``"capture"``).
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"Store error during {step}: {message}")
        self.step = step
