"""Engine-level exceptions. Provider and capability errors live beside their ABCs."""


class InvalidInputError(ValueError):
    """Raised before any dispatch when a brief or consensus result is unusable."""


class ScoringError(Exception):
    """Raised when the consensus panel could not be assembled at all."""

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        self.failures = failures or {}
        super().__init__(message)
