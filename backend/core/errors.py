from typing import Optional


class ProviderError(Exception):
    """A market-data provider answered with an error status or an unusable payload."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.provider}: {self.args[0]}"


class PlanGenerationError(RuntimeError):
    pass
