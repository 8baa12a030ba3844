"""
Exception types shared across the dashboard service.
"""


class DashboardError(Exception):
    """Base class for dashboard errors."""
    pass


class SourceUnavailable(DashboardError):
    """An upstream call failed, timed out, or returned nothing usable."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class NoSourcesEnabled(DashboardError):
    """The weight table has no enabled source with positive weight."""
    pass


class PoolBuildFailed(DashboardError):
    """Not a single item could be collected within the attempt budget."""

    def __init__(self, category: str, attempts: int):
        self.category = category
        self.attempts = attempts
        super().__init__(f"Failed to fetch any {category} items for pool after {attempts} attempts")


class CategoryFetchFailed(DashboardError):
    """A dashboard category could not be fetched."""

    def __init__(self, category: str, message: str):
        self.category = category
        super().__init__(message)


class InvalidModeError(DashboardError):
    """A mode change named a mode that is not configured."""

    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"Invalid mode: {mode}")
