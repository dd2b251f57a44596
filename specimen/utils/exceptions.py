"""
Custom exceptions for the rating and leaderboard system with user-safe messages.
"""

class RatingException(Exception):
    """Base exception for rating-related errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class PopulationFetchError(RatingException):
    """Raised when the population (observations, users) cannot be fetched."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Population fetch failed during {operation}: {details}",
            "Internal server error"
        )
        self.operation = operation

class CacheUnavailableError(RatingException):
    """Raised when the rating cache backend cannot be reached."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Rating cache unavailable during {operation}: {details}",
            "Internal server error"
        )
        self.operation = operation

class MetricNotFoundError(RatingException):
    """Raised when a metric id does not exist."""
    def __init__(self, metric_id):
        super().__init__(
            f"Metric '{metric_id}' not found",
            "Metric not found"
        )
        self.metric_id = metric_id

class UserNotFoundError(RatingException):
    """Raised when a user id does not exist."""
    def __init__(self, user_id):
        super().__init__(
            f"User '{user_id}' not found",
            "User not found"
        )
        self.user_id = user_id

class DatabaseError(RatingException):
    """Raised when database write operations fail."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            "Database error occurred. Please try again later."
        )
