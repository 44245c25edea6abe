class RatingServiceError(Exception):
    """Base for errors a route turns into a JSON error response."""
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(RatingServiceError):
    status_code = 400
    default_message = 'Invalid request'


class NotFound(RatingServiceError):
    status_code = 404
    default_message = 'Not found'


class Forbidden(RatingServiceError):
    status_code = 403
    default_message = "You don't have permission to edit this rating"


class RecomputeFailed(RatingServiceError):
    """The store failed mid-recompute; previous results were left intact."""
    status_code = 500
    default_message = 'Failed to recompute rating results'

    def __init__(self, rating_id: int, stage: str):
        super().__init__()
        self.rating_id = rating_id
        self.stage = stage
