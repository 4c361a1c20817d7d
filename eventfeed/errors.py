# eventfeed/errors.py
from typing import Optional


class FeedError(Exception):
    """
    Error dasar untuk seluruh operasi feed.
    Membawa judul singkat (error), pesan detail, dan status HTTP yang sesuai.
    """
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None):
        super().__init__(message or self.error)
        if error is not None:
            self.error = error
        self.message = message

    def to_dict(self) -> dict:
        body = {"error": self.error, "code": self.status_code}
        if self.message:
            body["message"] = self.message
        return body


class InvalidQueryError(FeedError):
    """Input tidak valid atau kontradiktif; operasi tidak dijalankan."""
    status_code = 400
    error = "Invalid request"


class EventNotFoundError(FeedError):
    status_code = 404
    error = "Event not found"


class UserNotFoundError(FeedError):
    status_code = 404
    error = "User not found"


class AuthenticationError(FeedError):
    status_code = 401
    error = "Unauthorized"


class ForbiddenError(FeedError):
    status_code = 403
    error = "Forbidden"


class DuplicateEventIdError(FeedError):
    """Pelanggaran invariant internal: ID event bentrok saat append."""
    status_code = 500
    error = "Internal server error"

    def __init__(self, event_id: str):
        super().__init__(f"Duplicate event id: {event_id}")
        self.event_id = event_id
