class InvalidDateError(Exception):
    def __init__(self, value: object):
        self.value = value
        self.message = f"Invalid date: {value}"
        super().__init__(self.message)


class BookingNotFoundError(Exception):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking not found: {booking_id}")


class RepositoryError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GmailError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GmailAuthError(GmailError):
    """401/403 from Gmail: the access token is expired or lacks scope."""


class ReconnectRequiredError(Exception):
    def __init__(self, message: str = "Gmail access expired. Please reconnect your account."):
        self.message = message
        super().__init__(message)


class SchedulerError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(Exception):
    def __init__(self, service: str):
        self.service = service
        super().__init__(f"Rate limit exceeded for {service}")


class NoPriceDropError(Exception):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"No cheaper price available for booking {booking_id}")
