"""
Wyjątki domenowe walidatora kart podarunkowych.

Każdy wyjątek niesie kod HTTP i komunikat, który można bezpiecznie pokazać
klientowi. Mapowanie na odpowiedź JSON robi handler w main.py.
"""


class GiftCardError(Exception):
    http_status = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidFormat(GiftCardError):
    http_status = 400
    default_message = (
        "Invalid gift card format. Use up to 25 characters (letters and numbers only)"
    )


class InvalidPrice(GiftCardError):
    http_status = 400
    default_message = (
        "Invalid price. Amount must be a positive number and currency must be supported."
    )


class InvalidStatus(GiftCardError):
    http_status = 400
    default_message = "Invalid status. Use: accepted, declined, or pending"


class BadRequest(GiftCardError):
    http_status = 400
    default_message = "Bad request"


class Unauthorized(GiftCardError):
    http_status = 401
    default_message = "Unauthorized. Please log in as admin."


class NotFound(GiftCardError):
    http_status = 404
    default_message = "Gift card not found"


class LogoutFailed(GiftCardError):
    http_status = 500
    default_message = "Logout failed"


class Internal(GiftCardError):
    http_status = 500
