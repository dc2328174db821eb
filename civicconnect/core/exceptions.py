class CivicConnectError(Exception):
    """Base class for errors raised by the service layer."""

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(CivicConnectError):
    pass


class ValidationError(CivicConnectError):
    pass


class UnauthorizedError(CivicConnectError):
    pass


class ForbiddenError(CivicConnectError):
    pass


class DeliveryError(CivicConnectError):
    """
    An email or SMS provider rejected a message.

    Never reaches the API caller: the notification dispatcher logs it and
    moves on to the next channel.
    """

    def __init__(self, channel: str, detail: str = ""):
        super().__init__(detail)
        self.channel = channel
