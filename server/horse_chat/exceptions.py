class ChatError(Exception):
    """Base error for chat operations. The message is safe to show to clients."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(ChatError):

    status_code = 400


class NotFound(ChatError):
    """Missing resource, or one the caller is not allowed to see."""

    status_code = 404
