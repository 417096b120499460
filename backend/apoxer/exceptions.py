from fastapi import status


class TournamentError(Exception):
    """Base class for tournament domain failures.

    Services raise these; routers turn them into ``HTTPException`` using
    ``status_code`` and the message.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ForbiddenError(TournamentError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(TournamentError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailedError(TournamentError):
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyFinalizedError(TournamentError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(TournamentError):
    """The row changed between read and conditional write."""

    status_code = status.HTTP_409_CONFLICT
