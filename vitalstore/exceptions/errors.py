from fastapi import status
from fastapi.responses import JSONResponse


class ApplicationException(Exception):
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_response(self):
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.message}
        )


class SampleValidationError(ApplicationException):
    """A sample or record failed validation (non-finite value, bad timestamp, missing field)."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class UnknownMetricError(ApplicationException):
    def __init__(self, metric_type):
        super().__init__(f"Unknown metric type: {metric_type}", status.HTTP_400_BAD_REQUEST)
        self.metric_type = metric_type


class DuplicateRecordError(ApplicationException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_409_CONFLICT)


class RecordNotFoundError(ApplicationException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class CascadeIntegrityError(ApplicationException):
    """Deleting a sleep session left owned details behind; the delete is rolled back."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_409_CONFLICT)


class StoreUnavailableError(ApplicationException):
    """Underlying storage failed or the store handle is not open."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
