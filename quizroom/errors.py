"""
Error taxonomy for the exam-session engine

Every failure surfaced to a caller carries a stable ``kind`` and an HTTP
status so the API layer can render it without knowing which service raised.
"""


class ExamError(Exception):
    """Base class for all per-request engine failures"""

    kind = "exam_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "message": self.message,
            "status_code": self.status_code,
        }


class NotFound(ExamError):
    """Quiz, result, question or room code does not exist"""

    kind = "not_found"
    status_code = 404


class InvalidStateTransition(ExamError):
    """Out-of-order quiz or result status change"""

    kind = "invalid_state_transition"
    status_code = 409


class ResultTerminal(ExamError):
    """Mutation attempted on a submitted, graded or kicked result"""

    kind = "result_terminal"
    status_code = 409


class Forbidden(ExamError):
    """Blocked/paused result, roster refusal or ownership mismatch"""

    kind = "forbidden"
    status_code = 403


class ValidationError(ExamError):
    """Malformed payload or unsupported question type"""

    kind = "validation_error"
    status_code = 422
