"""Errors surfaced to callers of the matching engine."""


class MatchingError(ValueError):
    """Base class for matching failures. `code` is the caller-visible signal."""

    code = "MATCHING_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        if code:
            self.code = code

    def to_dict(self):
        return {"code": self.code, "message": str(self)}


class MissingSelfAssessmentError(MatchingError):
    code = "MISSING_SELF_ASSESSMENT"


class InvalidInputError(MatchingError):
    code = "INVALID_INPUT"


class CompanyNotFoundError(MatchingError):
    code = "COMPANY_NOT_FOUND"
