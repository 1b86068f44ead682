# errors.py — Domain error taxonomy with TB-DOMAIN-NUMBER codes
#
# Services raise these; main.py renders them as structured JSON responses.
# Domains: NF (not found), AUTH, VAL (validation), CONF (conflict / race)

ERROR_CATALOGUE = {
    "TB-NF-001": {"message": "Resource not found", "http_status": 404},
    "TB-AUTH-003": {"message": "Insufficient permissions", "http_status": 403},
    "TB-VAL-001": {"message": "Validation failed", "http_status": 422},
    "TB-CONF-001": {"message": "Concurrent modification, retry the request", "http_status": 409},
}


class TaskBoardError(Exception):
    """Base class for every failure surfaced to API callers"""

    code = "TB-SYS-001"
    http_status = 500

    def __init__(self, message: str = None):
        self.message = message or ERROR_CATALOGUE.get(self.code, {}).get("message", "Internal error")
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class NotFoundError(TaskBoardError):
    """Referenced board, column or card does not exist"""
    code = "TB-NF-001"
    http_status = 404


class ForbiddenError(TaskBoardError):
    """Principal does not own the referenced entity"""
    code = "TB-AUTH-003"
    http_status = 403


class ValidationFailure(TaskBoardError):
    """Malformed input: bad id format, id outside its group, duplicate ids"""
    code = "TB-VAL-001"
    http_status = 422


class ConflictError(TaskBoardError):
    """Sibling group changed underneath the request or its lock was unavailable"""
    code = "TB-CONF-001"
    http_status = 409
