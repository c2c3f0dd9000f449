"""
Translation of domain errors into HTTP errors.

Reviewer-facing endpoints get the domain message. Token holders (people
clicking email links) only learn that a link is unusable or already used.
"""

from fastapi import HTTPException, status

from src.domain.exceptions import ApprovalError, ErrorKind

_STATUS_BY_KIND = {
    ErrorKind.DUPLICATE_PENDING: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_REVIEWED: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_OR_EXPIRED_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EMAIL_NOT_VERIFIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.STORE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.NOTIFICATION_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

INVALID_LINK_DETAIL = "This link is invalid or has expired."
ALREADY_REVIEWED_DETAIL = "This registration request has already been reviewed."
UNAVAILABLE_DETAIL = "Service temporarily unavailable"


def http_error(error: ApprovalError) -> HTTPException:
    """HTTPException carrying the domain message."""
    status_code = _STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if error.kind is ErrorKind.STORE_FAILURE:
        return HTTPException(status_code=status_code, detail=UNAVAILABLE_DETAIL)
    return HTTPException(status_code=status_code, detail=error.message)


def token_http_error(error: ApprovalError) -> HTTPException:
    """HTTPException for email-link holders, with no detail about why a token failed."""
    if error.kind is ErrorKind.INVALID_OR_EXPIRED_TOKEN:
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_LINK_DETAIL)
    if error.kind is ErrorKind.ALREADY_REVIEWED:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_REVIEWED_DETAIL)
    return http_error(error)
