# core/exceptions.py
#
# Domain failures shared by the queue engine and the call-session service.
# They are DRF APIExceptions so REST views can simply let them propagate;
# core.responses turns them into the {"success": false, "error": ...} envelope.

from rest_framework import status
from rest_framework.exceptions import APIException


class CoordinationError(APIException):
    status_code    = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"
    default_code   = "error"


class NotFound(CoordinationError):
    """Schedule, queue, appointment or call session absent."""
    status_code    = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"
    default_code   = "not_found"


class InvalidState(CoordinationError):
    """Operation attempted outside its valid state."""
    status_code    = status.HTTP_400_BAD_REQUEST
    default_detail = "Operation not allowed in the current state"
    default_code   = "invalid_state"


class NoEligibleAppointments(CoordinationError):
    status_code    = status.HTTP_404_NOT_FOUND
    default_detail = "No eligible appointments found for this schedule"
    default_code   = "no_eligible_appointments"


class ValidationError(CoordinationError):
    status_code    = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"
    default_code   = "validation_error"


class SessionAlreadyActive(CoordinationError):
    status_code    = status.HTTP_409_CONFLICT
    default_detail = "A call session is already active for this room"
    default_code   = "session_already_active"


class TransientStoreError(CoordinationError):
    """The document store kept failing after every retry."""
    status_code    = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage temporarily unavailable, please retry"
    default_code   = "transient_store_error"
