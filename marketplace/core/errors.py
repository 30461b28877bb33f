"""Domain errors for the order and return workflows

Each error carries the HTTP status it maps to, a stable error code and a
human-readable detail that is surfaced to the caller verbatim.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for business errors raised by the services"""

    status_code: int = 400
    code: str = "BAD_REQUEST"
    title: str = "Bad Request"

    def __init__(self, detail: str, code: Optional[str] = None):
        self.detail = detail
        if code:
            self.code = code
        super().__init__(detail)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.title,
            "code": self.code,
            "detail": self.detail,
        }


class ValidationError(MarketplaceError):
    """Missing or malformed input"""
    status_code = 422
    code = "VALIDATION_FAILED"
    title = "Validation Failed"


class InvalidReturnSelection(ValidationError):
    """Selected return items or quantities are not returnable"""
    code = "INVALID_RETURN_SELECTION"


class IneligibleCoupon(MarketplaceError):
    """Coupon cannot be applied to this order"""
    code = "COUPON_INELIGIBLE"
    title = "Coupon Not Applicable"


class IneligibleReturn(MarketplaceError):
    """Order cannot be returned"""
    code = "RETURN_INELIGIBLE"
    title = "Return Not Allowed"


class NotFoundError(MarketplaceError):
    status_code = 404
    code = "NOT_FOUND"
    title = "Not Found"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


class ForbiddenError(MarketplaceError):
    status_code = 403
    code = "FORBIDDEN"
    title = "Forbidden"


class InvalidStateTransition(MarketplaceError):
    """Attempted a transition that the current state does not allow"""
    status_code = 409
    code = "INVALID_STATE_TRANSITION"
    title = "Invalid State Transition"

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{requested}'"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current"] = self.current
        data["requested"] = self.requested
        return data


class ExternalServiceFailure(MarketplaceError):
    """Payment or inventory collaborator failed"""
    status_code = 503
    code = "EXTERNAL_SERVICE_FAILURE"
    title = "Service Unavailable"

    def __init__(self, service: str, detail: str):
        self.service = service
        super().__init__(f"{service} is unavailable, please try again later: {detail}")
