"""
Members Exceptions

Typed errors raised by the reconciliation engine and the member service.
Routes translate them to HTTP responses through ``status_code`` and
``to_dict()``.
"""
from typing import Optional


class MembersError(Exception):
    """
    Base exception for member and subscription reconciliation errors.
    """

    status_code = 400

    def __init__(self, message: str, code: str = "MEMBERS_ERROR", details: dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class GatewayNotConfiguredError(MembersError):
    """
    Raised when a Stripe-dependent operation runs without a Stripe connection.

    Attributes:
        operation: Human readable name of the attempted operation
    """

    status_code = 503

    def __init__(self, operation: str):
        super().__init__(
            message=f"Cannot {operation} with no Stripe Connection",
            code="GATEWAY_NOT_CONFIGURED",
            details={'operation': operation}
        )
        self.operation = operation


class UnlinkedCustomerError(MembersError):
    """Raised when a subscription's customer is not linked to the member."""

    status_code = 409

    def __init__(self, member_id: int, customer_id: Optional[str]):
        super().__init__(
            message="Subscription is not associated with a customer for the member",
            code="UNLINKED_CUSTOMER",
            details={'member_id': member_id, 'customer_id': customer_id}
        )
        self.member_id = member_id
        self.customer_id = customer_id


class SubscriptionNotFoundError(MembersError):
    """Raised when the member has no mirrored subscription with the given id."""

    status_code = 404

    def __init__(self, subscription_id: str, member_id: int = None):
        details = {'subscription_id': subscription_id}
        if member_id is not None:
            details['member_id'] = member_id
        super().__init__(
            message="Subscription not found",
            code="SUBSCRIPTION_NOT_FOUND",
            details=details
        )
        self.subscription_id = subscription_id


class InvalidArgumentError(MembersError):
    """Raised on incorrect usage, before any I/O happens."""

    status_code = 422

    def __init__(self, message: str = "Incorrect usage", argument: str = None):
        super().__init__(
            message=message,
            code="INVALID_ARGUMENT",
            details={'argument': argument} if argument else {}
        )
        self.argument = argument


class ComplimentaryPlanNotFoundError(MembersError):
    """Raised when the plan catalog has no complimentary plan for a currency."""

    status_code = 409

    def __init__(self, currency: Optional[str]):
        super().__init__(
            message="Could not find Complimentary plan",
            code="COMPLIMENTARY_PLAN_NOT_FOUND",
            details={'currency': currency}
        )
        self.currency = currency


class MemberNotFoundError(MembersError):
    """Raised when a member lookup by id comes back empty."""

    status_code = 404

    def __init__(self, member_id: int):
        super().__init__(
            message="Member not found",
            code="MEMBER_NOT_FOUND",
            details={'member_id': member_id}
        )
        self.member_id = member_id


class CustomerAlreadyLinkedError(MembersError):
    """
    Raised when linking a Stripe customer that already has a local row.

    Linking is insert-only so an existing customer is never re-attributed
    to a different member.
    """

    status_code = 409

    def __init__(self, customer_id: str, member_id: int = None):
        super().__init__(
            message="Stripe customer is already linked",
            code="CUSTOMER_ALREADY_LINKED",
            details={'customer_id': customer_id, 'member_id': member_id}
        )
        self.customer_id = customer_id


class MemberEmailTakenError(MembersError):
    """Raised when a member update would reuse another member's email."""

    status_code = 409

    def __init__(self, email: str, member_id: int = None):
        super().__init__(
            message="Another member already uses this email",
            code="MEMBER_EMAIL_TAKEN",
            details={'email': email, 'member_id': member_id}
        )
        self.email = email
