"""Domain-specific exceptions"""

from typing import Iterable, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "domain_error"


class ValidationError(DomainException):
    """Input rejected before any write"""

    code = "validation_error"


class InvalidLeaseTerms(ValidationError):
    """Landlord-entered lease terms cannot form a payment plan"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class InvalidIdentifier(ValidationError):
    """Identifier is not a well-formed id for its entity kind"""

    code = "bad_identifier"

    def __init__(self, kind: str, raw: object):
        super().__init__(f"Invalid {kind} id: {raw!r}")
        self.kind = kind
        self.raw = raw


class InvalidPayment(ValidationError):
    """Payment record is malformed (unknown kind/status, non-positive amount)"""

    code = "bad_payment"


class ApplicationNotFound(DomainException):
    """No application record for the given id"""

    code = "application_not_found"

    def __init__(self, application_id: object):
        super().__init__(f"Application {application_id} not found")
        self.application_id = application_id


class StateConflict(DomainException):
    """
    Status guard failed, either on the transition table or on the
    compare-and-swap write. Carries the status actually stored.
    """

    code = "conflict_or_bad_state"

    def __init__(self, current: str, action: str, needs: Optional[Iterable[str]] = None):
        self.current = current
        self.action = action
        self.needs = tuple(needs or ())
        detail = f" (needs {'|'.join(self.needs)})" if self.needs else ""
        super().__init__(f"Cannot {action} from {current}{detail}")


class GuardNotSatisfied(StateConflict):
    """Status allows the action but the derived facts do not (yet)"""

    code = "guard_not_met"


class ForbiddenAction(DomainException):
    """Caller role may not perform the action"""

    code = "forbidden"

    def __init__(self, role: str, action: str):
        super().__init__(f"Role {role!r} may not {action}")
        self.role = role
        self.action = action


class PlanNotSet(DomainException):
    """Application has no payment plan yet"""

    code = "plan_not_set"

    def __init__(self, application_id: object):
        super().__init__(f"Application {application_id} has no payment plan")
        self.application_id = application_id
