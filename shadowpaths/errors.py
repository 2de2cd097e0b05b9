"""Domain exceptions shared by the story, progress and economy layers."""


class ShadowPathsError(Exception):
    """Base class; ``status_code`` is what the HTTP layer answers with."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def details(self):
        return {}


class NotFound(ShadowPathsError):
    status_code = 404

    def __init__(self, kind, identifier=None):
        self.kind = kind
        self.identifier = identifier
        if identifier is None:
            message = f"{kind} not found"
        else:
            message = f"{kind} '{identifier}' not found"
        super().__init__(message)


class ValidationFailed(ShadowPathsError):
    """Carries every problem found, not just the first."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid story")

    def details(self):
        return {"errors": self.errors}


class InsufficientFunds(ShadowPathsError):
    status_code = 402

    def __init__(self, cost, balance, currency):
        self.cost = cost
        self.balance = balance
        self.currency = currency
        super().__init__(f"Unlock costs {cost} but only {balance} is available")

    def details(self):
        return {"cost": self.cost, "balance": self.balance, "currency": self.currency}


class IdConflict(ShadowPathsError):
    status_code = 409

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"Id '{identifier}' is already used in this story")


class InvalidTransition(ShadowPathsError):
    status_code = 409

    def __init__(self, status, action):
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} a story that is {status}")


class PermissionDenied(ShadowPathsError):
    status_code = 403


class ConcurrentUpdate(ShadowPathsError):
    """Raised when a conditional write finds the row changed underneath it."""

    status_code = 409

    def __init__(self, kind, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} was modified by another request, reload and retry")


class StorageFailure(ShadowPathsError):
    status_code = 500
