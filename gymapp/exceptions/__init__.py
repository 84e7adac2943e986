"""Custom exceptions for the gym platform."""


class GymError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(GymError):
    """Malformed input: missing fields, bad permission map, swapped match ids."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class BusinessLogicError(GymError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class InvalidOperationError(BusinessLogicError):
    """Structurally disallowed action (rename a system role, delete a role in use)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class InvalidTransitionError(BusinessLogicError):
    """Status change not allowed by the order or match state machine."""
    def __init__(self, current_status, new_status, entity='order'):
        self.current_status = current_status
        self.new_status = new_status
        message = f"Cannot move {entity} from '{current_status}' to '{new_status}'"
        super().__init__(message, 400)


class InsufficientStockError(BusinessLogicError):
    """Raised when an order fails due to lack of stock."""
    def __init__(self, product_name, required, available):
        self.product_name = product_name
        self.required = required
        self.available = available
        message = f"Insufficient stock for {product_name}. Requested: {required}, Available: {available}"
        super().__init__(message, status_code=409)


class NotFoundError(GymError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(GymError):
    """Uniqueness violation: duplicate role name, active match, email."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class AuthenticationError(GymError):
    """Missing, expired or invalid credentials."""
    def __init__(self, message="Not authenticated"):
        super().__init__(message, 401)


class AuthorizationError(GymError):
    """Raised when a role lacks permission for an action."""
    def __init__(self, message="You don't have permission to perform this action"):
        super().__init__(message, 403)
