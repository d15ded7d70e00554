from cluster_engine.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

    def to_dict(self):
        return {
            'status': False,
            'error_code': self.error_code,
            'status_message': self.status_message,
            'details': self.details,
            'action_button': self.action_button
        }

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.VALIDATION_ERROR,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class InvalidWagerException(AppException):
    """Raised before any random draw when a wager is not a positive finite amount."""
    def __init__(self, status_message="Wager must be a positive finite amount", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INVALID_BET,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class ConfigurationException(AppException):
    def __init__(self, status_message="Engine configuration error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.ENGINE_CONFIG_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )

class InternalServerErrorException(AppException):
    def __init__(self, status_message="Internal server error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_SERVER_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )
