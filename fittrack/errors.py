from flask import jsonify


class StorageError(Exception):
    """Base class for failures raised by the weight store"""
    status_code = 500


class ConstraintViolation(StorageError):
    """A write would break a uniqueness or reference constraint"""
    status_code = 400


class ValidationError(StorageError):
    """Custom exception for validation errors"""
    status_code = 400


class StorageUnavailable(StorageError):
    """The underlying store is closed or cannot be reached"""
    status_code = 503


def register_error_handlers(app):
    @app.errorhandler(StorageError)
    def handle_storage_error(error):
        return jsonify({'error': str(error)}), error.status_code
