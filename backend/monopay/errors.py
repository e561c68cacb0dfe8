"""Error taxonomy shared by services and HTTP handlers.

Every failure a caller can observe is one of these. Services raise them,
and the handler registered in ``create_app`` renders them as JSON with a
stable machine-checkable ``code`` plus the taxonomy ``kind``.
"""


class MonoPayError(Exception):
    kind = 'VALIDATION'
    status_code = 400

    def __init__(self, code: str, message: str, **extra):
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        payload = {'error': self.message, 'code': self.code, 'kind': self.kind}
        payload.update(self.extra)
        return payload


class ValidationError(MonoPayError):
    kind = 'VALIDATION'
    status_code = 400


class ConflictError(MonoPayError):
    kind = 'CONFLICT'
    status_code = 400


class NotFoundError(MonoPayError):
    kind = 'NOT_FOUND'
    status_code = 404


class ForbiddenError(MonoPayError):
    kind = 'FORBIDDEN'
    status_code = 403


class StateError(MonoPayError):
    kind = 'STATE'
    status_code = 400


class AuthError(MonoPayError):
    kind = 'AUTH'
    status_code = 401


class DeliveryError(MonoPayError):
    kind = 'DELIVERY'
    status_code = 500
