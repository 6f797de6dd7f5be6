"""Error types raised by the workflow services.

Each error knows its HTTP status so blueprints can let them propagate and the
handler registered in ``create_app`` turns them into JSON.
"""


class APIError(Exception):
    status_code = 400

    def __init__(self, message, **payload):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self):
        body = {"error": self.message}
        body.update(self.payload)
        return body


class NotFound(APIError):
    status_code = 404


class InvalidState(APIError):
    status_code = 409


class PaymentUnverified(APIError):
    status_code = 402


class Forbidden(APIError):
    status_code = 403


class ValidationError(APIError):
    status_code = 422

    def __init__(self, fields, message="Invalid input"):
        super().__init__(message, fields=fields)
        self.fields = fields

    @classmethod
    def from_pydantic(cls, exc):
        fields = []
        for err in exc.errors():
            fields.append({
                "field": ".".join(str(part) for part in err["loc"]) or "body",
                "message": err["msg"],
            })
        return cls(fields)
