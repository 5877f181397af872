from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FieldError:
    field: str
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


@dataclass
class PricingFailure(Exception):
    code: str
    message: str
    status_code: int = 400
    errors: list[FieldError] = field(default_factory=list)

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> dict:
        detail = {"code": self.code, "message": self.message}
        if self.errors:
            detail["errors"] = [err.to_dict() for err in self.errors]
        return detail


class NotFoundError(PricingFailure):
    def __init__(self, message: str):
        super().__init__(code="NOT_FOUND", message=message, status_code=404)


class ConflictError(PricingFailure):
    def __init__(self, message: str):
        super().__init__(code="CONFLICT", message=message, status_code=409)


class InvalidArgumentError(PricingFailure):
    def __init__(self, errors: list[FieldError], message: str | None = None):
        super().__init__(
            code="INVALID_ARGUMENT",
            message=message or "; ".join(err.message for err in errors) or "Invalid argument.",
            status_code=422,
            errors=list(errors),
        )


class InvalidStateError(PricingFailure):
    def __init__(self, message: str):
        super().__init__(code="INVALID_STATE", message=message, status_code=409)


class InvalidTransitionError(PricingFailure):
    def __init__(self, message: str):
        super().__init__(code="INVALID_TRANSITION", message=message, status_code=409)
