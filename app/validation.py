"""Field validation rules evaluated before records are written.

Each entity declares a list of rules; ``validate`` runs them against a plain
mapping of field values and collects every failure instead of stopping at the
first one, so a client sees all problems with its payload at once.
"""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.errors import AppError
from app.models.tour import DIFFICULTIES
from app.models.user import ROLES


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class Required:
    field: str
    message: str

    def check(self, data: Mapping[str, Any]) -> str | None:
        return self.message if _blank(data.get(self.field)) else None


@dataclass(frozen=True)
class Length:
    field: str
    min: int | None = None
    max: int | None = None
    message: str = ""

    def check(self, data: Mapping[str, Any]) -> str | None:
        value = data.get(self.field)
        if value is None:
            return None
        size = len(str(value).strip())
        if (self.min is not None and size < self.min) or (self.max is not None and size > self.max):
            return self.message or f"{self.field} must be between {self.min} and {self.max} characters"
        return None


@dataclass(frozen=True)
class OneOf:
    field: str
    choices: Sequence[str]
    message: str = ""

    def check(self, data: Mapping[str, Any]) -> str | None:
        value = data.get(self.field)
        if value is None or value in self.choices:
            return None
        return self.message or f"{self.field} must be one of: {', '.join(self.choices)}"


@dataclass(frozen=True)
class Between:
    field: str
    min: float | None = None
    max: float | None = None
    message: str = ""

    def check(self, data: Mapping[str, Any]) -> str | None:
        value = data.get(self.field)
        if value is None:
            return None
        if (self.min is not None and value < self.min) or (self.max is not None and value > self.max):
            return self.message or f"{self.field} must be between {self.min} and {self.max}"
        return None


@dataclass(frozen=True)
class Matches:
    field: str
    pattern: re.Pattern
    message: str

    def check(self, data: Mapping[str, Any]) -> str | None:
        value = data.get(self.field)
        if value is None or self.pattern.fullmatch(str(value)):
            return None
        return self.message


@dataclass(frozen=True)
class Check:
    """Cross-field rule. ``predicate`` gets the whole mapping and is only run when all ``needs`` are present."""

    field: str
    predicate: Callable[[Mapping[str, Any]], bool]
    message: str
    needs: tuple[str, ...] = ()

    def check(self, data: Mapping[str, Any]) -> str | None:
        if any(data.get(name) is None for name in (self.field, *self.needs)):
            return None
        return None if self.predicate(data) else self.message


Rule = Required | Length | OneOf | Between | Matches | Check


def validate(data: Mapping[str, Any], rules: Sequence[Rule]) -> list[FieldError]:
    """Evaluate rules against data. Updates pass the merged record so required fields are present."""
    errors = []
    for rule in rules:
        message = rule.check(data)
        if message:
            errors.append(FieldError(rule.field, message))
    return errors


def ensure_valid(data: Mapping[str, Any], rules: Sequence[Rule]) -> None:
    """Raise a 400 AppError listing every failed rule."""
    errors = validate(data, rules)
    if errors:
        message = "Invalid input data. " + " ".join(e.message for e in errors)
        raise AppError(message, 400, errors=[e.to_dict() for e in errors])


EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[A-Za-z]{2,}")

USER_RULES: list[Rule] = [
    Required("name", "Please tell us your name"),
    Length("name", min=5, max=20, message="A user name must have between 5 and 20 characters"),
    Required("email", "Please provide your email"),
    Matches("email", EMAIL_PATTERN, "Please provide a valid email"),
    OneOf("role", ROLES, "Role is either: user, guide, lead-guide, admin"),
]

PASSWORD_RULES: list[Rule] = [
    Required("password", "Please provide a password"),
    Length("password", min=8, message="A password must have at least 8 characters"),
    Required("password_confirm", "Please confirm your password"),
    Check(
        "password_confirm",
        lambda d: d["password"] == d["password_confirm"],
        "Passwords are not the same",
        needs=("password",),
    ),
]

TOUR_RULES: list[Rule] = [
    Required("name", "A tour must have a name"),
    Length("name", min=10, max=40, message="A tour name must have between 10 and 40 characters"),
    Required("duration", "A tour must have a duration"),
    Between("duration", min=1, message="Duration must be at least 1 day"),
    Required("max_group_size", "A tour must have a group size"),
    Between("max_group_size", min=1, message="Group size must be at least 1"),
    Required("difficulty", "A tour must have a difficulty"),
    OneOf("difficulty", DIFFICULTIES, "Difficulty is either: easy, medium, difficult"),
    Between("ratings_average", min=1, max=5, message="Rating must be between 1.0 and 5.0"),
    Required("price", "A tour must have a price"),
    Between("price", min=0, message="Price cannot be negative"),
    Check(
        "price_discount",
        lambda d: d["price_discount"] < d["price"],
        "Discount price should be below regular price",
        needs=("price",),
    ),
    Required("summary", "A tour must have a summary"),
    Required("image_cover", "A tour must have a cover image"),
]

REVIEW_RULES: list[Rule] = [
    Required("review", "Review can not be empty"),
    Required("rating", "A review must have a rating"),
    Between("rating", min=1, max=5, message="Rating must be between 1 and 5"),
]
