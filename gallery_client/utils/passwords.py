"""
Password strength rules used at sign-up and password change
"""
from dataclasses import dataclass, field
from typing import Callable, List, Literal
import re

Strength = Literal["weak", "medium", "strong"]


@dataclass(frozen=True)
class PasswordRequirement:
    test: Callable[[str], bool]
    message: str
    weight: int


@dataclass
class PasswordValidationResult:
    is_valid: bool
    strength: Strength
    score: int  # 0-100
    errors: List[str] = field(default_factory=list)


PASSWORD_REQUIREMENTS = [
    PasswordRequirement(lambda p: len(p) >= 8, "At least 8 characters", 2),
    PasswordRequirement(lambda p: re.search(r"[a-z]", p) is not None, "A lowercase letter", 1),
    PasswordRequirement(lambda p: re.search(r"\d", p) is not None, "A number", 1),
]

WEAK_PASSWORD_PATTERNS = [
    re.compile(r"^123456"),
    re.compile(r"^password", re.IGNORECASE),
    re.compile(r"^qwerty", re.IGNORECASE),
    re.compile(r"^abc123", re.IGNORECASE),
    re.compile(r"^admin", re.IGNORECASE),
    re.compile(r"^letmein", re.IGNORECASE),
    re.compile(r"^welcome", re.IGNORECASE),
    re.compile(r"^monkey", re.IGNORECASE),
    re.compile(r"^dragon", re.IGNORECASE),
    re.compile(r"^master", re.IGNORECASE),
    re.compile(r"^(.)\1{2,}"),  # same character repeated
    re.compile(r"^\d{4,}$"),  # digits only
    re.compile(r"^[a-zA-Z]+$"),  # letters only
]

WEAK_PASSWORD_MESSAGE = "Password is too common, use a less predictable combination"


def validate_password(password: str) -> PasswordValidationResult:
    """
    Score a password against the requirements and common weak patterns

    A matched weak pattern adds an error and costs two points. Strength is
    weak below 40% of the maximum score, medium below 70%, else strong.
    """
    errors: List[str] = []
    score = 0
    max_score = sum(req.weight for req in PASSWORD_REQUIREMENTS)

    for requirement in PASSWORD_REQUIREMENTS:
        if requirement.test(password):
            score += requirement.weight
        else:
            errors.append(requirement.message)

    if any(pattern.search(password) for pattern in WEAK_PASSWORD_PATTERNS):
        errors.append(WEAK_PASSWORD_MESSAGE)
        score = max(0, score - 2)

    ratio = score / max_score
    if ratio < 0.4:
        strength = "weak"
    elif ratio < 0.7:
        strength = "medium"
    else:
        strength = "strong"

    return PasswordValidationResult(
        is_valid=not errors,
        strength=strength,
        score=round(ratio * 100),
        errors=errors,
    )
