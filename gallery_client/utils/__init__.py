from .passwords import PasswordValidationResult, validate_password
from .search import (
    ParsedQuery,
    calculate_relevance_score,
    highlight_search_query,
    is_valid_search_query,
    parse_search_query,
    sanitize_search_query,
)


__all__ = [
    # passwords.py
    "PasswordValidationResult",
    "validate_password",
    # search.py
    "ParsedQuery",
    "calculate_relevance_score",
    "highlight_search_query",
    "is_valid_search_query",
    "parse_search_query",
    "sanitize_search_query",
]
