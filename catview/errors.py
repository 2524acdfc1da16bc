"""Errors raised by the category engine and rendered by the app factory."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CategoryError(Exception):
    """Base class for client-visible category errors."""

    status_code = 400
    errorcode = "categoryerror"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "errorcode": self.errorcode, "message": self.message}


class InvalidCriteria(CategoryError):
    errorcode = "criteriaerror"

    def __init__(self, key: str) -> None:
        super().__init__(f"You can not search on this criteria: {key}")
        self.key = key


class ForbiddenCriteria(CategoryError):
    status_code = 403
    errorcode = "criteriaerror"

    def __init__(self, key: str) -> None:
        super().__init__(f'You don\'t have the permissions to search on the "{key}" field.')
        self.key = key


class ContextInvalid(CategoryError):
    """The requested category's access context failed validation."""

    status_code = 403
    errorcode = "errorcatcontextnotvalid"

    def __init__(self, category_id: int, cause: Optional[str] = None) -> None:
        message = f"Context of category {category_id} is not valid"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.category_id = category_id
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["catid"] = self.category_id
        return payload


class InvalidSort(CategoryError):
    errorcode = "invalidsort"

    def __init__(self, field: str) -> None:
        super().__init__(f"Categories can not be sorted by: {field}")
        self.field = field


class CategoryNotFound(CategoryError):
    status_code = 404
    errorcode = "invalidcategoryid"

    def __init__(self, category_id: int) -> None:
        super().__init__(f"Category {category_id} does not exist")
        self.category_id = category_id
