from dataclasses import dataclass
from typing import Any, Optional

@dataclass
class ServiceResult:
    """Outcome of a service call; routers turn failures into HTTP errors."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = 200

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, status_code: int = 400) -> "ServiceResult":
        return cls(success=False, error=error, status_code=status_code)
