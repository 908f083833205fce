"""
# Action Results

Every admin mutation resolves to an `ActionResult` instead of raising. Payload fields specific to
an operation (for example `previous_points`/`new_points`) ride along as extra fields.

```python
ActionResult.ok(previous_points=10, new_points=15, revalidate=["/admin/points"])
ActionResult.fail("Amount must be non-zero")
```

`revalidate` lists the page paths whose cached renders are stale after the mutation.
"""

from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = Field(..., description="Whether the mutation was applied")
    error: Optional[str] = Field(None, description="User-facing failure message")
    revalidate: List[str] = Field(default_factory=list, description="Paths whose cached pages are now stale")

    @classmethod
    def ok(cls, revalidate: Optional[Iterable[str]] = None, **payload: Any) -> "ActionResult":
        return cls(success=True, revalidate=list(revalidate or []), **payload)

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)
