"""
# Mutation Pipeline

Every admin mutation goes through the same contract:

1. **Authorize** with `require_admin` before any store is touched.
2. **Validate** input and referenced entities; problems raise `ValidationFailure` or
   `NotFoundFailure` *before* any write.
3. **Write** to the owning store(s).
4. **Audit** the action (best effort, see `AuditTrail`).

The `admin_mutation` decorator implements steps 1 and the error boundary: whatever happens inside,
the caller receives an `ActionResult`.

| Raised inside | Caller sees |
|---------------|-------------|
| `UnauthenticatedError` | `"Authentication required"` |
| `ForbiddenError` | `"Admin access required"` |
| `MutationRejected` (and subclasses) | the rejection's own message |
| anything else | the operation's generic failure message (traceback logged) |

```python
class PointsService:
    @admin_mutation("Failed to adjust points")
    async def adjust_pairing_points(self, actor: Identity, pairing_id: str, amount: int, reason: str):
        ...
        return ActionResult.ok(new_points=..., revalidate=["/admin/points"])
```

Decorated methods take the (unverified) caller identity as their first argument; inside the body
it is guaranteed to be an admin.
"""

import functools
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.authorization import ForbiddenError, UnauthenticatedError, require_admin, require_auth

logger = get_logger(prefix="[MutationPipeline]")

AUTHENTICATION_REQUIRED = "Authentication required"
ADMIN_ACCESS_REQUIRED = "Admin access required"


class MutationRejected(Exception):
    """A mutation refused for a reason the caller may see verbatim."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(MutationRejected):
    """Bad input shape or values."""


class NotFoundFailure(MutationRejected):
    """A referenced entity does not exist."""


Guard = Callable[[Optional[Identity]], Identity]
Mutation = Callable[..., Awaitable[ActionResult]]


def _guarded(failure_message: str, guard: Guard) -> Callable[[Mutation], Mutation]:
    def decorator(func: Mutation) -> Mutation:
        @functools.wraps(func)
        async def wrapper(self: Any, actor: Optional[Identity], *args: Any, **kwargs: Any) -> ActionResult:
            try:
                verified = guard(actor)
                return await func(self, verified, *args, **kwargs)
            except UnauthenticatedError:
                return ActionResult.fail(AUTHENTICATION_REQUIRED)
            except ForbiddenError:
                return ActionResult.fail(ADMIN_ACCESS_REQUIRED)
            except MutationRejected as e:
                logger.info("%s rejected: %s", func.__qualname__, e.message)
                return ActionResult.fail(e.message)
            except Exception:
                logger.error("%s failed", func.__qualname__, exc_info=True)
                return ActionResult.fail(failure_message)

        return wrapper

    return decorator


def parse_update(model: Type[BaseModel], updates: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
    """Validate a partial update against `model`; returns only the fields the caller set."""
    if isinstance(updates, BaseModel):
        return updates.model_dump(exclude_unset=True)
    try:
        return model.model_validate(dict(updates)).model_dump(exclude_unset=True)
    except ValidationError as e:
        field = ".".join(str(part) for part in e.errors()[0]["loc"]) or "update"
        raise ValidationFailure(f"Invalid value for {field}") from e


def admin_mutation(failure_message: str) -> Callable[[Mutation], Mutation]:
    """Guard a mutation with `require_admin` and convert every outcome into an `ActionResult`."""
    return _guarded(failure_message, require_admin)


def authenticated_mutation(failure_message: str) -> Callable[[Mutation], Mutation]:
    """Same boundary as `admin_mutation` for self-service operations any signed-in identity may run."""
    return _guarded(failure_message, require_auth)
