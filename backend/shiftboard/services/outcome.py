"""Multi-step side-effect outcome tracking.

An endpoint that fans out to several best-effort side effects (database
writes, e-mails, webhooks) records each one as a Step. The endpoint reports
success when at least one *primary* step succeeded.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()


@dataclass
class Step:
    name: str
    ok: bool
    primary: bool = False
    error: str | None = None
    result: Any = None


@dataclass
class Outcome:
    operation: str
    steps: list[Step] = field(default_factory=list)

    async def run(self, name: str, fn: Callable[[], Awaitable[Any]], primary: bool = False) -> Any:
        """Execute one step inside its own failure boundary.

        A step fails when it raises or returns ``False``. Returns the step's
        result, or None when it failed.
        """
        try:
            result = await fn()
        except Exception as e:
            logger.warning("outcome_step_failed", operation=self.operation, step=name, error=str(e))
            self.steps.append(Step(name=name, ok=False, primary=primary, error=str(e)))
            return None

        ok = result is not False
        if not ok:
            logger.info("outcome_step_unsuccessful", operation=self.operation, step=name)
        self.steps.append(Step(name=name, ok=ok, primary=primary, result=result))
        return result if ok else None

    def skip(self, name: str, reason: str, primary: bool = False) -> None:
        self.steps.append(Step(name=name, ok=False, primary=primary, error=reason))

    def ok(self, name: str) -> bool:
        return any(s.ok for s in self.steps if s.name == name)

    @property
    def succeeded(self) -> bool:
        return any(s.ok for s in self.steps if s.primary)

    def summary(self) -> dict[str, bool]:
        return {s.name: s.ok for s in self.steps}

    def log(self) -> None:
        logger.info(
            f"{self.operation}_outcome",
            succeeded=self.succeeded,
            steps=self.summary(),
        )
