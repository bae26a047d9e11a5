"""
Compensating multi-step operations.

Stores are not transactional across tables, so every manager operation
touching more than one table or index runs as a Saga: an ordered list of
steps, each with an optional compensation that undoes it.

Invariants:
    - Steps run strictly in order, each at most once
    - On failure, completed steps are compensated in reverse order and the
      failed step itself is never compensated
    - A failing compensation is logged and does not stop the others
    - The caller always sees the error of the failed step

How to change safely:
    - Compensations must tolerate the state left by later compensations
    - Do not swallow the original error; callers map it to a status code
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from ..errors import InternalError, SystemModelError

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[Any], Awaitable[None]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensation: Optional[Compensation] = None


class Saga:
    """An ordered list of compensable steps.

    Example:
        >>> saga = Saga("attach_node")
        >>> saga.step("add_to_cluster", add, compensation=lambda _: remove())
        >>> await saga.run()
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._steps: List[SagaStep] = []

    def step(
        self,
        name: str,
        action: Action,
        compensation: Optional[Compensation] = None,
    ) -> Saga:
        """Append a step.

        Args:
            name: Step name for logs
            action: Coroutine function performing the step
            compensation: Coroutine function undoing it, receives the
                value returned by action

        Returns:
            The saga, for chaining
        """
        self._steps.append(SagaStep(name, action, compensation))
        return self

    async def run(self) -> List[Any]:
        """Execute every step.

        Returns:
            The result of each step, in order

        Raises:
            SystemModelError: The failure of the first failing step; errors
                of other types are wrapped in InternalError
        """
        completed: List[tuple[SagaStep, Any]] = []
        for step in self._steps:
            try:
                result = await step.action()
            except Exception as e:
                logger.warning(
                    "Saga step failed, compensating",
                    extra={
                        "saga": self.name,
                        "step": step.name,
                        "completed_steps": len(completed),
                        "error": str(e),
                    },
                )
                await self._compensate(completed)
                if isinstance(e, SystemModelError):
                    raise
                raise InternalError(f"{self.name} failed").caused_by(e) from e
            completed.append((step, result))
        return [result for _, result in completed]

    async def _compensate(self, completed: List[tuple[SagaStep, Any]]) -> None:
        for step, result in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation(result)
            except Exception:
                logger.error(
                    "Saga compensation failed",
                    extra={"saga": self.name, "step": step.name},
                    exc_info=True,
                )
