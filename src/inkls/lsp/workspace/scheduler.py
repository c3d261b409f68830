"""
Compile scheduler - one compile in flight per workspace, newest request wins.

inklecate offers no way to cancel a running compilation, so stale results
are filtered where they are consumed instead of where they are produced:

1. every trigger bumps the workspace's generation counter and is admitted
   as a ``CompileRequest`` tagged with the new value;
2. requests run one at a time; a request that is already stale when its
   turn comes is skipped without spawning anything;
3. a running request is never killed, but when it completes its tag is
   compared with the latest admitted generation and its output is only
   delivered if they match. The first matching completion wins; repeated
   completions for the same generation are no-ops.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from inkls.lsp.utils.models import CompileRequest
from inkls.lsp.workspace.errors import CompilerInvocationError

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


@dataclass(frozen=True)
class CompileOutcome(Generic[ResultT]):
    """
    How a request ended.

    Attributes:
        request: The request
        accepted: Whether its output was delivered
        skipped: Whether it was superseded before the compiler was spawned
        result: Compiler output, when the invocation succeeded
        error: Invocation failure, when it didn't
    """

    request: CompileRequest
    accepted: bool
    skipped: bool = False
    result: Optional[ResultT] = None
    error: Optional[CompilerInvocationError] = None


class CompileScheduler(Generic[ResultT]):
    """Serializes compilations of a single workspace and discards superseded results."""

    def __init__(self, workspace_id: str):
        self.workspace_id = workspace_id
        self.latest_requested = 0
        self.last_accepted = 0
        self.in_flight: Optional[CompileRequest] = None
        self._run_lock = asyncio.Lock()

    def admit(self) -> CompileRequest:
        """Admit a new compile trigger, superseding every earlier one."""
        self.latest_requested += 1
        request = CompileRequest(workspace_id=self.workspace_id, generation=self.latest_requested)
        logger.debug(f"Admitted compile generation {request.generation} for {self.workspace_id}")
        return request

    def is_current(self, request: CompileRequest) -> bool:
        return request.workspace_id == self.workspace_id and request.generation == self.latest_requested

    def accept(self, request: CompileRequest) -> bool:
        """
        Decide whether a completed request may publish.

        Returns:
            True exactly once per generation, and only for the latest admitted one
        """
        if not self.is_current(request):
            logger.debug(
                f"Discarding stale compile generation {request.generation} for {self.workspace_id} "
                f"(latest is {self.latest_requested})"
            )
            return False
        if request.generation <= self.last_accepted:
            return False
        self.last_accepted = request.generation
        return True

    async def run(
        self,
        request: CompileRequest,
        invoke: Callable[[CompileRequest], Awaitable[ResultT]],
        deliver: Callable[["CompileOutcome[ResultT]"], None],
    ) -> "CompileOutcome[ResultT]":
        """
        Run an admitted request once every earlier one has completed.

        ``deliver`` is only called for an accepted outcome, while the run
        lock is still held, so no later request can complete before the
        accepted result has been handed over.

        Args:
            request: A request returned by ``admit``
            invoke: Coroutine function spawning the compiler
            deliver: Callback receiving the accepted outcome

        Returns:
            The outcome, accepted or not
        """
        async with self._run_lock:
            if not self.is_current(request):
                logger.debug(f"Skipping superseded compile generation {request.generation} for {self.workspace_id}")
                return CompileOutcome(request=request, accepted=False, skipped=True)

            self.in_flight = request
            result: Optional[ResultT] = None
            error: Optional[CompilerInvocationError] = None
            try:
                result = await invoke(request)
            except CompilerInvocationError as e:
                error = e
            finally:
                self.in_flight = None

            outcome = CompileOutcome(
                request=request, accepted=self.accept(request), result=result, error=error
            )
            if outcome.accepted:
                deliver(outcome)
            return outcome

    async def submit(
        self,
        invoke: Callable[[CompileRequest], Awaitable[ResultT]],
        deliver: Callable[["CompileOutcome[ResultT]"], None],
    ) -> "CompileOutcome[ResultT]":
        """Admit a new request and run it."""
        return await self.run(self.admit(), invoke, deliver)
