# src/core/confirmation_gate.py

import asyncio
import logging
import threading
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

Prompt = Callable[[str], Awaitable[str]]
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_GRACE_SECONDS = 5.0


class GateState(Enum):
    PREVIEW = "preview"
    NOTHING_TO_DELETE = "nothing_to_delete"
    DRY_RUN_EXIT = "dry_run_exit"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CANCELLED = "cancelled"
    CONFIRMED_AND_DELAYING = "confirmed_and_delaying"
    PROCEED = "proceed"


TERMINAL_STATES = frozenset({
    GateState.NOTHING_TO_DELETE,
    GateState.DRY_RUN_EXIT,
    GateState.CANCELLED,
    GateState.PROCEED,
})


async def read_stdin_line(message: str) -> str:
    """Read one line from stdin on a daemon thread

    Cancelling the awaiting task returns at once. The reader thread stays
    blocked in input() but, being a daemon, does not hold up interpreter
    or event loop shutdown. EOFError is raised at end of input.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(value: Optional[str], error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def reader() -> None:
        try:
            value, error = input(message), None
        except Exception as e:
            value, error = None, e
        try:
            loop.call_soon_threadsafe(deliver, value, error)
        except RuntimeError:
            # loop already closed
            pass

    threading.Thread(target=reader, name="stdin-reader", daemon=True).start()
    return await future


async def stdin_prompt(message: str) -> str:
    """Read one confirmation answer from stdin; end of input is an empty answer"""
    try:
        return await read_stdin_line(message)
    except EOFError:
        return ''


class ConfirmationGate:
    """Decides whether a destructive run may go ahead.

    PREVIEW -> DRY_RUN_EXIT, or
    PREVIEW -> AWAITING_CONFIRMATION -> CANCELLED | CONFIRMED_AND_DELAYING -> PROCEED.
    With assume_yes the prompt is skipped; the grace delay is not.
    """

    def __init__(self,
                 dry_run: bool = False,
                 assume_yes: bool = False,
                 grace_seconds: float = DEFAULT_GRACE_SECONDS,
                 prompt: Optional[Prompt] = None,
                 sleep: Optional[Sleep] = None,
                 output: Callable[[str], None] = print) -> None:
        self.dry_run = dry_run
        self.assume_yes = assume_yes
        self.grace_seconds = grace_seconds
        self._prompt = prompt or stdin_prompt
        self._sleep = sleep or asyncio.sleep
        self._output = output
        self.logger = logging.getLogger(__name__)
        self.state = GateState.PREVIEW
        self.history: List[GateState] = [GateState.PREVIEW]

    def _transition(self, state: GateState) -> None:
        self.logger.debug(f"Confirmation gate: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def evaluate(self, total: int, collections: Sequence[str]) -> GateState:
        """
        Run the gate for a previewed set of matches

        Args:
            total: Number of documents that would be deleted
            collections: Collections those documents live in

        Returns:
            Terminal state; only PROCEED allows mutation
        """
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Confirmation gate already finished in state {self.state.value}")

        if total == 0:
            self._transition(GateState.NOTHING_TO_DELETE)
            return self.state

        if self.dry_run:
            self._transition(GateState.DRY_RUN_EXIT)
            return self.state

        if not self.assume_yes:
            self._transition(GateState.AWAITING_CONFIRMATION)
            answer = await self._prompt(
                f"\nWARNING: This will delete {total} document(s) from "
                f"{len(collections)} collection(s). This action cannot be undone!\n"
                'Type "yes" to confirm deletion: '
            )
            if (answer or '').lower() != 'yes':
                self._transition(GateState.CANCELLED)
                self.logger.info("Deletion cancelled by operator")
                return self.state

        self._transition(GateState.CONFIRMED_AND_DELAYING)
        self._output(
            f"\nProceeding with deletion in {self.grace_seconds:g} seconds... "
            "Press Ctrl+C to cancel."
        )
        await self._sleep(self.grace_seconds)

        self._transition(GateState.PROCEED)
        return self.state
