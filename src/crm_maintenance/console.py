"""Interactive query/delete console over the maintenance engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple

from src.config.config_manager import MaintenanceConfig
from src.core.conditions import Condition, DateRange, build_date_range, parse_condition, parse_timestamp
from src.core.confirmation_gate import ConfirmationGate, Prompt, read_stdin_line, stdin_prompt
from src.core.document_store import DocumentStore
from src.core.orchestrator import MaintenanceOrchestrator, resolve_collections
from src.utils.error_handling import ParseError

from .reporting import emit, outcome_lines, preview_lines

HELP_TEXT = """
Query console

Commands:
  collection: <name>        Set collection (e.g. notes, opportunities, accounts)
  from: <date>              Range start (YYYY-MM-DD or ISO format)
  to: <date>                Range end; bare dates cover the whole day
  where: <field> <op> <v>   Set the condition (e.g. "source == email"); empty clears it
  limit: <number>           Result limit (default: 50)
  show                      Show current query
  clear                     Clear current query
  run                       Execute query (read only)
  delete                    Delete documents matching current query
  help                      Show this help
  exit                      Exit console

Operators: ==, !=, <, <=, >, >=, contains
"""

DEFAULT_CONSOLE_LIMIT = 50


async def read_line(message: str) -> str:
    """Read one console line; raises EOFError at end of input"""
    return await read_stdin_line(message)


@dataclass
class ConsoleQuery:
    collection: str = ''
    start: str = ''
    end: str = ''
    condition: Optional[Condition] = None
    limit: int = DEFAULT_CONSOLE_LIMIT


class QueryConsole:
    """Line-oriented console building one query at a time.

    `run` previews through the orchestrator; `delete` goes through the same
    confirmation gate and batch mutator as the delete commands.
    """

    def __init__(self,
                 store: DocumentStore,
                 maintenance: MaintenanceConfig,
                 reader: Callable[[str], Awaitable[str]] = read_line,
                 confirm: Prompt = stdin_prompt,
                 output: Callable[[str], None] = print) -> None:
        self.store = store
        self.maintenance = maintenance
        self._reader = reader
        self._confirm = confirm
        self._output = output
        self.query = ConsoleQuery()
        self.exit_code = 0

    async def run(self) -> int:
        self._output("\nQuery console. Type \"help\" for commands, \"exit\" to quit.\n")
        while True:
            try:
                line = await self._reader('> ')
            except (EOFError, KeyboardInterrupt):
                self._output("\nGoodbye!")
                return self.exit_code
            if not await self.handle(line):
                self._output("\nGoodbye!")
                return self.exit_code

    async def handle(self, line: str) -> bool:
        """Process one command line; returns False when the console should exit"""
        text = line.strip()
        if not text:
            return True

        command = text.lower()
        if command in ('exit', 'quit', 'q'):
            return False

        try:
            if command in ('help', 'h'):
                self._output(HELP_TEXT)
            elif command == 'clear':
                self.query = ConsoleQuery()
                self._output("Query cleared.")
            elif command == 'show':
                self._show()
            elif command in ('run', 'r'):
                await self._run_query()
            elif command in ('delete', 'del', 'd'):
                await self._delete()
            elif ':' in text:
                self._set(*[part.strip() for part in text.split(':', 1)])
            else:
                self._output(f'Unknown command: "{text}". Type "help" for available commands.')
        except ParseError as e:
            self._output(f"Error: {e}")
        return True

    def _set(self, key: str, value: str) -> None:
        key = key.lower()
        if key == 'collection':
            names = resolve_collections(value, self.maintenance.collections, self.maintenance.aliases)
            if len(names) != 1:
                raise ParseError("The console queries one collection at a time")
            self.query.collection = names[0]
            self._output(f"Collection set to: {self.query.collection}")
        elif key == 'from':
            parse_timestamp(value)
            self.query.start = value
            self._output(f"From set to: {value}")
        elif key == 'to':
            parse_timestamp(value)
            self.query.end = value
            self._output(f"To set to: {value}")
        elif key == 'where':
            self.query.condition = parse_condition(value) if value else None
            self._output(
                f"Condition set to: {self.query.condition.describe()}"
                if self.query.condition else "Condition cleared."
            )
        elif key == 'limit':
            try:
                limit = int(value)
            except ValueError:
                limit = 0
            if limit <= 0:
                raise ParseError("Invalid limit. Must be a positive number.")
            self.query.limit = limit
            self._output(f"Limit set to: {limit}")
        else:
            raise ParseError(f'Unknown setting "{key}". Type "help" for available commands.')

    def _show(self) -> None:
        self._output("\nCurrent Query:")
        self._output(f"   Collection: {self.query.collection or '(not set)'}")
        self._output(f"   From: {self.query.start or '(not set)'}")
        self._output(f"   To: {self.query.end or '(not set)'}")
        if self.query.condition:
            self._output(f"   Where: {self.query.condition.describe()}")
        self._output(f"   Limit: {self.query.limit}")

    def _resolved(self) -> Tuple[List[str], DateRange]:
        if not self.query.collection:
            raise ParseError('Collection not set. Use "collection: <name>" first.')
        if not self.query.start or not self.query.end:
            raise ParseError('Date range not set. Use "from: <date>" and "to: <date>" first.')
        return [self.query.collection], build_date_range(self.query.start, self.query.end)

    def _orchestrator(self, gate: ConfirmationGate) -> MaintenanceOrchestrator:
        return MaintenanceOrchestrator(
            self.store,
            gate,
            chunk_size=self.store.max_batch_size,
            preview_size=self.query.limit,
            timestamp_field=self.maintenance.timestamp_field,
            on_preview=lambda summary: emit(preview_lines(summary), self._output),
        )

    async def _run_query(self) -> None:
        collections, date_range = self._resolved()
        orchestrator = self._orchestrator(ConfirmationGate(dry_run=True))
        summary = await orchestrator.preview(
            collections, date_range, self.query.condition, self.query.limit
        )
        emit(preview_lines(summary), self._output)
        if summary.failed:
            self.exit_code = 1

    async def _delete(self) -> None:
        collections, date_range = self._resolved()
        gate = ConfirmationGate(
            grace_seconds=self.maintenance.grace_seconds,
            prompt=self._confirm,
            output=self._output,
        )
        summary = await self._orchestrator(gate).run(
            collections, date_range, self.query.condition, self.query.limit
        )
        emit(outcome_lines(summary), self._output)
        if summary.failed:
            self.exit_code = 1
