"""Directive-driven parsing and transactional execution of SQL scripts.

Some DDL statements commit implicitly and cannot share a transaction with
other statements. Scripts control transaction scope with comments:

    -- NOTX       before the first statement: no whole-file transaction
    -- TXBEGIN    opens an explicit transaction
    -- TXEND      commits it

Without directives the whole script runs in one transaction. Statements end
at a line ending with a semicolon. Drivers can pass an is_complete check so
that compound statements such as trigger bodies are not cut at an inner
semicolon.
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Callable

from .constants import (
    DIRECTIVE_NOTX,
    DIRECTIVE_PREFIX,
    DIRECTIVE_TXBEGIN,
    DIRECTIVE_TXEND,
    ERROR_CONTEXT_LINES_AFTER,
    ERROR_CONTEXT_LINES_BEFORE,
)
from .diagnostics import line_column_from_offset, lines_before_and_after
from .errors import ScriptExecutionError, ScriptParseError, TransactionBlockError

logger = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(
    rf"^{DIRECTIVE_PREFIX}\s*({DIRECTIVE_NOTX}|{DIRECTIVE_TXBEGIN}|{DIRECTIVE_TXEND})\s*$"
)

# Returns the 1-based character position of an error inside the failing
# statement, or None when the database does not report one.
ErrorOffset = Callable[[Exception], int | None]
Finalize = Callable[[Any], None]
# Runs the text of one parsed statement on a cursor.
Execute = Callable[[Any, str], None]


@dataclass
class Statement:
    """One SQL statement and where it starts in the script."""

    line: int  # 1-based
    offset: int  # 0-based character offset of its first line
    text: str


@dataclass
class Segment:
    """Consecutive statements sharing transaction behavior."""

    statements: list[Statement] = field(default_factory=list)
    transactional: bool = False
    begin_line: int | None = None  # TXBEGIN line
    end_line: int | None = None  # TXEND line


@dataclass
class Script:
    """Parsed migration script."""

    source: str
    segments: list[Segment] = field(default_factory=list)
    notx: bool = False

    @property
    def implicit_transaction(self) -> bool:
        """Whether the whole script runs in a single transaction."""
        return not self.notx and not any(segment.transactional for segment in self.segments)

    def statements(self) -> Iterator[Statement]:
        """All statements in script order."""
        for segment in self.segments:
            yield from segment.statements


def parse_directive(line: str) -> str | None:
    """Return the directive named by a comment line, or None."""
    match = _DIRECTIVE_RE.match(line.strip())
    return match.group(1) if match else None


class _ScriptParser:
    """Line-oriented parser state."""

    def __init__(self, source: str, is_complete: Callable[[str], bool] | None = None):
        self.script = Script(source=source)
        self.is_complete = is_complete
        self.block: Segment | None = None
        self.top: Segment | None = None
        self.pending: list[str] = []
        self.start_line = 0
        self.start_offset = 0

    def parse(self) -> Script:
        offset = 0
        for number, raw in enumerate(self.script.source.split("\n"), start=1):
            line_offset = offset
            offset += len(raw) + 1
            directive = parse_directive(raw)

            if self.pending:
                if directive is not None:
                    raise ScriptParseError(
                        f"statement starting at line {self.start_line} is not terminated "
                        f"before -- {directive}",
                        number,
                    )
            else:
                stripped = raw.strip()
                if not stripped:
                    continue
                if directive is not None:
                    self._directive(directive, number)
                    continue
                if stripped.startswith(DIRECTIVE_PREFIX):
                    continue
                self.start_line, self.start_offset = number, line_offset

            self.pending.append(raw)
            if raw.rstrip().endswith(";") and self._pending_complete():
                self._close_statement()

        if self.pending:
            self._close_statement()
        if self.block is not None:
            raise ScriptParseError(
                f"-- {DIRECTIVE_TXBEGIN} without matching -- {DIRECTIVE_TXEND}",
                self.block.begin_line or 0,
            )
        return self.script

    def _directive(self, directive: str, number: int) -> None:
        if directive == DIRECTIVE_NOTX:
            if any(True for _ in self.script.statements()) or self.block is not None:
                raise ScriptParseError(f"-- {DIRECTIVE_NOTX} must precede the first statement", number)
            self.script.notx = True
        elif directive == DIRECTIVE_TXBEGIN:
            if self.block is not None:
                raise ScriptParseError(
                    f"nested -- {DIRECTIVE_TXBEGIN}, expected -- {DIRECTIVE_TXEND}", number
                )
            self.block = Segment(transactional=True, begin_line=number)
            self.top = None
        elif directive == DIRECTIVE_TXEND:
            if self.block is None:
                raise ScriptParseError(
                    f"-- {DIRECTIVE_TXEND} without matching -- {DIRECTIVE_TXBEGIN}", number
                )
            self.block.end_line = number
            self.script.segments.append(self.block)
            self.block = None

    def _pending_complete(self) -> bool:
        if self.is_complete is None:
            return True
        return self.is_complete("\n".join(self.pending))

    def _close_statement(self) -> None:
        statement = Statement(
            line=self.start_line,
            offset=self.start_offset,
            text="\n".join(self.pending).rstrip(),
        )
        self.pending = []

        if self.block is not None:
            self.block.statements.append(statement)
            return
        if self.top is None:
            self.top = Segment()
            self.script.segments.append(self.top)
        self.top.statements.append(statement)


def parse_script(source: str, is_complete: Callable[[str], bool] | None = None) -> Script:
    """
    Parse a migration script into transaction segments.

    Args:
        source: Script content
        is_complete: Checks that the text up to a line ending with a semicolon
            is a complete statement; without it every such line ends one

    Returns:
        Parsed script

    Raises:
        ScriptParseError: If directives are misplaced or unbalanced
    """
    return _ScriptParser(source, is_complete).parse()


class ScriptExecutor:
    """Runs parsed scripts on a DB-API connection in autocommit mode.

    Transactions are driven with explicit BEGIN, COMMIT and ROLLBACK
    statements so that statements outside TXBEGIN/TXEND blocks really run
    without a transaction.
    """

    def __init__(
        self,
        connection: Any,
        error_offset: ErrorOffset | None = None,
        execute: Execute | None = None,
    ):
        """
        Initialize executor.

        Args:
            connection: DB-API connection with autocommit behavior
            error_offset: Extracts an error position from a database exception
            execute: Runs one statement on the cursor; defaults to cursor.execute
        """
        self.connection = connection
        self.error_offset = error_offset
        self.execute = execute
        self.cursor = connection.cursor()

    def run(self, script: Script, finalize: Finalize | None = None) -> None:
        """
        Execute a parsed script.

        Args:
            script: Parsed script
            finalize: Called with the cursor after the statements, inside the
                script's transaction (or in its own one when the script uses
                explicit transactions); used for bookkeeping

        Raises:
            ScriptExecutionError: If a statement fails
            TransactionBlockError: If a TXBEGIN/TXEND block fails
        """
        if script.implicit_transaction:
            self._run_implicit(script, finalize)
        else:
            self._run_explicit(script, finalize)

    def _run_implicit(self, script: Script, finalize: Finalize | None) -> None:
        self._begin()
        try:
            for statement in script.statements():
                try:
                    self._execute(statement.text)
                except Exception as e:
                    raise self._statement_error(script, statement, e) from e
            if finalize is not None:
                finalize(self.cursor)
            self.cursor.execute("COMMIT")
        except BaseException:
            self._rollback()
            raise

    def _run_explicit(self, script: Script, finalize: Finalize | None) -> None:
        for segment in script.segments:
            if segment.transactional:
                self._run_block(script, segment)
                continue
            for statement in segment.statements:
                try:
                    self._execute(statement.text)
                except Exception as e:
                    raise self._statement_error(script, statement, e) from e

        if finalize is not None:
            self._begin()
            try:
                finalize(self.cursor)
                self.cursor.execute("COMMIT")
            except BaseException:
                self._rollback()
                raise

    def _run_block(self, script: Script, segment: Segment) -> None:
        if not segment.statements:
            return

        begin_line = segment.begin_line or 0
        end_line = segment.end_line or 0
        self._begin()
        try:
            for statement in segment.statements:
                try:
                    self._execute(statement.text)
                except Exception as e:
                    cause = self._statement_error(script, statement, e)
                    raise TransactionBlockError(
                        f"Transaction at lines {begin_line}-{end_line} rolled back: {cause}",
                        begin_line,
                        end_line,
                        cause.line,
                        cause.statement,
                        column=cause.column,
                        context=cause.context,
                    ) from e
        except BaseException:
            self._rollback()
            raise

        try:
            self.cursor.execute("COMMIT")
        except Exception as e:
            self._rollback()
            raise TransactionBlockError(
                f"Failed to commit lines {begin_line}-{end_line}: {e}",
                begin_line,
                end_line,
                end_line,
                "COMMIT",
            ) from e

    def _execute(self, text: str) -> None:
        if self.execute is None:
            self.cursor.execute(text)
        else:
            self.execute(self.cursor, text)

    def _begin(self) -> None:
        self.cursor.execute("BEGIN")

    def _rollback(self) -> None:
        try:
            self.cursor.execute("ROLLBACK")
        except Exception as e:
            logger.warning(f"Rollback failed: {e}")

    def _statement_error(
        self, script: Script, statement: Statement, error: Exception
    ) -> ScriptExecutionError:
        position = self.error_offset(error) if self.error_offset is not None else None
        if position is None or position < 1:
            return ScriptExecutionError(
                f"Failed to exec statement at line {statement.line}:\n{statement.text}\nError: {error}",
                statement.line,
                statement.text,
            )

        line, column = line_column_from_offset(script.source, statement.offset + position - 1)
        context = lines_before_and_after(
            script.source, line, ERROR_CONTEXT_LINES_BEFORE, ERROR_CONTEXT_LINES_AFTER
        )
        return ScriptExecutionError(
            f"{error} in line {line}, column {column}:\n\n{context}",
            line,
            statement.text,
            column=column,
            context=context,
        )


def execute_script(
    connection: Any,
    script: Script,
    finalize: Finalize | None = None,
    error_offset: ErrorOffset | None = None,
    execute: Execute | None = None,
) -> None:
    """Execute a parsed script on a connection. See ScriptExecutor.run()."""
    ScriptExecutor(connection, error_offset, execute).run(script, finalize)
