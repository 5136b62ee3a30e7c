# cmdwrap_runtime.py

import io
import os
import sys
import time
import asyncio
import datetime
import importlib
import inspect
import traceback
from contextlib import ExitStack, contextmanager, redirect_stderr, redirect_stdout
from types import ModuleType
from typing import IO, Callable, Optional, Sequence, Tuple, Union

from loguru import logger

from cmdwrap.cmdwrap_binder import bind, is_help_request, split_directives
from cmdwrap.cmdwrap_config import WrapConfig, configure_logging
from cmdwrap.cmdwrap_datatypes import (
    BindError, BoundArguments, CandidateSet, FunctionNotFound, InvocationFault, InvocationOutcome
)
from cmdwrap.cmdwrap_docs import DocumentationProvider
from cmdwrap.cmdwrap_printer import HelpPrinter
from cmdwrap.cmdwrap_registry import FunctionRegistry, resolve

# ===================================================================
# 1. Output capture
# ===================================================================


class OutputRedirect(io.TextIOBase):
    """Mirrors a text stream into a log file, one timestamped line per record.

    Everything written still reaches the previous sink unchanged.
    """

    def __init__(self, name: str, old: IO[str], log_writer: Optional[IO[str]] = None,
                 clock: Callable[[], datetime.datetime] = datetime.datetime.now):
        super().__init__()
        self.name = name
        self.old = old
        self.log_writer = log_writer
        self._clock = clock
        self._at_line_start = True

    @property
    def encoding(self):
        return getattr(self.old, "encoding", "utf-8")

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return self.old.isatty()

    def write(self, s: str) -> int:
        if self.log_writer is not None and s:
            for piece in s.splitlines(keepends=True):
                if self._at_line_start:
                    self.log_writer.write(f"{self._clock().isoformat(sep=' ')} {self.name} ")
                self.log_writer.write(piece)
                self._at_line_start = piece.endswith(("\n", "\r"))
            self.log_writer.flush()
        self.old.write(s)
        return len(s)

    def flush(self) -> None:
        self.old.flush()

    def finish(self) -> None:
        """Terminate a dangling partial line in the log."""
        if self.log_writer is not None and not self._at_line_start:
            self.log_writer.write("\n")
            self._at_line_start = True
        self.flush()


@contextmanager
def capture_output(log_writer: Optional[IO[str]] = None):
    """Redirect stdout/stderr through OutputRedirect for the duration of the block.

    The previous sinks are restored on every exit path, including when the
    block raises.
    """
    with ExitStack() as stack:
        out = OutputRedirect("STDOUT", sys.stdout, log_writer)
        err = OutputRedirect("STDERR", sys.stderr, log_writer)
        stack.callback(out.finish)
        stack.callback(err.finish)
        stack.enter_context(redirect_stdout(out))
        stack.enter_context(redirect_stderr(err))
        yield out, err


def open_log_file(folder: str, clock: Callable[[], datetime.datetime] = datetime.datetime.now,
                  pause: float = 0.01) -> Tuple[str, IO[str]]:
    """Create a new log file named from the current timestamp.

    Name collisions are retried after a short pause until a fresh name is free.
    """
    while True:
        name = clock().isoformat().replace(":", "_") + ".log"
        path = os.path.join(folder, name)
        try:
            return path, open(path, "x", encoding="utf-8")
        except FileExistsError:
            logger.debug("Log file {} already exists; retrying", path)
            time.sleep(pause)


# ===================================================================
# 2. Invocation
# ===================================================================


class InvocationRunner:
    """Calls a bound function and reports what happened.

    Output is always routed through OutputRedirect; when a log folder is given
    it is also written to a fresh per-invocation log file. Faults raised by the
    callee are rendered as text and never propagate.
    """

    def __init__(self, clock: Callable[[], datetime.datetime] = datetime.datetime.now):
        self.clock = clock

    def _ensure_folder(self, folder: str) -> None:
        if not os.path.isdir(folder):
            print(f"Creating log folder {folder}")
            os.makedirs(folder, exist_ok=True)

    def _call(self, bound: BoundArguments):
        args, kwargs = bound.call_args()
        result = bound.descriptor.func(*args, **kwargs)
        if inspect.iscoroutine(result):
            result = asyncio.run(result)
        return result

    def _fault(self, outcome: InvocationOutcome, error: Exception, begin: float) -> None:
        # Called from inside an except block so the traceback is current
        outcome.duration = datetime.timedelta(seconds=time.perf_counter() - begin)
        outcome.status = 'fault'
        outcome.fault = InvocationFault(outcome.descriptor.name, error)
        outcome.fault_text = traceback.format_exc()
        print("EXCEPTION: " + outcome.fault_text.rstrip("\n"))

    def invoke(self, bound: BoundArguments, log_folder: Optional[str] = None) -> InvocationOutcome:
        descriptor = bound.descriptor
        outcome = InvocationOutcome(status='success', descriptor=descriptor, started=self.clock())

        with ExitStack() as stack:
            log_writer = None
            if log_folder:
                begin = time.perf_counter()
                try:
                    self._ensure_folder(log_folder)
                    outcome.log_path, log_writer = open_log_file(log_folder, self.clock)
                except OSError as e:
                    # Without a log the function is not called
                    self._fault(outcome, e, begin)
                    print(f"DURATION: {outcome.duration}")
                    return outcome
                stack.enter_context(log_writer)
                logger.debug("Logging output of {} to {}", descriptor.name, outcome.log_path)

            with capture_output(log_writer):
                begin = time.perf_counter()
                try:
                    result = self._call(bound)
                except Exception as e:
                    self._fault(outcome, e, begin)
                else:
                    outcome.duration = datetime.timedelta(seconds=time.perf_counter() - begin)
                    outcome.value = result
                    if result is not None:
                        print(f"RESULT: {result} ({type(result).__qualname__})")
                print(f"DURATION: {outcome.duration}")

        # A fault still counts as a dispatched call
        outcome.exit_code = 0
        return outcome


# ===================================================================
# 3. Overload dispatch
# ===================================================================


class Dispatcher:
    """Tries each candidate in order; the first one that binds is invoked.

    Probing is silent. When nothing binds, the candidate with the most
    parameters is bound again and its error is shown with that candidate's help.
    """

    def __init__(self, printer: HelpPrinter, runner: Optional[InvocationRunner] = None,
                 legacy_syntax: bool = True, log_folder: Optional[str] = None):
        self.printer = printer
        self.runner = runner or InvocationRunner()
        self.legacy_syntax = legacy_syntax
        self.log_folder = log_folder

    def _failure(self, candidates: CandidateSet, error: BindError, command: Optional[str]) -> InvocationOutcome:
        text = self.printer.function_help(candidates.biggest, str(error), command)
        self.printer.emit(text)
        return InvocationOutcome(status='error', descriptor=candidates.biggest, error=error,
                                 help_text=text, exit_code=-1)

    def dispatch(self, candidates: CandidateSet, tokens: Sequence[str],
                 command: Optional[str] = None) -> InvocationOutcome:
        tokens = list(tokens)
        biggest = candidates.biggest

        if is_help_request(tokens):
            text = self.printer.function_help(biggest, None, command)
            self.printer.emit(text)
            return InvocationOutcome(status='help', descriptor=biggest, help_text=text, exit_code=0)

        try:
            tokens, directives = split_directives(tokens, self.legacy_syntax)
        except BindError as e:
            return self._failure(candidates, e, command)
        log_folder = directives.log_folder or self.log_folder

        for candidate in candidates:
            try:
                bound = bind(candidate, tokens, self.legacy_syntax)
            except BindError as e:
                logger.debug("Candidate {!r} rejected: {}", candidate, e)
                continue
            return self.runner.invoke(bound, log_folder)

        try:
            bound = bind(biggest, tokens, self.legacy_syntax)
        except BindError as e:
            return self._failure(candidates, e, command)
        return self.runner.invoke(bound, log_folder)


# ===================================================================
# 4. Entry flow
# ===================================================================


class CommandWrapper:
    """Selects a function from the command line and dispatches to it."""

    def __init__(self, registry: FunctionRegistry, config: Optional[WrapConfig] = None,
                 docs: Optional[DocumentationProvider] = None, out=None):
        self.registry = registry
        self.config = config or WrapConfig()
        self.docs = docs if docs is not None else DocumentationProvider()
        self.printer = HelpPrinter(self.config, self.docs, out)
        self.dispatcher = Dispatcher(self.printer, InvocationRunner(),
                                     legacy_syntax=self.config.legacy_syntax,
                                     log_folder=self.config.log_folder)

    def _listing(self, calls, error: Optional[Exception] = None) -> InvocationOutcome:
        text = self.printer.listing_help(calls, str(error) if error else None)
        self.printer.emit(text)
        if error is not None:
            return InvocationOutcome(status='error', error=error, help_text=text, exit_code=-1)
        return InvocationOutcome(status='help', help_text=text, exit_code=0)

    def execute(self, argv: Sequence[str]) -> InvocationOutcome:
        argv = list(argv)
        calls = self.registry.exposed_calls()

        # Only one choice: every token belongs to it, naming it is optional
        if len(calls) == 1:
            name, candidates = next(iter(calls.items()))
            if argv and argv[0] == name:
                return self.dispatcher.dispatch(candidates, argv[1:], command=name)
            return self.dispatcher.dispatch(candidates, argv)

        if not argv or is_help_request(argv):
            return self._listing(calls)

        name, rest = argv[0], argv[1:]
        candidates = calls.get(name)
        if candidates is None:
            try:
                candidates = resolve(self.registry, name)
            except FunctionNotFound as e:
                return self._listing(calls, e)
        return self.dispatcher.dispatch(candidates, rest, command=name)

    def run(self, argv: Sequence[str]) -> int:
        return self.execute(argv).exit_code


def _load_module(module: Union[ModuleType, str, None]) -> ModuleType:
    if module is None:
        return sys.modules["__main__"]
    if isinstance(module, str):
        return importlib.import_module(module)
    return module


def main(argv: Optional[Sequence[str]] = None, module: Union[ModuleType, str, None] = None,
         config: Optional[WrapConfig] = None, configure_log: bool = True) -> int:
    """Expose the functions of `module` (default: `__main__`) on the command line.

    Typical use at the bottom of a script:

        if __name__ == "__main__":
            sys.exit(cmdwrap.main())
    """
    mod = _load_module(module)
    config = config or WrapConfig.from_module(mod)
    if configure_log:
        configure_logging(config.log_level)
    registry = FunctionRegistry.from_module(mod)
    argv = sys.argv[1:] if argv is None else argv
    return CommandWrapper(registry, config).run(argv)


def console_wrapper(module: Union[ModuleType, str, None], name: str, argv: Sequence[str],
                    config: Optional[WrapConfig] = None) -> int:
    """Wrap one named function (`func` or `Class.func`) of a module.

    Raises FunctionNotFound when the module has no such directly callable
    function. Returns 0 on success or help, -1 on a binding failure.
    """
    mod = _load_module(module)
    config = config or WrapConfig.from_module(mod)
    registry = FunctionRegistry.from_module(mod)
    candidates = resolve(registry, name, exposed_only=False)
    printer = HelpPrinter(config, DocumentationProvider())
    dispatcher = Dispatcher(printer, legacy_syntax=config.legacy_syntax, log_folder=config.log_folder)
    return dispatcher.dispatch(candidates, argv).exit_code
