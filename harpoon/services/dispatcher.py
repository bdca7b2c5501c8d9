import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from harpoon.core.config import Rule

logger = logging.getLogger(__name__)

# per-line limit for the output readers
STREAM_LIMIT = 1024 * 1024


def split_arguments(args: str) -> List[str]:
    """Split a rule's argument string on whitespace; "" gives no arguments."""
    return args.split()


@dataclass
class DispatchResult:
    argv: List[str]
    started: bool
    pid: Optional[int] = None
    error: Optional[str] = None
    # finishes once the process has exited and its output is drained
    completion: Optional["asyncio.Task[Optional[int]]"] = field(default=None, repr=False)


class CommandDispatcher:
    """
    Launches the command of a matched rule and returns without waiting for it.

    In verbose mode every line the command writes is logged, with one reader
    task per stream so a child blocked on stderr never starves stdout.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, rule: Rule) -> DispatchResult:
        argv = [rule.cmd, *split_arguments(rule.args)]
        output = asyncio.subprocess.PIPE if self.verbose else asyncio.subprocess.DEVNULL

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            logger.error(f"[dispatcher] ❌ Error starting '{rule.cmd}': {e}")
            return DispatchResult(argv=argv, started=False, error=str(e))

        logger.info(f"[dispatcher] Started {argv} (pid={process.pid})")

        readers = []
        if self.verbose:
            readers = [
                self._track(self._pump(process.stdout, "stdout", process.pid)),
                self._track(self._pump(process.stderr, "stderr", process.pid)),
            ]
        completion = self._track(self._supervise(process, argv, readers))

        return DispatchResult(argv=argv, started=True, pid=process.pid, completion=completion)

    def _track(self, coro) -> asyncio.Task:
        # keep a strong reference until the task is done
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _pump(self, stream: asyncio.StreamReader, tag: str, pid: int) -> None:
        log = logger.info if tag == "stdout" else logger.warning
        skipping = False
        while True:
            try:
                line = await stream.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                # EOF, possibly after a last line without newline
                line = e.partial
            except asyncio.LimitOverrunError as e:
                # oversized line: drop input up to its newline, the rest of it comes next
                await stream.readexactly(e.consumed)
                skipping = True
                continue
            if not line and not skipping:
                break
            if skipping:
                skipping = False
                log(f"[{tag}] [pid={pid}] > <line over {STREAM_LIMIT} bytes dropped>")
                continue
            log(f"[{tag}] [pid={pid}] > {line.decode('utf-8', errors='replace').rstrip()}")

    async def _supervise(self, process: asyncio.subprocess.Process, argv: List[str], readers: List[asyncio.Task]) -> Optional[int]:
        if readers:
            await asyncio.gather(*readers)
        returncode = await process.wait()
        if returncode == 0:
            logger.info(f"[dispatcher] ✅ {argv[0]} (pid={process.pid}) exited with 0")
        else:
            logger.warning(f"[dispatcher] {argv[0]} (pid={process.pid}) exited with {returncode}")
        return returncode
