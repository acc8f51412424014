"""
Update Invoker
==============
Runs ``podman auto-update`` and turns its output into ``UpdateRecord`` rows.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from autoupdate_hook import metrics
from autoupdate_hook.errors import ExecutionFailed, ParseFailed
from .models import UpdateRecord, UpdateRecordList

logger = structlog.get_logger(__name__)

DEFAULT_UPDATE_COMMAND = ("podman", "auto-update", "--format", "json")
DRY_RUN_FLAG = "--dry-run"
JSON_ARRAY_MARKER = b"["


@dataclass
class CommandOutput:
    """Captured result of one command run."""
    returncode: int
    stdout: bytes
    stderr: bytes


Runner = Callable[[Sequence[str], Optional[float]], Awaitable[CommandOutput]]


async def run_command(command: Sequence[str], timeout: Optional[float] = None) -> CommandOutput:
    """
    Run ``command`` to completion, capturing stdout and stderr.

    Args:
        command: Program and arguments
        timeout: Seconds before the child is killed, None to wait forever

    Returns:
        CommandOutput of the finished process

    Raises:
        ExecutionFailed: If the process cannot start or exceeds ``timeout``
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("update_command_start_failed", command=command[0], error=str(e))
        raise ExecutionFailed(f"failed to run command: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.error("update_command_timed_out", timeout=timeout)
        raise ExecutionFailed(
            f"command timed out after {timeout}s", returncode=process.returncode
        )

    return CommandOutput(returncode=process.returncode, stdout=stdout, stderr=stderr)


def parse_update_output(stdout: bytes) -> List[UpdateRecord]:
    """
    Parse the command's standard output.

    Output that does not start with ``[`` means nothing to report; the
    command prints plain diagnostics in that case.

    Raises:
        ParseFailed: If the JSON array does not match the record schema
    """
    if not stdout.startswith(JSON_ARRAY_MARKER):
        return []
    try:
        return UpdateRecordList.validate_json(stdout)
    except ValidationError as e:
        raise ParseFailed(f"unexpected update command output: {e}") from e


class UpdateInvoker:
    """
    Runs the update command once per call and waits for it to finish.

    No backgrounding or progress streaming: the calling request waits for
    the full result.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_UPDATE_COMMAND,
        timeout: Optional[float] = None,
        dry_run: bool = False,
        runner: Optional[Runner] = None,
    ):
        """
        Args:
            command: Program and arguments of the update command
            timeout: Seconds before the command is killed, None to wait forever
            dry_run: Append ``--dry-run`` so nothing is actually restarted
            runner: Process runner, injectable for tests
        """
        command = list(command)
        if not command:
            raise ValueError("update command must not be empty")
        if dry_run and DRY_RUN_FLAG not in command:
            command.append(DRY_RUN_FLAG)
        self.command = command
        self.timeout = timeout
        self._runner = runner or run_command

    async def invoke(self) -> List[UpdateRecord]:
        """
        Run the update and return the reported records.

        Returns:
            Parsed records, empty when the command reported nothing

        Raises:
            ExecutionFailed: If the command cannot run or exits non-zero
            ParseFailed: If the output violates the record schema
        """
        logger.info("running_update", command=" ".join(self.command))
        start = time.monotonic()

        try:
            output = await self._runner(self.command, self.timeout)
        except ExecutionFailed:
            metrics.record_update("failed", time.monotonic() - start)
            raise

        duration = time.monotonic() - start
        stderr = output.stderr.decode("utf-8", errors="replace")

        if output.returncode != 0:
            logger.error(
                "update_command_failed",
                returncode=output.returncode,
                stderr=stderr,
            )
            metrics.record_update("failed", duration)
            raise ExecutionFailed(
                f"command failed with status {output.returncode}",
                returncode=output.returncode,
                stderr=stderr,
            )

        logger.debug("update_command_stdout", stdout=output.stdout.decode("utf-8", errors="replace"))
        if stderr:
            logger.error("update_command_stderr", stderr=stderr)

        try:
            records = parse_update_output(output.stdout)
        except ParseFailed as e:
            e.returncode = output.returncode
            e.stderr = stderr
            logger.error("update_output_parse_failed", error=e.message)
            metrics.record_update("parse_failed", duration)
            raise

        metrics.record_update("success", duration)
        for record in records:
            metrics.record_containers(record.updated.value)
        logger.info("update_finished", containers=len(records), duration_ms=int(duration * 1000))
        return records
