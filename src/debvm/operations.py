"""
Operation executor

Runs an ordered list of Operation descriptors through the qm command line
tool. Every operation is logged before it runs; a failing fatal operation
aborts the sequence with ProvisionError, a failing non-fatal one only logs a
warning. In preview mode nothing is executed and a short simulated delay
stands in for each command.
"""

import shlex
import subprocess
import time
from typing import List, Sequence

from debvm.models import Operation
from debvm.proxmox_utils import DebvmError, logger

QM = 'qm'
PREVIEW_DELAY = 0.3


class ProvisionError(DebvmError):
    """Raised when a fatal operation fails"""

    def __init__(self, operation: Operation, returncode: int, output: str = ''):
        self.operation = operation
        self.returncode = returncode
        self.output = output
        message = f"{operation.name} failed (exit status {returncode}): {format_command(operation)}"
        if output:
            message += f"\n{output}"
        super().__init__(message)


def qm(name: str, *args, fatal: bool = True, secrets: Sequence[str] = ()) -> Operation:
    """Build an Operation for a qm subcommand"""
    return Operation(
        name=name,
        args=(QM,) + tuple(str(arg) for arg in args),
        fatal=fatal,
        secrets=tuple(secrets),
    )


def format_command(operation: Operation) -> str:
    """Shell-quoted command line with secret arguments masked"""
    return ' '.join(
        '********' if arg in operation.secrets else shlex.quote(arg)
        for arg in operation.args
    )


def run_operation(operation: Operation) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            list(operation.args),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
        )
    except FileNotFoundError:
        # qm missing behaves like any other failed command
        return subprocess.CompletedProcess(
            list(operation.args), 127, stdout=f"{operation.args[0]}: command not found"
        )


def run_operations(operations: List[Operation], dry_run: bool = False) -> List[str]:
    """
    Execute operations in order

    Args:
        operations: Ordered Operation descriptors
        dry_run: Report commands without executing them

    Returns:
        List of formatted commands that were run (or would have been run)

    Raises:
        ProvisionError if a fatal operation exits non-zero
    """
    commands = []
    for operation in operations:
        command = format_command(operation)
        commands.append(command)

        if dry_run:
            logger.info(f"→ [dry-run] {operation.name}: would run: {command}")
            time.sleep(PREVIEW_DELAY)
            continue

        logger.info(f"→ {operation.name}")
        logger.debug(f"  $ {command}")
        result = run_operation(operation)
        output = (result.stdout or '').strip()
        if output:
            logger.debug(output)

        if result.returncode != 0:
            if operation.fatal:
                raise ProvisionError(operation, result.returncode, output)
            logger.warning(
                f"→ Warning: {operation.name} failed (exit status {result.returncode}), continuing"
            )

    return commands
