"""Availability checks for external binaries.

Used by the health endpoints to report whether the downloader can be
launched at all.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple


@dataclass
class CheckResult:
    """Outcome of probing one external binary.

    ``version`` is the first line the binary printed; ``error`` is set
    whenever ``available`` is False.
    """

    name: str
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


def _first_line(stdout: bytes) -> Tuple[bool, Optional[str], Optional[str]]:
    lines = stdout.decode(errors="replace").strip().splitlines()
    return True, (lines[0].strip() if lines else "unknown"), None


async def _run_binary_check(
    name: str,
    command: List[str],
    timeout: float,
    parse_output: Callable[[bytes], Tuple[bool, Optional[str], Optional[str]]],
) -> CheckResult:
    """Run ``command`` with stdin closed and classify the outcome.

    ``parse_output`` receives stdout of a zero exit and returns
    ``(available, version, error)``. A hung binary is killed after
    ``timeout`` seconds.
    """
    proc = None
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)

        if proc.returncode == 0:
            success, version, error = parse_output(stdout)
            return CheckResult(name=name, available=success, version=version, error=error)

        return CheckResult(
            name=name,
            available=False,
            error=f"{command[0]} returned exit code {proc.returncode}",
        )
    except asyncio.TimeoutError:
        if proc:
            proc.kill()
            await proc.wait()
        return CheckResult(name=name, available=False, error=f"{command[0]} check timed out")
    except FileNotFoundError:
        return CheckResult(name=name, available=False, error=f"{command[0]} not found")
    except OSError as e:
        return CheckResult(name=name, available=False, error=e.strerror or str(e))


async def check_downloader(command: List[str], timeout: float = 5.0) -> CheckResult:
    """Check that the download tool starts and reports a version.

    Args:
        command: Base command of the downloader (e.g. ``["spotdl"]``).
        timeout: Seconds before the probe is abandoned.
    """
    if not command:
        return CheckResult(name="downloader", available=False, error="No command configured")

    return await _run_binary_check(
        name="downloader",
        command=[*command, "--version"],
        timeout=timeout,
        parse_output=_first_line,
    )
