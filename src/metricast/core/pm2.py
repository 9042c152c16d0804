"""pm2 process manager integration (``pm2 jlist``)."""

from __future__ import annotations

import json
import logging
import subprocess

from metricast.errors import ProcessManagerUnavailable
from metricast.models.runtime import ManagedProcess

logger = logging.getLogger("metricast.pm2")


def _as_int(value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0


def parse_process(raw: dict) -> ManagedProcess:
    """Build a ManagedProcess from one ``pm2 jlist`` entry, defaulting missing fields."""
    monit = raw.get("monit")
    env = raw.get("pm2_env")
    if not isinstance(monit, dict):
        monit = {}
    if not isinstance(env, dict):
        env = {}
    return ManagedProcess(
        name=str(raw.get("name") or ""),
        pid=_as_int(raw.get("pid")),
        pm_id=_as_int(raw.get("pm_id")),
        memory=_as_int(monit.get("memory")),
        cpu=_as_int(monit.get("cpu")),
        status=str(env.get("status") or ""),
    )


class Pm2Client:
    """Queries pm2 for its managed processes."""

    def __init__(self, command: str = "pm2", timeout: float = 5.0) -> None:
        self._command = command
        self._timeout = timeout

    def list_processes(self) -> tuple[ManagedProcess, ...]:
        """Return managed processes. Raises ProcessManagerUnavailable on any failure."""
        try:
            result = subprocess.run(
                [self._command, "jlist"],
                capture_output=True,
                timeout=self._timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise ProcessManagerUnavailable(f"{self._command} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ProcessManagerUnavailable(
                f"{self._command} jlist timed out after {self._timeout}s"
            ) from exc
        except (subprocess.CalledProcessError, OSError) as exc:
            raise ProcessManagerUnavailable(f"{self._command} jlist failed: {exc}") from exc

        try:
            data = json.loads(result.stdout)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProcessManagerUnavailable(f"invalid jlist output: {exc}") from exc

        if not isinstance(data, list):
            raise ProcessManagerUnavailable("jlist output is not a list")

        try:
            processes = tuple(parse_process(item) for item in data if isinstance(item, dict))
        except (TypeError, ValueError, AttributeError) as exc:
            raise ProcessManagerUnavailable(f"malformed jlist record: {exc}") from exc
        logger.debug("pm2 reported %d processes", len(processes))
        return processes
