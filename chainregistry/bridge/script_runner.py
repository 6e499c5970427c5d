"""Subprocess Script Runner.

Runs an external command (for example a wrapper around ``forge script``)
for each component and expects a single JSON ``ExecutionResult`` on stdout.
Parsing broadcast artifacts into that shape is the wrapper's job.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess

from pydantic import ValidationError as PydanticValidationError

from chainregistry.core.errors import ScriptExecutionError
from chainregistry.models.execution import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)


def request_environment(request: ExecutionRequest) -> dict[str, str]:
    """Run configuration exposed to the script, component env last."""
    env = {
        "NETWORK": request.network,
        "NAMESPACE": request.namespace,
        "DRY_RUN": "true" if request.dry_run else "false",
        "DEBUG": "true" if request.debug else "false",
    }
    env.update(request.env)
    return env


class SubprocessScriptRunner:
    """Script Runner that shells out to ``command <script>``.

    Parameters
    ----------
    command:
        Command line prefix, split with ``shlex``.
    timeout:
        Seconds before the script is killed; ``None`` waits forever.
    cwd:
        Working directory for the script (usually the project root).
    """

    def __init__(
        self,
        command: str,
        timeout: float | None = None,
        cwd: str | None = None,
    ) -> None:
        self._argv = shlex.split(command)
        if not self._argv:
            raise ValueError("script command must not be empty")
        self._timeout = timeout
        self._cwd = cwd

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def run(self, request: ExecutionRequest) -> ExecutionResult:
        argv = [*self._argv, request.script]
        env = os.environ.copy()
        env.update(request_environment(request))
        logger.info("Running %s", " ".join(shlex.quote(a) for a in argv))
        try:
            completed = subprocess.run(
                argv,
                check=True,
                capture_output=True,
                text=True,
                env=env,
                cwd=self._cwd,
                timeout=self._timeout,
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise ScriptExecutionError(
                f"script {request.script} exited with status {e.returncode}: {stderr}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ScriptExecutionError(
                f"script {request.script} timed out after {e.timeout}s"
            ) from e
        except OSError as e:
            raise ScriptExecutionError(f"cannot run {argv[0]}: {e}") from e

        if completed.stderr and request.debug:
            logger.debug("%s stderr:\n%s", request.script, completed.stderr)
        return parse_result(completed.stdout, request.script)


def parse_result(stdout: str, script: str = "") -> ExecutionResult:
    """Parse the JSON result a runner command printed.

    Only the last non-empty line is parsed, so scripts may log before it.
    """
    lines = [line for line in stdout.splitlines() if line.strip()]
    if not lines:
        raise ScriptExecutionError(f"script {script} produced no result")
    try:
        result = ExecutionResult.model_validate(json.loads(lines[-1]))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ScriptExecutionError(f"script {script} produced an invalid result: {e}") from e
    if not result.script_path:
        result = result.model_copy(update={"script_path": script})
    return result
