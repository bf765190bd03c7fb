"""
Sandboxed script expression backend.

Evaluates Python-syntax expressions with simpleeval: only the data context
and a fixed set of pure functions are visible, no builtins, imports or I/O.
Each evaluation runs in a separate sandbox process. A process that overruns
the wall-clock timeout is killed and replaced, so a runaway script never
holds on to capacity needed by later evaluations.
"""

import multiprocessing
import threading
from typing import Any, Dict, List, Optional, Tuple

from simpleeval import DEFAULT_FUNCTIONS, EvalWithCompoundTypes

from modules.generation.core.exceptions import ExpressionException, ExpressionTimeoutException
from modules.generation.core.interfaces import ExpressionLanguage, IExpressionBackend
from modules.generation.core.registry import register_expression_backend
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_TIMEOUT_MS = 1000
SANDBOX_START_TIMEOUT_S = 30
MAX_IDLE_SANDBOXES = 4

# rand/randint are dropped: evaluation must be deterministic
SAFE_FUNCTIONS = {
    **{name: fn for name, fn in DEFAULT_FUNCTIONS.items() if name not in ("rand", "randint")},
    "len": len,
    "min": min,
    "max": max,
    "sum": sum,
    "abs": abs,
    "round": round,
    "sorted": sorted,
    "upper": lambda s: str(s).upper(),
    "lower": lambda s: str(s).lower(),
}

_mp_context = multiprocessing.get_context("spawn")


def evaluate_script(raw: str, context: Dict[str, Any]) -> Any:
    evaluator = EvalWithCompoundTypes(names=dict(context), functions=SAFE_FUNCTIONS)
    return evaluator.eval(raw)


def _serve(conn) -> None:
    """Sandbox process loop: receive (raw, context), reply (ok, payload)."""
    conn.send((True, "ready"))
    while True:
        try:
            raw, context = conn.recv()
        except EOFError:
            return
        try:
            reply: Tuple[bool, Any] = (True, evaluate_script(raw, context))
        except Exception as e:
            reply = (False, f"{type(e).__name__}: {e}")
        try:
            conn.send(reply)
        except Exception as e:
            # Result could not be pickled (e.g. a bare function reference)
            conn.send((False, f"Unsupported result: {e}"))


class ScriptSandbox:
    """One evaluation process plus the pipe used to talk to it."""

    def __init__(self):
        parent_conn, child_conn = _mp_context.Pipe()
        self.process = _mp_context.Process(target=_serve, args=(child_conn,), name="expr-sandbox", daemon=True)
        self.process.start()
        child_conn.close()
        self.conn = parent_conn

        if not self.conn.poll(SANDBOX_START_TIMEOUT_S):
            self.kill()
            raise ExpressionException("Script sandbox failed to start")
        self.conn.recv()

    @property
    def alive(self) -> bool:
        return self.process.is_alive()

    def evaluate(self, raw: str, context: Dict[str, Any], timeout_s: float) -> Tuple[bool, Any]:
        """
        Returns:
            (ok, payload) from the sandbox

        Raises:
            TimeoutError: If no reply arrives in time; the process is killed
        """
        self.conn.send((raw, context))
        if not self.conn.poll(timeout_s):
            self.kill()
            raise TimeoutError(raw)
        return self.conn.recv()

    def kill(self) -> None:
        if self.process.is_alive():
            self.process.kill()
        self.process.join(timeout=5)
        self.conn.close()


class SandboxPool:
    """Idle sandbox processes reused across evaluations and threads."""

    def __init__(self, max_idle: int = MAX_IDLE_SANDBOXES):
        self.max_idle = max_idle
        self._idle: List[ScriptSandbox] = []
        self._lock = threading.Lock()

    def acquire(self) -> ScriptSandbox:
        with self._lock:
            while self._idle:
                sandbox = self._idle.pop()
                if sandbox.alive:
                    return sandbox
                sandbox.kill()
        return ScriptSandbox()

    def release(self, sandbox: ScriptSandbox) -> None:
        with self._lock:
            if sandbox.alive and len(self._idle) < self.max_idle:
                self._idle.append(sandbox)
                return
        sandbox.kill()

    def shutdown(self) -> None:
        with self._lock:
            idle, self._idle = self._idle, []
        for sandbox in idle:
            sandbox.kill()


_pool = SandboxPool()


def shutdown_sandboxes() -> None:
    """Stop idle sandbox processes (worker shutdown)."""
    _pool.shutdown()


@register_expression_backend(ExpressionLanguage.PYTHON)
class SandboxedScriptBackend(IExpressionBackend):
    """Python-expression sandbox with a per-evaluation timeout."""

    def __init__(self, config=None, pool: Optional[SandboxPool] = None):
        super().__init__(config)
        self.timeout_ms = int(self.config.get("timeout_ms", DEFAULT_TIMEOUT_MS))
        self.pool = pool or _pool

    def evaluate(self, raw: str, context: Dict[str, Any]) -> Any:
        sandbox = self.pool.acquire()
        try:
            ok, payload = sandbox.evaluate(raw, context, self.timeout_ms / 1000)
        except TimeoutError as e:
            logger.warning(f"Script expression timed out after {self.timeout_ms}ms: {raw[:100]}")
            raise ExpressionTimeoutException(
                f"Script expression exceeded {self.timeout_ms}ms: '{raw}'"
            ) from e
        except (OSError, EOFError) as e:
            raise ExpressionException(f"Script sandbox terminated while evaluating '{raw}'") from e
        finally:
            self.pool.release(sandbox)

        if not ok:
            raise ExpressionException(f"Script evaluation failed for '{raw}': {payload}")
        return payload
