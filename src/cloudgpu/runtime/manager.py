"""Runtime reuse-or-create decision and readiness polling."""

from __future__ import annotations

import logging as py_logging
import sys
import time
from collections.abc import Callable

from cloudgpu.errors import RuntimeTimeout, RuntimeUnavailable
from cloudgpu.retry import PollPolicy, backoff_intervals
from cloudgpu.runtime.api import RuntimeApi
from cloudgpu.runtime.models import AssignedRuntime, AssignOptions, RuntimeState, RuntimeStatus, Variant

logger = py_logging.getLogger(__name__)

ProgressSink = Callable[[str], None]

_VARIANT_LABELS = {
    Variant.GPU: "GPU",
    Variant.TPU: "TPU",
    Variant.DEFAULT: "CPU",
}


def stderr_progress(message: str) -> None:
    print(message, file=sys.stderr, flush=True)


def _progress_message(state: RuntimeState, variant: Variant) -> str:
    kind = _VARIANT_LABELS[variant]
    if state == RuntimeState.QUEUED:
        return f"Waiting in queue for a {kind} runtime..."
    if state == RuntimeState.PROVISIONING:
        return f"Provisioning {kind} runtime..."
    if state == RuntimeState.READY:
        return f"{kind} runtime is starting its terminal proxy..."
    return f"Requesting {kind} runtime..."


class RuntimeManager:
    def __init__(
        self,
        api: RuntimeApi,
        *,
        policy: PollPolicy | None = None,
        progress: ProgressSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self.policy = policy or PollPolicy()
        self._progress = progress or stderr_progress
        self._sleep = sleep
        self._clock = clock

    def assign(self, options: AssignOptions | None = None) -> AssignedRuntime:
        opts = options or AssignOptions()
        if not opts.force_new:
            existing = self._find_reusable(opts.variant)
            if existing is not None:
                logger.info("Reusing runtime id=%s label=%s", existing.runtime_id, existing.label)
                if not opts.quiet:
                    self._progress(f"Reusing runtime {existing.label}.")
                return existing

        logger.info("Requesting new runtime variant=%s", opts.variant.value)
        status = self._api.create_runtime(opts.variant)
        runtime = self._await_ready(status, opts)
        if not opts.quiet:
            self._progress(f"Runtime {runtime.label} is ready.")
        return runtime

    def _find_reusable(self, variant: Variant) -> AssignedRuntime | None:
        for status in self._api.list_runtimes():
            if status.variant != variant:
                continue
            runtime = status.assigned()
            if runtime is not None:
                return runtime
        return None

    def _await_ready(self, status: RuntimeStatus, opts: AssignOptions) -> AssignedRuntime:
        deadline = self._clock() + self.policy.timeout_seconds
        intervals = backoff_intervals(self.policy)
        last_state: RuntimeState | None = None

        while True:
            ready = status.assigned()
            if ready is not None:
                logger.info("Runtime ready id=%s label=%s", ready.runtime_id, ready.label)
                return ready
            if status.state == RuntimeState.FAILED:
                logger.error("Runtime failed id=%s message=%s", status.runtime_id, status.message)
                raise RuntimeUnavailable(
                    status.message or "Runtime failed to start",
                    hint="Retry with --new-runtime or choose another accelerator.",
                )
            if status.state == RuntimeState.QUOTA_EXCEEDED:
                logger.error("Runtime quota exceeded id=%s", status.runtime_id)
                raise RuntimeUnavailable(
                    status.message or "Runtime quota exceeded",
                    hint="Wait for quota to reset or use --cpu.",
                )

            if status.state != last_state:
                last_state = status.state
                logger.debug("Runtime state id=%s state=%s", status.runtime_id, status.state.value)
                if not opts.quiet:
                    self._progress(_progress_message(status.state, opts.variant))

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.error("Runtime acquisition timed out id=%s", status.runtime_id)
                raise RuntimeTimeout(
                    f"Timed out after {self.policy.timeout_seconds:g}s waiting for runtime",
                    hint="Increase acquisition_timeout_seconds or retry later.",
                )
            self._sleep(min(next(intervals), remaining))
            status = self._api.get_runtime(status.runtime_id)
