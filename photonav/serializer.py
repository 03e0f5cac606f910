"""
Task serializer: run keyboard-triggered workflows one after another.

Every workflow needs to see the page as the previous one left it, so a
new workflow only starts once everything queued before it has settled.
All of this runs on one asyncio loop; the only shared state is the tail
of the chain, which ``enqueue`` reads and replaces without yielding.
"""

import asyncio
import logging

logger = logging.getLogger("photonav")


class TaskSerializer:
    """FIFO chain of workflows.  A failing workflow is logged and the chain moves on."""

    def __init__(self):
        # Resolves once the last enqueued workflow and all before it have settled.
        self._settled: asyncio.Future | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Workflows enqueued but not yet settled."""
        return self._pending

    def enqueue(self, workflow, *args, name: str = None) -> asyncio.Task:
        """
        Schedule ``workflow(*args)`` after everything enqueued before it.

        Returns the task running it.  The task never raises; the
        workflow's result is its result, or None if it failed.
        Cancelling the task skips or stops this workflow only: the next
        one still waits for every earlier workflow to settle.
        """
        previous = self._settled
        settled = asyncio.get_running_loop().create_future()
        self._settled = settled
        label = name or getattr(workflow, "__name__", "workflow")
        self._pending += 1
        if self._pending > 1:
            logger.debug(f"Queued '{label}' behind {self._pending - 1} workflow(s)")

        def _settle(_=None):
            if not settled.done():
                settled.set_result(None)

        async def _run():
            try:
                if previous is not None:
                    # shield(): cancelling this task must not cancel the chain.
                    await asyncio.shield(previous)
                return await workflow(*args)
            except Exception:
                logger.exception(f"Workflow '{label}' failed")
                return None

        def _done(task):
            # Also runs for a task cancelled before it ever started.
            self._pending -= 1
            if previous is None or previous.done():
                _settle()
            else:
                previous.add_done_callback(_settle)

        task = asyncio.ensure_future(_run())
        task.add_done_callback(_done)
        return task

    async def join(self, timeout: float = None) -> bool:
        """Wait for everything enqueued so far to settle.  Returns False on timeout."""
        if self._settled is None:
            return True
        done, _ = await asyncio.wait({self._settled}, timeout=timeout)
        return bool(done)
