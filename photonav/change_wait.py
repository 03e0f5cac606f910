"""
Change-wait primitive: one-shot notification of the next mutation in a
subtree of the live document, and the polling loop built on top of it.

The gallery rebuilds its view asynchronously and gives no loading
signal, so every "has it loaded yet" check is a loop of
subscribe -> check -> wait for the next mutation -> check again.
"""

import asyncio
import logging

logger = logging.getLogger("photonav")

# Installs a MutationObserver that disconnects itself after the first
# callback.  ``stop`` lets Python tear the observer down early.
_OBSERVE_SCRIPT = """
node => {
  const subscription = {};
  subscription.promise = new Promise(resolve => {
    const observer = new MutationObserver(() => {
      observer.disconnect();
      resolve(true);
    });
    observer.observe(node, {attributes: true, childList: true, subtree: true});
    subscription.stop = () => {
      observer.disconnect();
      resolve(false);
    };
  });
  return subscription;
}
"""


class ChangeTimeout(Exception):
    """A bounded wait ran out before its condition was observed."""


class ChangeSubscription:
    """
    One-shot observation of a single element's subtree.

    Created with ``start()``, fulfilled at most once, then discarded.
    Observing a later mutation needs a new subscription.
    """

    def __init__(self, handle):
        self._handle = handle
        self._closed = False

    @classmethod
    async def start(cls, node) -> "ChangeSubscription":
        handle = await node.evaluate_handle(_OBSERVE_SCRIPT)
        return cls(handle)

    async def wait(self, timeout: float = None) -> None:
        """Suspend until the first mutation.  Raises ChangeTimeout after *timeout* seconds."""
        waiter = self._handle.evaluate("subscription => subscription.promise")
        if timeout is None:
            await waiter
            return
        try:
            await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            raise ChangeTimeout(f"No change observed within {timeout:.1f}s") from None

    async def cancel(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._handle.evaluate("subscription => subscription.stop()")
        await self._handle.dispose()


async def await_change(node, timeout: float = None) -> None:
    """Resolve on the next attribute, child-list or descendant change inside *node*."""
    subscription = await ChangeSubscription.start(node)
    try:
        await subscription.wait(timeout)
    finally:
        await subscription.cancel()


async def wait_until(host, node, probe, *, timeout: float = None, max_mutations: int = None):
    """
    Re-evaluate ``probe()`` each time *node*'s subtree changes and return
    its first truthy result.

    The subscription is installed before each probe, so a mutation that
    lands between the check and the wait is not lost.

    Args:
        host: Object providing ``subscribe(node)`` (a HostPage).
        node: Subtree to watch.
        probe: Coroutine function returning a falsy value until the
            condition holds.
        timeout: Overall deadline in seconds, None waits forever.
        max_mutations: Give up after this many non-matching changes.

    Raises:
        ChangeTimeout: when either bound is exhausted.
    """
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    mutations = 0
    while True:
        subscription = await host.subscribe(node)
        try:
            result = await probe()
            if result:
                return result
            remaining = None
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise ChangeTimeout(f"Condition not met within {timeout:.1f}s")
            await subscription.wait(remaining)
        finally:
            await subscription.cancel()

        mutations += 1
        if max_mutations is not None and mutations >= max_mutations:
            raise ChangeTimeout(f"Condition not met after {mutations} changes")
        logger.debug(f"  change #{mutations} observed, condition still unmet")
