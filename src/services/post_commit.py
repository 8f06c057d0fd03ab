"""Best-effort side effects that run after financial state is committed."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """Ordered list of side effects run once a transaction has committed.

    Each hook runs in isolation: a failure is logged and the remaining
    hooks still run. Nothing here is retried and nothing is re-raised, so
    an email or notification outage can never undo a committed order.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._hooks: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def add(self, name: str, hook: Callable[[], Awaitable[Any]]) -> None:
        self._hooks.append((name, hook))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self._hooks]

    async def run(self) -> list[str]:
        """Run every hook in registration order.

        Returns:
            list[str]: Names of the hooks that failed.
        """
        failed: list[str] = []
        for name, hook in self._hooks:
            try:
                result = await hook()
            except Exception as e:
                logger.error("Post-commit step %s for %s failed: %s", name, self.label, str(e))
                failed.append(name)
                continue

            # Email sends report failure instead of raising
            if isinstance(result, dict) and result.get("success") is False:
                logger.warning(
                    "Post-commit step %s for %s reported failure: %s",
                    name,
                    self.label,
                    result.get("error"),
                )
                failed.append(name)
        return failed
