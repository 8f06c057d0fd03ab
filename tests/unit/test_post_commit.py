"""Unit tests for post-commit side-effect hooks."""

from unittest.mock import AsyncMock

import pytest

from src.services.post_commit import PostCommitHooks


class TestPostCommitHooks:
    @pytest.mark.asyncio
    async def test_runs_hooks_in_registration_order(self) -> None:
        calls: list[str] = []

        async def record(name: str) -> None:
            calls.append(name)

        hooks = PostCommitHooks("order 1")
        hooks.add("first", lambda: record("first"))
        hooks.add("second", lambda: record("second"))

        assert hooks.names == ["first", "second"]
        assert await hooks.run() == []
        assert calls == ["first", "second"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_hooks(self) -> None:
        later = AsyncMock(return_value=None)
        hooks = PostCommitHooks("order 1")
        hooks.add("email", AsyncMock(side_effect=RuntimeError("smtp down")))
        hooks.add("notify", later)

        failed = await hooks.run()

        assert failed == ["email"]
        later.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reported_send_failure_counts_as_failed(self) -> None:
        hooks = PostCommitHooks("order 1")
        hooks.add("email", AsyncMock(return_value={"success": False, "error": "bounced"}))
        hooks.add("notify", AsyncMock(return_value={"id": "n1"}))

        assert await hooks.run() == ["email"]
