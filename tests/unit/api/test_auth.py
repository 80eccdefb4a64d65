import pytest
from fastapi import HTTPException

from src.auth import get_actor


class TestGetActor:
    async def test_returns_actor(self) -> None:
        assert await get_actor(x_actor="inspector-7") == "inspector-7"

    async def test_strips_whitespace(self) -> None:
        assert await get_actor(x_actor="  admin-2 ") == "admin-2"

    async def test_rejects_empty(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_actor(x_actor="   ")

        assert exc_info.value.status_code == 400

    async def test_rejects_system_actor(self) -> None:
        """Only automation may write history entries as 'system'."""
        with pytest.raises(HTTPException) as exc_info:
            await get_actor(x_actor="system")

        assert exc_info.value.status_code == 400
