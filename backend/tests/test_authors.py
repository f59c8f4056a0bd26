from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from clanhub.modules.forum.authors import resolve_author_names


@pytest.fixture
def mock_store():
    store = AsyncMock()
    store.get_profiles.return_value = []
    return store


@pytest.mark.asyncio
@pytest.mark.parametrize("user_ids", [[], ["", ""]])
async def test_no_ids_means_no_query(mock_store, user_ids):
    assert await resolve_author_names(mock_store, user_ids) == {}
    mock_store.get_profiles.assert_not_called()


@pytest.mark.asyncio
async def test_ids_are_deduplicated(mock_store):
    await resolve_author_names(mock_store, ["u1", "u1", "", "u2"])
    mock_store.get_profiles.assert_awaited_once_with(["u1", "u2"])


@pytest.mark.asyncio
async def test_name_fallbacks(mock_store):
    mock_store.get_profiles.return_value = [
        SimpleNamespace(id="u1", display_name="Raider", username="raider01"),
        SimpleNamespace(id="u2", display_name=None, username="scout"),
        SimpleNamespace(id="u3", display_name="", username=None),
    ]
    names = await resolve_author_names(mock_store, ["u1", "u2", "u3", "u4"])
    assert names == {"u1": "Raider", "u2": "scout", "u3": "Unknown"}


@pytest.mark.asyncio
async def test_resolves_against_database(store, seed):
    await seed.profile("u1", username="raider01", display_name="Raider")
    await seed.profile("u2", username="scout")

    names = await resolve_author_names(store, ["u2", "u1", "ghost"])

    assert names == {"u1": "Raider", "u2": "scout"}
