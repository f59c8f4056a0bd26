import pytest

from clanhub.modules.forum.categories import CategoryDirectory
from clanhub.modules.forum.types import Category


def make_directory() -> CategoryDirectory:
    return CategoryDirectory(
        [
            Category(id="c1", clan_id="clan-1", name="Events", slug="events"),
            Category(id="c2", clan_id="clan-1", name="Off Topic", slug="off-topic"),
        ]
    )


def test_lookup_by_id():
    directory = make_directory()
    assert directory.get("c2").name == "Off Topic"
    assert directory.get("nope") is None
    assert directory.get(None) is None
    assert (directory.name_of("c1"), directory.slug_of("c1")) == ("Events", "events")
    assert (directory.name_of(None), directory.slug_of("nope")) == ("", "")


@pytest.mark.parametrize(
    ("slug", "expected"),
    [("events", "c1"), ("Off Topic", "c2"), (" EVENTS ", "c1"), ("raids", None), ("", None)],
)
def test_find_by_slug(slug, expected):
    match = make_directory().find_by_slug(slug)
    assert (match.id if match else None) == expected


def test_empty_directory():
    directory = CategoryDirectory()
    assert not directory
    assert len(directory) == 0
    assert directory.find_by_slug("events") is None


@pytest.mark.asyncio
async def test_load_orders_by_sort_order(store, seed):
    await seed.category("Off Topic", "off-topic", sort_order=2)
    await seed.category("Events", "events", sort_order=1)
    await seed.category("Announcements", "announcements", sort_order=1)
    await seed.category("Other clan", "other", clan_id="clan-2")

    directory = await CategoryDirectory.load(store, "clan-1")

    assert [category.slug for category in directory] == ["announcements", "events", "off-topic"]
    assert directory.find_by_slug("events").name == "Events"
