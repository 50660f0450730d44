import pytest

from notes_api.errors import InvalidInputError, NotFoundError
from notes_api.models import DEFAULT_NOTE_COLOR, Note
from notes_api.notes import UNSET, NoteFilter, NotePatch, NoteStore


@pytest.fixture
def store(db_session, clock) -> NoteStore:
    return NoteStore(db_session, clock=clock)


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com").id


@pytest.fixture
def stranger(make_user):
    return make_user("stranger@example.com").id


def test_create_applies_defaults(store, owner, clock):
    note = store.create(owner, title="  Groceries  ")
    assert note.id
    assert note.owner_id == owner
    assert note.title == "Groceries"
    assert note.content == ""
    assert note.labels == []
    assert note.color == DEFAULT_NOTE_COLOR
    assert note.pinned is False
    assert note.archived is False
    assert note.created_at == note.updated_at == clock()


@pytest.mark.parametrize("fields", [
    {},
    {"title": "", "content": ""},
    {"title": "   ", "content": "\n\t"},
    {"labels": ["work"]},
    {"labels": ["work"], "color": "#fff", "pinned": True},
])
def test_create_requires_title_or_content(store, owner, fields):
    with pytest.raises(InvalidInputError, match="Title or content is required"):
        store.create(owner, **fields)


def test_labels_keep_order_and_drop_repeats(store, owner):
    note = store.create(owner, content="x", labels=["b", "a", "b", "c", "a"])
    assert note.labels == ["b", "a", "c"]
    assert store.get(owner, note.id).labels == ["b", "a", "c"]


def test_get_hides_other_owners_notes(store, owner, stranger):
    note = store.create(owner, title="private")
    with pytest.raises(NotFoundError):
        store.get(stranger, note.id)
    with pytest.raises(NotFoundError):
        store.get(owner, "does-not-exist")


def test_partial_update_changes_only_supplied_fields(store, owner, clock):
    note = store.create(owner, title="A", content="B", labels=["x"], color="blue")
    created_at = note.created_at

    clock.advance(minutes=5)
    updated = store.update(owner, note.id, NotePatch(pinned=True))

    assert updated.title == "A"
    assert updated.content == "B"
    assert updated.labels == ["x"]
    assert updated.color == "blue"
    assert updated.pinned is True
    assert updated.archived is False
    assert updated.created_at == created_at
    assert updated.updated_at == clock()
    assert updated.updated_at > created_at


def test_update_restamps_even_without_changes(store, owner, clock):
    note = store.create(owner, title="A")
    clock.advance(seconds=1)
    assert store.update(owner, note.id, NotePatch()).updated_at == clock()


def test_update_trims_text_and_replaces_labels(store, owner):
    note = store.create(owner, title="A", labels=["x", "y"])
    updated = store.update(owner, note.id, NotePatch(title=" new ", labels=["z", "z", "x"]))
    assert updated.title == "new"
    assert updated.labels == ["z", "x"]


def test_update_and_delete_hide_other_owners_notes(store, owner, stranger):
    note = store.create(owner, title="A")
    with pytest.raises(NotFoundError):
        store.update(stranger, note.id, NotePatch(title="hijacked"))
    with pytest.raises(NotFoundError):
        store.delete(stranger, note.id)
    assert store.get(owner, note.id).title == "A"


def test_delete_removes_note(store, owner, db_session):
    note = store.create(owner, title="A", labels=["x"])
    store.delete(owner, note.id)
    with pytest.raises(NotFoundError):
        store.get(owner, note.id)
    assert db_session.query(Note).count() == 0
    with pytest.raises(NotFoundError):
        store.delete(owner, note.id)


def test_patch_changes_lists_only_set_fields():
    patch = NotePatch(title="t", archived=False)
    assert patch.changes() == {"title": "t", "archived": False}
    assert NotePatch().changes() == {}
    assert NotePatch().color is UNSET
    assert not UNSET


def test_pinned_notes_sort_first_then_most_recent(store, owner, clock):
    old_pinned = store.create(owner, title="old pinned", pinned=True)
    clock.advance(minutes=1)
    newer = store.create(owner, title="newer")
    clock.advance(minutes=1)
    newest = store.create(owner, title="newest")

    page = store.list(owner)
    assert [n.id for n in page.notes] == [old_pinned.id, newest.id, newer.id]


def test_query_matches_title_or_content_case_insensitively(store, owner, stranger):
    in_title = store.create(owner, title="FOO bar")
    in_content = store.create(owner, title="x", content="has a foo inside")
    store.create(owner, title="nothing here")
    store.create(stranger, title="foo but not mine")

    page = store.list(owner, NoteFilter(query="foo"))
    assert {n.id for n in page.notes} == {in_title.id, in_content.id}
    assert page.total == 2


def test_query_wildcards_are_literal(store, owner):
    percent = store.create(owner, title="100% done")
    store.create(owner, title="100 done")
    page = store.list(owner, NoteFilter(query="0%"))
    assert [n.id for n in page.notes] == [percent.id]


def test_filters_combine_with_and(store, owner):
    match = store.create(owner, title="a", labels=["work", "urgent"], pinned=True)
    store.create(owner, title="b", labels=["work"], pinned=False)
    store.create(owner, title="c", labels=["home"], pinned=True)
    store.create(owner, title="d", labels=["work"], pinned=True, archived=True)

    page = store.list(owner, NoteFilter(label="work", pinned=True, archived=False))
    assert [n.id for n in page.notes] == [match.id]


def test_label_filter_is_exact_membership(store, owner):
    store.create(owner, title="a", labels=["workshop"])
    assert store.list(owner, NoteFilter(label="work")).total == 0


def test_list_is_scoped_to_owner(store, owner, stranger):
    store.create(stranger, title="theirs")
    page = store.list(owner)
    assert page.notes == []
    assert page.total == 0


def test_pagination(store, owner, clock):
    ids = []
    for i in range(5):
        ids.append(store.create(owner, title=f"n{i}").id)
        clock.advance(seconds=1)
    newest_first = list(reversed(ids))

    first = store.list(owner, page=1, limit=2)
    second = store.list(owner, page=2, limit=2)
    last = store.list(owner, page=3, limit=2)
    beyond = store.list(owner, page=4, limit=2)

    assert [n.id for n in first.notes] == newest_first[:2]
    assert [n.id for n in second.notes] == newest_first[2:4]
    assert [n.id for n in last.notes] == newest_first[4:]
    assert beyond.notes == []
    assert first.total == second.total == beyond.total == 5
    assert (second.page, second.limit) == (2, 2)


@pytest.mark.parametrize("page,limit", [(0, 20), (1, 0), (1, 101)])
def test_list_rejects_bad_paging(store, owner, page, limit):
    with pytest.raises(InvalidInputError):
        store.list(owner, page=page, limit=limit)


def test_list_flat_caps_at_limit(store, owner, clock):
    for i in range(3):
        store.create(owner, title=f"n{i}")
        clock.advance(seconds=1)
    notes = store.list_flat(owner, limit=2)
    assert [n.title for n in notes] == ["n2", "n1"]
    with pytest.raises(InvalidInputError):
        store.list_flat(owner, limit=0)
