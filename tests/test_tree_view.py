from afm.models import ROOT_ID, EntryKind, FilterCriteria, LibraryEntry, SortSpec
from afm.tree_view import (
    center_offset,
    expand_ancestors,
    flatten_tree,
    index_of,
    visible_range,
    visible_rows,
)


def f(id_, size=0):
    return LibraryEntry(id=id_, name=id_.rsplit("/", 1)[-1], kind=EntryKind.FILE, size=size, last_modified=0, mime_hint="")


def d(id_, *children, name=None):
    return LibraryEntry(id=id_, name=name or id_.rsplit("/", 1)[-1], kind=EntryKind.DIRECTORY, children=tuple(children))


TREE = d(
    ROOT_ID,
    d("Drums", f("Drums/snare.wav", 5), f("Drums/kick.wav", 9), d("Drums/Deep", f("Drums/Deep/kick_sub.wav", 1))),
    d("Empty"),
    f("zap.wav", 3),
    f("alpha.wav", 7),
    name="Library",
)


def rows(criteria=FilterCriteria(), expanded=frozenset({ROOT_ID}), spec=SortSpec()):
    return [(r.id, r.depth, r.is_expanded) for r in flatten_tree([TREE], criteria, set(expanded), spec, {}, {})]


def test_collapsed_root_level():
    out = rows()
    assert out == [
        (ROOT_ID, 0, True),
        ("alpha.wav", 1, False),
        ("Drums", 1, False),
        ("Empty", 1, False),
        ("zap.wav", 1, False),
    ]


def test_expanded_folder_sorted_per_level():
    out = rows(expanded={ROOT_ID, "Drums"})
    ids = [r[0] for r in out]
    assert ids == [ROOT_ID, "alpha.wav", "Drums", "Drums/Deep", "Drums/kick.wav", "Drums/snare.wav", "Empty", "zap.wav"]
    # Deep itself is collapsed
    assert ("Drums/Deep", 2, False) in out


def test_size_sort_applies_at_each_level():
    out = rows(expanded={ROOT_ID, "Drums", "Drums/Deep"}, spec=SortSpec("size", "desc"))
    ids = [r[0] for r in out]
    # root level: alpha(7) zap(3) then directories (size 0) in input order
    assert ids[:4] == [ROOT_ID, "alpha.wav", "zap.wav", "Drums"]
    drums_block = ids[ids.index("Drums") + 1: ids.index("Empty")]
    assert drums_block == ["Drums/kick.wav", "Drums/snare.wav", "Drums/Deep", "Drums/Deep/kick_sub.wav"]


def test_search_forces_expansion_and_hides_non_matching_dirs():
    out = rows(criteria=FilterCriteria(search_query="kick"))
    assert out == [
        (ROOT_ID, 0, True),
        ("Drums", 1, True),
        ("Drums/Deep", 2, True),
        ("Drums/Deep/kick_sub.wav", 3, False),
        ("Drums/kick.wav", 2, False),
    ]


def test_directory_name_match_keeps_empty_directory():
    out = rows(criteria=FilterCriteria(search_query="empty"))
    assert [r[0] for r in out] == [ROOT_ID, "Empty"]


def test_rating_filter_counts_as_active():
    out = flatten_tree([TREE], FilterCriteria(min_rating=3), {ROOT_ID}, SortSpec(), {}, {"Drums/Deep/kick_sub.wav": 5})
    # an empty query still matches every directory name, so folders stay listed
    assert [r.id for r in out] == [ROOT_ID, "Drums", "Drums/Deep", "Drums/Deep/kick_sub.wav", "Empty"]


def test_root_without_matches_is_not_emitted():
    assert rows(criteria=FilterCriteria(search_query="nothing-here")) == []


def test_visible_range_window():
    assert visible_range(1000, 0, 340) == (0, 20)
    assert visible_range(1000, 3400, 340) == (90, 120)
    assert visible_range(25, 3400, 340) == (25, 25)
    assert visible_range(1000, 17, 340, overscan=0) == (0, 11)


def test_visible_rows_slice_and_center():
    out = flatten_tree([TREE], FilterCriteria(), {ROOT_ID}, SortSpec(), {}, {})
    start, window = visible_rows(out, 0, 68, overscan=1)
    assert start == 0
    assert [r.id for r in window] == [ROOT_ID, "alpha.wav", "Drums"]
    assert index_of(out, "Empty") == 3
    assert center_offset(0, 600) == 0.0
    assert center_offset(100, 600) == 100 * 34 - 300 + 17


def test_expand_ancestors():
    expanded = {ROOT_ID}
    assert expand_ancestors("a/b/c.wav", expanded)
    assert expanded == {ROOT_ID, "a", "a/b"}
    assert not expand_ancestors("a/b/d.wav", expanded)
    assert not expand_ancestors(None, expanded)
