"""Tests for the outline document buffer."""

import pytest

from org_diary.locking import lock_path_for
from org_diary.orgdoc import OrgDocument, parse_heading, render_heading, render_property


SAMPLE = """\
#+TITLE: Diary
* 2014
** 2014-12 December
*** 2014-12-31 Wednesday :travel:
SCHEDULED: <2014-12-31 Wed>
:PROPERTIES:
:ID:       abc
:created:  <2014-12-31 Wed 20:08>
:END:
Body line.
**** :text:
Note text.
* 2015
"""


@pytest.fixture
def doc():
    return OrgDocument.from_text(SAMPLE)


class TestParseHeading:
    """Tests for parse_heading and render_heading."""

    def test_simple(self):
        h = parse_heading("** 2014-12 December", 5)
        assert (h.level, h.title, h.line, h.tags) == (2, "2014-12 December", 5, [])

    def test_tags(self):
        h = parse_heading("*** Title :a:b:")
        assert h.title == "Title"
        assert h.tags == ["a", "b"]

    def test_tags_only(self):
        h = parse_heading("**** :text:")
        assert h.title == ""
        assert h.tags == ["text"]

    def test_empty_title(self):
        assert parse_heading("*").title == ""

    @pytest.mark.parametrize("text", ["plain", "*bold* text", ":PROPERTIES:", ""])
    def test_not_a_heading(self, text):
        assert parse_heading(text) is None

    def test_colon_in_title_is_not_a_tag(self):
        h = parse_heading("* Time 10:30")
        assert h.title == "Time 10:30"
        assert h.tags == []

    def test_render(self):
        assert render_heading(4, "", ["text"]) == "**** :text:"
        assert render_heading(3, "2014-12-31 Wednesday") == "*** 2014-12-31 Wednesday"

    def test_render_property(self):
        assert render_property("ID", "abc") == ":ID:       abc"
        assert render_property("DESCRIBED", "<x>") == ":DESCRIBED: <x>"


class TestStructure:
    """Tests for heading lookup."""

    def test_headings(self, doc):
        assert [h.line for h in doc.headings()] == [1, 2, 3, 10, 12]

    def test_enclosing_heading(self, doc):
        assert doc.enclosing_heading(9).line == 3
        assert doc.enclosing_heading(0) is None

    def test_subtree_end(self, doc):
        assert doc.subtree_end(3) == 12
        assert doc.subtree_end(1) == 12
        assert doc.subtree_end(12) == 13

    def test_subtree_end_requires_heading(self, doc):
        with pytest.raises(ValueError):
            doc.subtree_end(0)

    def test_children(self, doc):
        assert [h.title for h in doc.children(None, level=1)] == ["2014", "2015"]
        assert [h.line for h in doc.children(2)] == [3]

    def test_next_heading_with_level(self, doc):
        assert doc.next_heading(4, 3) == 12
        assert doc.next_heading(4) == 10

    def test_body(self, doc):
        assert doc.body(3) == "Body line."
        assert doc.body(10) == "Note text."


class TestProperties:
    """Tests for property drawer access."""

    def test_drawer_after_planning_line(self, doc):
        assert doc.drawer_bounds(3) == (5, 8)

    def test_get_property_case_insensitive(self, doc):
        assert doc.get_property(3, "CREATED") == "<2014-12-31 Wed 20:08>"
        assert doc.get_property(3, "id") == "abc"

    def test_get_from_body_line(self, doc):
        """Lookups from inside the entry use the enclosing heading."""
        assert doc.get_property(9, "ID") == "abc"

    def test_no_drawer(self, doc):
        assert doc.properties(1) == {}
        assert not doc.has_drawer(1)

    def test_update_existing(self, doc):
        doc.set_property(3, "CREATED", "<2015-01-01 Thu>")
        assert doc.get_property(3, "CREATED") == "<2015-01-01 Thu>"
        assert len(doc.lines) == len(SAMPLE.splitlines())

    def test_append_to_drawer(self, doc):
        doc.set_property(3, "CONVERTED", "<2015-01-01 Thu>")
        assert doc.lines[8] == ":CONVERTED: <2015-01-01 Thu>"
        assert doc.lines[9] == ":END:"

    def test_create_drawer(self, doc):
        doc.set_property(2, "ID", "month")
        assert doc.lines[3:6] == [":PROPERTIES:", ":ID:       month", ":END:"]
        assert doc.get_property(2, "ID") == "month"

    def test_set_outside_heading(self, doc):
        with pytest.raises(ValueError):
            doc.set_property(0, "ID", "x")

    def test_find_property(self, doc):
        assert doc.find_property("ID", "abc") == [3]
        assert doc.find_property("ID", "missing") == []


class TestEditing:
    """Tests for buffer edits and saving."""

    def test_insert_heading(self, doc):
        line = doc.insert_heading(12, 3, "2014-12-31 Wednesday")
        assert line == 12
        assert doc.lines[12] == "*** 2014-12-31 Wednesday"

    def test_insert_heading_clamps(self):
        doc = OrgDocument()
        assert doc.insert_heading(99, 1, "2014") == 0

    def test_set_title_keeps_tags(self, doc):
        doc.set_title(3, "2014-12-30 Tuesday")
        assert doc.lines[3] == "*** 2014-12-30 Tuesday :travel:"

    def test_text_round_trip(self, doc):
        assert doc.text == SAMPLE

    def test_save_and_load(self, doc, temp_project):
        path = temp_project / "journal" / "2014"
        doc.save(path)
        assert path.read_text(encoding="utf-8") == SAMPLE
        assert OrgDocument.load(path).lines == doc.lines
        assert doc.path == path

    def test_save_leaves_no_temp_file(self, doc, temp_project):
        path = temp_project / "2014"
        doc.save(path)
        assert not (temp_project / ".2014.tmp").exists()
        assert lock_path_for(path) == temp_project / ".2014.lock"

    def test_save_without_path(self, doc):
        with pytest.raises(ValueError):
            doc.save()
