"""
Tag filtering and TV shortcut selection state.
"""
from frameart.models.document import MetadataDocument
from frameart.models.image import ImageRecord
from frameart.models.tv import TVRecord, normalize_mac_address
from frameart.services.filtering import (
    ALL,
    NONE,
    PARTIAL,
    filter_images,
    images_for_tv,
    no_tvs_selection_state,
    non_tv_tags,
    tv_selection_state,
    tv_shortcuts,
)


def _tv(tv_id, tags):
    return TVRecord(id=tv_id, name=f"TV {tv_id}", ip="10.0.0.1", tags=tags)


class TestSelectionState:
    """all / partial / none per TV shortcut."""

    def test_partial_after_manual_deselect(self):
        """Scenario: selecting TV1's tags then dropping 'abstract' leaves TV2 partial."""
        tv1 = _tv("1", ["nature", "abstract"])
        tv2 = _tv("2", ["nature", "sunset"])
        selected = set(tv1.tags)
        assert tv_selection_state(tv1.tags, selected) == ALL
        selected.discard("abstract")
        assert tv_selection_state(tv2.tags, selected) == PARTIAL
        assert tv_selection_state(tv1.tags, selected) == PARTIAL

    def test_none_selected(self):
        """No overlap is none."""
        assert tv_selection_state(["nature"], ["beach"]) == NONE

    def test_empty_tv_tags_match_everything(self):
        """An empty TV tag set means 'show everything'."""
        assert tv_selection_state([], ["anything"]) == ALL
        images = {"a.jpg": ImageRecord(tags=["x"]), "b.jpg": ImageRecord()}
        assert images_for_tv(images, _tv("1", [])) == images

    def test_no_tvs_shortcut(self):
        """The 'No TVs' entry is all only when exactly the orphan tags are selected."""
        leftover = non_tv_tags(["nature", "abstract", "family"], [_tv("1", ["nature", "abstract"])])
        assert leftover == ["family"]
        assert no_tvs_selection_state(leftover, ["family"]) == ALL
        assert no_tvs_selection_state(leftover, ["family", "nature"]) == NONE
        assert no_tvs_selection_state(leftover, []) == NONE

    def test_shortcuts_skip_untagged_tvs(self):
        """TVs without tags get no shortcut; the No TVs entry is always last."""
        doc = MetadataDocument(images={}, tags=["nature", "family"],
                               tvs=[_tv("1", ["nature"]), _tv("2", [])])
        shortcuts = tv_shortcuts(doc, ["nature"])
        assert [s["id"] for s in shortcuts] == ["1", "no-tvs"]
        assert shortcuts[0]["state"] == ALL
        assert shortcuts[1]["tags"] == ["family"]


class TestFilterImages:
    """Search and tag filters."""

    def test_any_tag_matches(self):
        """An image matches if it has any selected tag."""
        images = {
            "a.jpg": ImageRecord(tags=["nature"]),
            "b.jpg": ImageRecord(tags=["sunset"]),
            "c.jpg": ImageRecord(tags=["city"]),
        }
        assert list(filter_images(images, selected_tags=["nature", "sunset"])) == ["a.jpg", "b.jpg"]

    def test_search_and_tags_combine(self):
        """Search narrows the tag match further."""
        images = {"beach-1.jpg": ImageRecord(tags=["sunset"]), "hill-2.jpg": ImageRecord(tags=["sunset"])}
        assert list(filter_images(images, search="BEACH", selected_tags=["sunset"])) == ["beach-1.jpg"]


class TestMacAddress:
    """MAC normalisation for TV records."""

    def test_formats(self):
        """Separators and case are normalised; junk is rejected."""
        assert normalize_mac_address("AA-BB-CC-DD-EE-FF") == "aa:bb:cc:dd:ee:ff"
        assert normalize_mac_address("aabbccddeeff") == "aa:bb:cc:dd:ee:ff"
        assert normalize_mac_address("not-a-mac") is None
