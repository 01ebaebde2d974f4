from pathlib import Path

from pagepal.core import ContentKind, ContentUnit
from pagepal.core.content import UNSORTED_PATH


def test_units_compare_by_location():
    assert ContentUnit.image(Path("/a/1.jpg")) == ContentUnit.image(Path("/a/1.jpg"), source="https://x.org/1.jpg")
    assert ContentUnit.image(Path("/a/1.jpg")) != ContentUnit.image(Path("/a/2.jpg"))


def test_different_kinds_are_never_equal():
    assert ContentUnit.image(Path("/a/1")) != ContentUnit.other(Path("/a/1"))
    assert ContentUnit.text(Path("/a/1"), "x") != ContentUnit.text(Path("/a/1"), "y")


def test_units_sort_by_location_and_hash():
    units = [ContentUnit.image(Path("/b.jpg")), ContentUnit.image(Path("/a.jpg"))]
    assert [u.location.name for u in sorted(units)] == ["a.jpg", "b.jpg"]
    assert len({ContentUnit.image(Path("/a.jpg")), ContentUnit.image(Path("/a.jpg"))}) == 1


def test_only_images_are_visual():
    assert ContentUnit.image(Path("/a.jpg")).is_visual
    assert not ContentUnit.text(Path("/a.txt"), "hi").is_visual
    assert ContentUnit.empty().is_empty


def test_from_text_joins_paragraphs():
    unit = ContentUnit.from_text(["First.", "Second."], source="https://example.com/c/1")
    assert unit.kind is ContentKind.TEXT
    assert unit.body == "First.\n\nSecond."
    assert unit.location == UNSORTED_PATH


def test_describe_placeholders():
    assert ContentUnit.other(Path("/a.pdf")).describe() == "Unable to preview."
    assert ContentUnit.empty().describe() == "There's no content here."
