from __future__ import annotations

import pytest

from tiddlercrypt import FormatError, parse_container, render_container, split_tags


def test_parse_splits_document_into_spans(make_tiddler):
    doc = make_tiddler("SJCLEncrypt(site) other", "hello world", before="<!-- head -->\n")
    region = parse_container(doc)

    assert region.prefix.endswith('tags="')
    assert region.prefix.startswith("<!-- head -->\n<div ")
    assert region.tags == ("SJCLEncrypt(site)", "other")
    assert region.mid == '" type="text/vnd.tiddlywiki">\n<pre>'
    assert region.payload == "hello world"
    assert region.suffix == "</pre>\n</div>\n"


def test_render_with_unchanged_fields_is_identity(make_tiddler):
    doc = make_tiddler("a b c", "\n  some text\n", before="lead\n", after="\ntrail\n")
    region = parse_container(doc)
    assert render_container(region, region.tags, region.payload) == doc


def test_render_replaces_only_tags_and_payload(make_tiddler):
    doc = make_tiddler("a b", "old", before="X", after="Y")
    region = parse_container(doc)
    out = render_container(region, ["c", "d"], "new")
    assert out == make_tiddler("c d", "new", before="X", after="Y")


def test_split_tags_discards_empty_tokens():
    assert split_tags("a  b ") == ("a", "b")
    assert split_tags("dup dup") == ("dup", "dup")


def test_multiline_payload_and_attributes_after_tags():
    doc = '<div tags="t" title="x"\n modifier="me">\n<p>intro</p>\n<pre>line 1\nline 2</pre>\n<p>end</p>\n</div>'
    region = parse_container(doc)
    assert region.tags == ("t",)
    assert region.payload == "line 1\nline 2"
    assert region.mid == '" title="x"\n modifier="me">\n<p>intro</p>\n<pre>'
    assert region.suffix == "</pre>\n<p>end</p>\n</div>"


def test_first_tagged_region_wins(make_tiddler):
    doc = make_tiddler("first", "one") + make_tiddler("second", "two")
    region = parse_container(doc)
    assert region.tags == ("first",)
    assert region.payload == "one"
    assert region.suffix.endswith(make_tiddler("second", "two"))


def test_divs_without_tags_are_skipped(make_tiddler):
    doc = '<div class="wrapper"><div tags="">x</div>' + make_tiddler("real", "payload") + "</div>"
    region = parse_container(doc)
    assert region.tags == ("real",)
    assert region.payload == "payload"
    assert region.prefix.startswith('<div class="wrapper"><div tags="">x</div><div ')


def test_tags_attribute_needs_a_word_boundary():
    doc = '<div data-tags="nope" tags="yes"><pre>p</pre></div>'
    assert parse_container(doc).tags == ("yes",)


def test_similar_element_names_are_ignored():
    doc = '<divider tags="no"></divider><div tags="yes"><pre>p</pre></div>'
    assert parse_container(doc).tags == ("yes",)


@pytest.mark.parametrize(
    "doc",
    [
        "",
        "just text",
        "<div title=\"x\"><pre>p</pre></div>",
        '<div tags=""><pre>p</pre></div>',
        '<div tags="a">no pre here</div>',
        '<div tags="a"><pre>unterminated</div>',
        '<div tags="a"><pre>p</pre>',
        '<div tags="a"',
    ],
)
def test_unexpected_shapes_raise_format_error(doc):
    with pytest.raises(FormatError):
        parse_container(doc)
