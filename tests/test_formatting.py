"""Tests for response formatting."""

from perplexity_mcp.formatting import (
    MappingRef,
    TextRef,
    as_link_ref,
    format_citation,
    format_image,
    format_response,
)


def test_text_only_is_verbatim():
    assert format_response("  Answer \n") == "  Answer \n"
    assert format_response("Answer", [], []) == "Answer"


def test_sources_section():
    text = format_response("Answer", ["https://a.com", {"url": "https://b.com"}])
    assert text == (
        "Answer\n"
        "\n"
        "**Sources:**\n"
        "1. https://a.com\n"
        "2. [https://b.com](https://b.com)\n"
    )


def test_citation_title_fallbacks():
    assert format_citation(1, {"url": "u", "title": "T", "name": "N"}) == "1. [T](u)"
    assert format_citation(2, {"url": "u", "name": "N", "text": "X"}) == "2. [N](u)"
    assert format_citation(3, {"link": "l", "text": "X"}) == "3. [X](l)"
    assert format_citation(4, {"title": "Lonely"}) == "4. [Lonely](#)"
    assert format_citation(5, {}) == "5. [#](#)"


def test_citation_url_prefers_url_over_link():
    assert format_citation(1, {"url": "u", "link": "l"}) == "1. [u](u)"


def test_empty_string_fields_fall_through():
    assert format_citation(1, {"url": "", "link": "l", "title": ""}) == "1. [l](l)"


def test_unsupported_citation_entries_skipped():
    text = format_response("A", [None, "https://a.com"])
    assert text == "A\n\n**Sources:**\n2. https://a.com\n"


def test_images_section_drops_entries_without_url():
    text = format_response("Answer", images=[{"image_url": "http://x/i.png", "title": "Cat"}, {"title": "NoURL"}])
    assert text == "Answer\n\n**Related Images:**\n1. [Cat](http://x/i.png)\n"


def test_image_string_and_object_forms():
    assert format_image(3, "http://x/a.png") == "3. ![Image 3](http://x/a.png)"
    assert format_image(2, {"src": "http://x/b.png"}) == "2. [Image 2](http://x/b.png)"


def test_image_url_priority():
    item = {"link": "l", "src": "s", "url": "u", "image_url": "i"}
    assert format_image(1, item) == "1. [Image 1](i)"
    del item["image_url"]
    assert format_image(1, item) == "1. [Image 1](u)"
    del item["url"]
    assert format_image(1, item) == "1. [Image 1](s)"


def test_image_numbers_follow_list_position():
    text = format_response("A", images=[{"title": "NoURL"}, "http://x/2.png"])
    assert text == "A\n\n**Related Images:**\n2. ![Image 2](http://x/2.png)\n"


def test_section_order():
    text = format_response("A", citations=["https://c.com"], images=["http://x/i.png"])
    assert text == (
        "A\n\n**Sources:**\n1. https://c.com\n"
        "\n\n**Related Images:**\n1. ![Image 1](http://x/i.png)\n"
    )


def test_link_ref_classification():
    assert as_link_ref("u") == TextRef("u")
    assert isinstance(as_link_ref({"url": "u"}), MappingRef)
    assert as_link_ref(42) is None
    assert MappingRef({"a": "", "b": "x"}).lookup(["a", "b"]) == "x"
    assert MappingRef({}).lookup(["a"]) is None
