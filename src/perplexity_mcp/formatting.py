"""
Renders an accumulated answer with its sources and related images.

Upstream citation and image entries come either as bare URL strings or as
objects whose field names vary between API versions, so each entry is wrapped
in a small tagged union and fields are resolved through ordered fallbacks.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

CITATION_URL_FIELDS = ("url", "link")
CITATION_TITLE_FIELDS = ("title", "name", "text")
IMAGE_URL_FIELDS = ("image_url", "url", "src", "link")
IMAGE_TITLE_FIELDS = ("title",)


@dataclass(frozen=True)
class TextRef:
    """An entry given as a bare string."""

    value: str


@dataclass(frozen=True)
class MappingRef:
    """An entry given as an object with arbitrary field names."""

    fields: Mapping[str, Any]

    def lookup(self, names: Iterable[str]) -> Optional[str]:
        """Return the first truthy value among ``names``."""
        for name in names:
            value = self.fields.get(name)
            if value:
                return str(value)
        return None


LinkRef = Union[TextRef, MappingRef]


def as_link_ref(item: Any) -> Optional[LinkRef]:
    """Classify a raw entry; anything but a string or mapping yields None."""
    if isinstance(item, str):
        return TextRef(item)
    if isinstance(item, Mapping):
        return MappingRef(item)
    return None


def format_citation(index: int, item: Any) -> Optional[str]:
    ref = as_link_ref(item)
    if isinstance(ref, TextRef):
        return f"{index}. {ref.value}"
    if isinstance(ref, MappingRef):
        url = ref.lookup(CITATION_URL_FIELDS) or "#"
        title = ref.lookup(CITATION_TITLE_FIELDS) or url
        return f"{index}. [{title}]({url})"
    return None


def format_image(index: int, item: Any) -> Optional[str]:
    ref = as_link_ref(item)
    if isinstance(ref, TextRef):
        return f"{index}. ![Image {index}]({ref.value})"
    if isinstance(ref, MappingRef):
        url = ref.lookup(IMAGE_URL_FIELDS)
        if not url:
            return None
        title = ref.lookup(IMAGE_TITLE_FIELDS) or f"Image {index}"
        return f"{index}. [{title}]({url})"
    return None


def _render_section(heading: str, items: Sequence[Any], render) -> str:
    lines: List[str] = []
    # Numbers follow list position, so a skipped entry leaves its number unused
    for position, item in enumerate(items, start=1):
        line = render(position, item)
        if line is not None:
            lines.append(line + "\n")
    return f"\n\n**{heading}:**\n" + "".join(lines)


def format_response(
    text: str,
    citations: Optional[Sequence[Any]] = None,
    images: Optional[Sequence[Any]] = None,
) -> str:
    """
    Build the user-facing text for one tool call.

    Args:
        text: Accumulated answer, kept verbatim
        citations: Citation entries (URL strings or objects)
        images: Image entries (URL strings or objects)

    Returns:
        The answer followed by a Sources section and a Related Images
        section, each omitted when its list is empty
    """
    formatted = text
    if citations:
        formatted += _render_section("Sources", citations, format_citation)
    if images:
        formatted += _render_section("Related Images", images, format_image)
    return formatted
