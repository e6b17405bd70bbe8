"""
XML parsing for BGG XML API2 responses.

Turns /search and /thing markup into SearchItem and GameMetadata records.
Parse failures are logged and yield empty lists; callers treat a missing
record as "not found or failed to parse".
"""
import html
import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from app.models import GameMetadata, GameType, GameVersion, SearchItem
from app.utils.helpers import convert_weight, format_dimensions, safe_strip

logger = logging.getLogger(__name__)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_BARE_AMPERSAND_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[0-9a-fA-F]+);)")

# Inbound link types that mark the current item as an add-on of another game
INBOUND_EXPANSION_LINK_TYPES = ("boardgameexpansion", "boardgameintegration")


# =============================================================================
# Text cleanup
# =============================================================================

def clean_xml(xml_text: str) -> str:
    """
    Make BGG markup safe for a strict XML parser.

    Strips control characters and escapes ampersands that do not start a
    known XML entity.
    """
    if not xml_text:
        return ""
    cleaned = _CONTROL_CHARS_RE.sub("", xml_text)
    cleaned = _BARE_AMPERSAND_RE.sub("&amp;", cleaned)
    return cleaned.strip()


def decode_text(text: Optional[str]) -> str:
    """Decode HTML entities left in BGG text (descriptions are double-encoded)."""
    if not text:
        return ""
    return html.unescape(_CONTROL_CHARS_RE.sub("", text)).strip()


def _parse(xml_text: str) -> Optional[ET.Element]:
    if not xml_text or not xml_text.strip():
        logger.error("XML parser: empty input")
        return None
    try:
        return ET.fromstring(xml_text)
    except ET.ParseError as e:
        logger.error(f"Failed to parse BGG XML: {e}")
        logger.debug(f"XML input preview: {xml_text[:500]}")
        return None


def _items(root: Optional[ET.Element]) -> List[ET.Element]:
    """Top-level <item> elements (nested version items excluded)."""
    if root is None:
        return []
    if root.tag == "item":
        return [root]
    return root.findall("item")


# =============================================================================
# Element helpers
# =============================================================================

def _value(element: ET.Element, tag: str) -> Optional[str]:
    """Text of ``<tag value="..."/>`` or ``<tag>...</tag>``, None when absent/empty."""
    child = element.find(tag)
    if child is None:
        return None
    raw = child.get("value")
    if raw is None:
        raw = child.text
    value = decode_text(raw)
    return value or None


def _primary_name(element: ET.Element) -> str:
    names = element.findall("name")
    for name in names:
        if name.get("type") == "primary":
            value = decode_text(name.get("value") or name.text)
            if value:
                return value
    # Fall back to the first name that has a value
    for name in names:
        value = decode_text(name.get("value") or name.text)
        if value:
            return value
    return ""


def _alternate_names(element: ET.Element) -> List[str]:
    alternates = []
    for name in element.findall("name"):
        if name.get("type") != "alternate":
            continue
        value = decode_text(name.get("value"))
        if value and value not in alternates:
            alternates.append(value)
    return alternates


def _links(element: ET.Element, link_type: str) -> List[str]:
    """Distinct link values of one type, in document order."""
    values: List[str] = []
    for link in element.findall("link"):
        if link.get("type") != link_type:
            continue
        value = decode_text(link.get("value"))
        if value and value not in values:
            values.append(value)
    return values


def _inbound_expansion_links(element: ET.Element) -> List[Dict[str, str]]:
    links = []
    for link in element.findall("link"):
        if link.get("inbound") != "true":
            continue
        if link.get("type") not in INBOUND_EXPANSION_LINK_TYPES:
            continue
        links.append({
            "id": safe_strip(link.get("id")),
            "type": safe_strip(link.get("type")),
            "value": decode_text(link.get("value")),
        })
    return links


def _rank(element: ET.Element) -> Optional[str]:
    for rank in element.findall("statistics/ratings/ranks/rank"):
        if rank.get("name") == "boardgame":
            value = safe_strip(rank.get("value"))
            if not value or value == "Not Ranked":
                return None
            return value
    return None


def _rating(element: ET.Element, tag: str) -> Optional[str]:
    return _value(element, f"statistics/ratings/{tag}")


# =============================================================================
# Versions
# =============================================================================

def _version_from_element(element: ET.Element) -> Optional[GameVersion]:
    version_id = safe_strip(element.get("id"))
    if not version_id:
        return None

    width = _value(element, "width") or ""
    length = _value(element, "length") or ""
    depth = _value(element, "depth") or ""
    weight = _value(element, "weight") or ""

    return GameVersion(
        id=version_id,
        name=_primary_name(element) or "Unknown",
        year_published=_value(element, "yearpublished") or "",
        publishers=_links(element, "boardgamepublisher"),
        languages=_links(element, "language"),
        product_code=_value(element, "productcode") or "",
        thumbnail=_value(element, "thumbnail") or "",
        image=_value(element, "image") or "",
        width=width,
        length=length,
        depth=depth,
        weight=weight,
        dimensions=format_dimensions(width, length, depth),
        weight_info=convert_weight(weight),
    )


def _versions(element: ET.Element) -> List[GameVersion]:
    """
    Versions nested under <versions>; when absent, bare version links are
    used so the caller still sees which versions exist.
    """
    versions = []
    for version_element in element.findall("versions/item"):
        version = _version_from_element(version_element)
        if version is not None:
            versions.append(version)
    if versions:
        return versions

    for link in element.findall("link"):
        if link.get("type") == "boardgameversion" and link.get("id"):
            versions.append(GameVersion(
                id=safe_strip(link.get("id")),
                name=decode_text(link.get("value")) or "Unknown Version",
            ))
    return versions


# =============================================================================
# Public extractors
# =============================================================================

def extract_search_items(xml_text: str) -> List[SearchItem]:
    """Extract lightweight matches from a /search response."""
    items = []
    for element in _items(_parse(clean_xml(xml_text))):
        item_id = safe_strip(element.get("id"))
        name = _primary_name(element)
        if not item_id or not name:
            continue
        items.append(SearchItem(
            id=item_id,
            name=name,
            type=element.get("type") or GameType.BOARDGAME.value,
            year_published=_value(element, "yearpublished"),
            thumbnail=_value(element, "thumbnail"),
            image=_value(element, "image"),
        ))
    logger.debug(f"Extracted {len(items)} search items")
    return items


def extract_metadata(xml_text: str) -> List[GameMetadata]:
    """
    Extract full game records from a /thing response.

    Items without an id, a name or a type are dropped.
    """
    records = []
    for element in _items(_parse(xml_text)):
        item_id = safe_strip(element.get("id"))
        item_type = element.get("type")
        name = _primary_name(element)
        if not item_id or not name or not item_type:
            logger.debug(f"Skipping incomplete item id={item_id!r} type={item_type!r}")
            continue

        inbound = _inbound_expansion_links(element)
        records.append(GameMetadata(
            id=item_id,
            name=name,
            type=item_type,
            year_published=_value(element, "yearpublished"),
            min_players=_value(element, "minplayers"),
            max_players=_value(element, "maxplayers"),
            playing_time=_value(element, "playingtime"),
            min_age=_value(element, "minage"),
            description=_value(element, "description"),
            thumbnail=_value(element, "thumbnail"),
            image=_value(element, "image"),
            average=_rating(element, "average"),
            bayes_average=_rating(element, "bayesaverage"),
            weight=_rating(element, "averageweight"),
            rank=_rank(element),
            mechanics=_links(element, "boardgamemechanic"),
            categories=_links(element, "boardgamecategory"),
            designers=_links(element, "boardgamedesigner"),
            alternate_names=_alternate_names(element),
            versions=_versions(element),
            has_inbound_expansion_link=bool(inbound),
            inbound_expansion_links=inbound,
        ))
    logger.debug(f"Extracted metadata for {len(records)} games")
    return records
