"""
Data models for BGG game metadata.

These dataclasses are the canonical shape of parsed BGG records. They are
what the cache stores and what the view models render; the XML parser is
the only place that builds them from raw markup.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


BGG_GAME_URL = "https://boardgamegeek.com/boardgame/{game_id}"


class GameType(Enum):
    """BGG thing types this service deals with."""
    BOARDGAME = "boardgame"
    EXPANSION = "boardgameexpansion"


def classify_is_expansion(game_type: Optional[str], has_inbound_expansion_link: bool) -> bool:
    """
    A game is an expansion if BGG labels it as one, or if another game
    links to it through an inbound expansion link.
    """
    return game_type == GameType.EXPANSION.value or bool(has_inbound_expansion_link)


def bgg_link(game_id: str) -> str:
    return BGG_GAME_URL.format(game_id=game_id)


@dataclass
class GameVersion:
    """A published version (edition) of a game. Passed through the cache untouched."""
    id: str
    name: str
    year_published: str = ""
    publishers: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    product_code: str = ""
    thumbnail: str = ""
    image: str = ""
    width: str = ""
    length: str = ""
    depth: str = ""
    weight: str = ""
    dimensions: Optional[Dict[str, Any]] = None
    weight_info: Optional[Dict[str, Any]] = None

    @property
    def primary_language(self) -> Optional[str]:
        return self.languages[0] if self.languages else None

    @property
    def is_multilingual(self) -> bool:
        return len(self.languages) > 1

    @property
    def language_count(self) -> int:
        return len(self.languages)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "yearpublished": self.year_published,
            "publishers": list(self.publishers),
            "languages": list(self.languages),
            "productcode": self.product_code,
            "thumbnail": self.thumbnail,
            "image": self.image,
            "width": self.width,
            "length": self.length,
            "depth": self.depth,
            "weight": self.weight,
            "primaryLanguage": self.primary_language,
            "isMultilingual": self.is_multilingual,
            "languageCount": self.language_count,
            "dimensions": self.dimensions,
            "weightInfo": self.weight_info,
        }


@dataclass
class GameMetadata:
    """
    Full metadata for one BGG game id.

    Scalar fields are None when BGG omits them. Records are replaced
    wholesale on refetch, never patched field by field.
    """
    id: str
    name: str
    type: str = GameType.BOARDGAME.value
    year_published: Optional[str] = None
    min_players: Optional[str] = None
    max_players: Optional[str] = None
    playing_time: Optional[str] = None
    min_age: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    image: Optional[str] = None
    average: Optional[str] = None
    bayes_average: Optional[str] = None
    weight: Optional[str] = None
    rank: Optional[str] = None
    mechanics: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    designers: List[str] = field(default_factory=list)
    alternate_names: List[str] = field(default_factory=list)
    versions: List[GameVersion] = field(default_factory=list)
    has_inbound_expansion_link: bool = False
    inbound_expansion_links: List[Dict[str, str]] = field(default_factory=list)

    @property
    def is_expansion(self) -> bool:
        return classify_is_expansion(self.type, self.has_inbound_expansion_link)

    @property
    def bgg_link(self) -> str:
        return bgg_link(self.id)


@dataclass
class SearchItem:
    """Lightweight match returned by the BGG search endpoint (no stats, no images)."""
    id: str
    name: str
    type: str = GameType.BOARDGAME.value
    year_published: Optional[str] = None
    thumbnail: Optional[str] = None
    image: Optional[str] = None

    @property
    def is_expansion(self) -> bool:
        return self.type == GameType.EXPANSION.value
