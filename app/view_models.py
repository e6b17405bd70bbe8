"""
View Models for API Responses
Strict mapping layer that converts parsed BGG records into the payloads the
marketplace front end consumes. Handlers return these payloads, never the
raw records, so record changes do not leak into the response contract.
"""
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from app.models import GameMetadata, GameType, SearchItem, bgg_link
from app.utils.helpers import safe_str


# =============================================================================
# PAYLOAD CONTRACTS
# =============================================================================
# These contracts define the EXACT shape the front end expects. Field names
# follow the BGG XML names the client has always used (yearpublished,
# bayesaverage, ...), so they are not snake_case.


def display_type(is_expansion: bool) -> str:
    """Type reported to callers, derived from the expansion classification."""
    return GameType.EXPANSION.value if is_expansion else GameType.BOARDGAME.value


@dataclass
class GameDetailsPayload:
    """
    Stable payload for a fully resolved game.

    Missing scalars render as empty strings; `type` is the derived type, so
    a game only linked as an expansion is reported as one.
    """
    id: str
    name: str
    yearpublished: str = ""
    minplayers: str = ""
    maxplayers: str = ""
    playingtime: str = ""
    minage: str = ""
    description: str = ""
    thumbnail: str = ""
    image: str = ""
    rating: str = ""
    bayesaverage: str = ""
    weight: str = ""
    rank: str = ""
    mechanics: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    designers: List[str] = field(default_factory=list)
    alternate_names: List[str] = field(default_factory=list)
    versions: List[Dict[str, Any]] = field(default_factory=list)
    type: str = GameType.BOARDGAME.value
    is_expansion: bool = False
    has_inbound_expansion_link: bool = False

    @classmethod
    def from_metadata(cls, record: GameMetadata) -> "GameDetailsPayload":
        """Map a parsed record to the stable payload."""
        is_expansion = record.is_expansion
        return cls(
            id=record.id,
            name=record.name,
            yearpublished=safe_str(record.year_published),
            minplayers=safe_str(record.min_players),
            maxplayers=safe_str(record.max_players),
            playingtime=safe_str(record.playing_time),
            minage=safe_str(record.min_age),
            description=safe_str(record.description),
            thumbnail=safe_str(record.thumbnail),
            image=safe_str(record.image),
            rating=safe_str(record.average),
            bayesaverage=safe_str(record.bayes_average),
            weight=safe_str(record.weight),
            rank=safe_str(record.rank),
            mechanics=list(record.mechanics),
            categories=list(record.categories),
            designers=list(record.designers),
            alternate_names=list(record.alternate_names),
            versions=[version.to_dict() for version in record.versions],
            type=display_type(is_expansion),
            is_expansion=is_expansion,
            has_inbound_expansion_link=record.has_inbound_expansion_link,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "yearpublished": self.yearpublished,
            "minplayers": self.minplayers,
            "maxplayers": self.maxplayers,
            "playingtime": self.playingtime,
            "minage": self.minage,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "image": self.image,
            "rating": self.rating,
            "bayesaverage": self.bayesaverage,
            "weight": self.weight,
            "rank": self.rank,
            "mechanics": self.mechanics,
            "categories": self.categories,
            "designers": self.designers,
            "alternateNames": self.alternate_names,
            "versions": self.versions,
            "type": self.type,
            "isExpansion": self.is_expansion,
            "hasInboundExpansionLink": self.has_inbound_expansion_link,
        }


@dataclass
class SearchResultPayload:
    """
    Stable payload for one search match.

    Built either from a bare search item (no stats, hasMetadata False) or
    from a resolved metadata record.
    """
    id: str
    name: str
    yearpublished: Optional[str] = None
    type: str = GameType.BOARDGAME.value
    thumbnail: str = ""
    image: str = ""
    is_expansion: bool = False
    has_inbound_expansion_link: bool = False
    rank: Optional[str] = None
    bayesaverage: Optional[str] = None
    average: Optional[str] = None
    search_score: float = 0
    has_metadata: bool = False

    @property
    def bgg_link(self) -> str:
        return bgg_link(self.id)

    @classmethod
    def from_search_item(cls, item: SearchItem) -> "SearchResultPayload":
        """Map a bare /search match. Only BGG's own type label is known here."""
        is_expansion = item.is_expansion
        return cls(
            id=item.id,
            name=item.name,
            yearpublished=item.year_published,
            type=display_type(is_expansion),
            thumbnail=safe_str(item.thumbnail),
            image=safe_str(item.image),
            is_expansion=is_expansion,
        )

    @classmethod
    def from_metadata(
        cls,
        record: GameMetadata,
        name: Optional[str] = None,
    ) -> "SearchResultPayload":
        """
        Map a resolved record.

        Args:
            record: Parsed metadata
            name: Name to show instead of the record's primary name (the
                search match name, which may be an alternate name)
        """
        is_expansion = record.is_expansion
        return cls(
            id=record.id,
            name=name or record.name,
            yearpublished=record.year_published,
            type=display_type(is_expansion),
            thumbnail=safe_str(record.thumbnail),
            image=safe_str(record.image),
            is_expansion=is_expansion,
            has_inbound_expansion_link=record.has_inbound_expansion_link,
            rank=record.rank,
            bayesaverage=record.bayes_average,
            average=record.average,
            has_metadata=True,
        )

    @classmethod
    def placeholder(cls, game_id: str) -> "SearchResultPayload":
        """Entry for an id whose metadata could not be fetched."""
        return cls(id=safe_str(game_id), name="Unknown Game", has_metadata=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "yearpublished": self.yearpublished,
            "type": self.type,
            "thumbnail": self.thumbnail,
            "image": self.image,
            "bggLink": self.bgg_link,
            "isExpansion": self.is_expansion,
            "hasInboundExpansionLink": self.has_inbound_expansion_link,
            "rank": self.rank,
            "bayesaverage": self.bayesaverage,
            "average": self.average,
            "searchScore": self.search_score,
            "hasMetadata": self.has_metadata,
        }

    def to_light_dict(self) -> Dict[str, Any]:
        """Reduced shape used by the light search (thumbnails load on demand)."""
        return {
            "id": self.id,
            "name": self.name,
            "yearpublished": self.yearpublished,
            "type": self.type,
            "thumbnail": self.thumbnail,
            "bggLink": self.bgg_link,
            "isExpansion": self.is_expansion,
            "hasInboundExpansionLink": self.has_inbound_expansion_link,
            "hasMetadata": self.has_metadata,
        }


def light_from_cached(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Re-map a cached search entry (either shape) to the light shape."""
    return {
        "id": entry.get("id"),
        "name": entry.get("name"),
        "yearpublished": entry.get("yearpublished"),
        "type": entry.get("type", GameType.BOARDGAME.value),
        "thumbnail": entry.get("thumbnail") or "",
        "bggLink": entry.get("bggLink") or bgg_link(safe_str(entry.get("id"))),
        "isExpansion": bool(entry.get("isExpansion")),
        "hasInboundExpansionLink": bool(entry.get("hasInboundExpansionLink")),
        "hasMetadata": bool(entry.get("hasMetadata")),
    }


def game_details_to_dict(record: GameMetadata) -> Dict[str, Any]:
    return GameDetailsPayload.from_metadata(record).to_dict()
