"""
Shared fixtures: a recording fake of the BGG transport client, XML builders
and a controllable clock.
"""
import pytest

from app.cache import CacheManager


def version_xml(version_id, name, language, year="2015", width="12", length="12", depth="3", weight="2.8"):
    return f"""
        <item type="boardgameversion" id="{version_id}">
            <name type="primary" sortindex="1" value="{name}" />
            <link type="language" id="1" value="{language}" />
            <link type="boardgamepublisher" id="37" value="KOSMOS" />
            <yearpublished value="{year}" />
            <productcode value="PC-{version_id}" />
            <width value="{width}" />
            <length value="{length}" />
            <depth value="{depth}" />
            <weight value="{weight}" />
        </item>"""


def game_xml(
    game_id,
    name,
    item_type="boardgame",
    year="1995",
    rank="400",
    bayes="7.0",
    alternate_names=(),
    inbound_expansion_of=None,
    versions=(),
):
    alternates = "".join(
        f'<name type="alternate" sortindex="1" value="{alt}" />' for alt in alternate_names
    )
    inbound = ""
    if inbound_expansion_of:
        inbound = (
            f'<link type="boardgameexpansion" id="{inbound_expansion_of}" '
            f'value="Base Game" inbound="true" />'
        )
    versions_block = f"<versions>{''.join(versions)}</versions>" if versions else ""
    return f"""
    <item type="{item_type}" id="{game_id}">
        <thumbnail>https://cf.geekdo-images.com/{game_id}_t.jpg</thumbnail>
        <image>https://cf.geekdo-images.com/{game_id}.jpg</image>
        <name type="primary" sortindex="1" value="{name}" />
        {alternates}
        <description>A game about trading &amp;amp; building.</description>
        <yearpublished value="{year}" />
        <minplayers value="3" />
        <maxplayers value="4" />
        <playingtime value="120" />
        <minage value="10" />
        <link type="boardgamecategory" id="1021" value="Economic" />
        <link type="boardgamemechanic" id="2072" value="Dice Rolling" />
        <link type="boardgamemechanic" id="2072" value="Dice Rolling" />
        <link type="boardgamedesigner" id="11" value="Klaus Teuber" />
        {inbound}
        {versions_block}
        <statistics page="1">
            <ratings>
                <average value="7.1" />
                <bayesaverage value="{bayes}" />
                <ranks>
                    <rank type="subtype" id="1" name="boardgame" friendlyname="Board Game Rank" value="{rank}" bayesaverage="{bayes}" />
                </ranks>
                <averageweight value="2.3" />
            </ratings>
        </statistics>
    </item>"""


def items_xml(fragments):
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<items termsofuse="https://boardgamegeek.com/xmlapi/termsofuse">'
        + "".join(fragments)
        + "</items>"
    )


def search_item_xml(game_id, name, item_type="boardgame", year="1995"):
    return (
        f'<item type="{item_type}" id="{game_id}">'
        f'<name type="primary" value="{name}" />'
        f'<yearpublished value="{year}" />'
        f"</item>"
    )


CATAN_XML = game_xml(
    "13",
    "CATAN",
    rank="500",
    bayes="6.9",
    alternate_names=("Die Siedler von Catan: Jubiläum", "Los Colonos de Catán"),
    versions=(
        version_xml("1001", "German first edition", "German", year="1995"),
        version_xml("1002", "English edition", "English"),
    ),
)
PANDEMIC_LEGACY_XML = game_xml("161936", "Pandemic Legacy: Season 1", year="2015", rank="2", bayes="8.5")
SEAFARERS_XML = game_xml("325", "CATAN: Seafarers", item_type="boardgameexpansion", year="1997", rank="0")
LINKED_EXPANSION_XML = game_xml("5000", "Catan Scenario Pack", inbound_expansion_of="13", rank="Not Ranked")

DEFAULT_GAMES = {
    "13": CATAN_XML,
    "161936": PANDEMIC_LEGACY_XML,
    "325": SEAFARERS_XML,
    "5000": LINKED_EXPANSION_XML,
}

DEFAULT_SEARCH = [
    search_item_xml("13", "CATAN"),
    search_item_xml("325", "CATAN: Seafarers", item_type="boardgameexpansion", year="1997"),
    search_item_xml("5000", "Catan Scenario Pack", year="2003"),
    search_item_xml("27710", "Catan Dice Game", year="2007"),
]


class FakeBGGClient:
    """
    Stands in for BGGClient. Records every call and answers from canned XML.

    Set ``error`` to make every call raise it.
    """

    def __init__(self, games=None, search_items=None):
        self.games = dict(DEFAULT_GAMES if games is None else games)
        self.search_items = list(DEFAULT_SEARCH if search_items is None else search_items)
        self.calls = []
        self.error = None

    def _record(self, *call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    def search_games(self, query, game_type="boardgame", exact=False):
        self._record("search_games", query, game_type, exact)
        return items_xml(self.search_items)

    def get_game_details(self, game_id):
        self._record("get_game_details", game_id)
        return items_xml([self.games[game_id]] if game_id in self.games else [])

    def get_batch_metadata(self, game_ids):
        self._record("get_batch_metadata", list(game_ids))
        return items_xml([self.games[game_id] for game_id in game_ids if game_id in self.games])

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_client():
    return FakeBGGClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheManager(clock=clock)
