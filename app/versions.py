"""
Match game versions to the alternate name printed on that edition's box.

A German edition of CATAN should be listed as "Die Siedler von Catan", not
"CATAN". Matching uses the version's declared language and the characters
each alternate name contains. Low-confidence matches fall back to the
primary game name.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.models import GameMetadata, GameVersion

logger = logging.getLogger(__name__)

# Characters that identify a language; a name containing any of them is
# considered written in that language.
LANGUAGE_CHARACTERS: Dict[str, str] = {
    "German": "äöüßÄÖÜ",
    "French": "àâäéèêëïîôùûüÿçÀÂÄÉÈÊËÏÎÔÙÛÜŸÇ",
    "Spanish": "áéíóúñüÁÉÍÓÚÑÜ¿¡",
    "Italian": "àèéìíîòóùúÀÈÉÌÍÎÒÓÙÚ",
    "Portuguese": "ãõçáéíóúâêôàÃÕÇÁÉÍÓÚÂÊÔÀ",
    "Dutch": "ëïéèËÏÉÈ",
    "Swedish": "åäöÅÄÖ",
    "Norwegian": "åæøÅÆØ",
    "Danish": "åæøÅÆØ",
    "Polish": "ąćęłńóśźżĄĆĘŁŃÓŚŹŻ",
    "Czech": "áčďéěíňóřšťúůýžÁČĎÉĚÍŇÓŘŠŤÚŮÝŽ",
    "Slovak": "áäčďéíĺľňóôŕšťúýžÁÄČĎÉÍĹĽŇÓÔŔŠŤÚÝŽ",
    "Hungarian": "áéíóöőúüűÁÉÍÓÖŐÚÜŰ",
    "Romanian": "ăâîșțĂÂÎȘȚ",
    "Latvian": "āčēģīķļņšūžĀČĒĢĪĶĻŅŠŪŽ",
    "Lithuanian": "ąčęėįšųūžĄČĘĖĮŠŲŪŽ",
    "Estonian": "äöüõšžÄÖÜÕŠŽ",
}

# Script ranges for languages that do not use the Latin alphabet
LANGUAGE_SCRIPTS: Dict[str, str] = {
    "Chinese": r"[\u4e00-\u9fff]",
    "Japanese": r"[\u3040-\u30ff]",
    "Korean": r"[\uac00-\ud7af]",
    "Russian": r"[Ѐ-ӿ]",
    "Ukrainian": r"[Ѐ-ӿ]",
    "Bulgarian": r"[Ѐ-ӿ]",
}

ENGLISH = "English"
EXACT_CONFIDENCE = 0.9
MIN_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 0.1
PARTIAL_BASE_CONFIDENCE = 0.3
PARTIAL_LANGUAGE_BONUS = 0.2


@dataclass
class LanguageMatchedVersion:
    """A version plus the name it should be listed under."""
    version: GameVersion
    language_match: str = "none"  # "exact" | "partial" | "none"
    confidence: float = 0.0
    reasoning: str = "No language match found"
    suggested_alternate_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version.to_dict(),
            "suggestedAlternateName": self.suggested_alternate_name,
            "languageMatch": self.language_match,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


def name_matches_language(name: str, language: str) -> bool:
    """True if the name contains characters specific to the language."""
    if language in LANGUAGE_SCRIPTS:
        return re.search(LANGUAGE_SCRIPTS[language], name) is not None
    characters = LANGUAGE_CHARACTERS.get(language)
    if not characters:
        return False
    return any(char in characters for char in name)


def _fallback(result: LanguageMatchedVersion, primary_name: Optional[str], reasoning: str) -> LanguageMatchedVersion:
    if primary_name:
        result.suggested_alternate_name = primary_name
        result.language_match = "none"
        result.confidence = FALLBACK_CONFIDENCE
        result.reasoning = reasoning
    return result


def match_version(
    version: GameVersion,
    alternate_names: List[str],
    primary_name: Optional[str] = None,
    total_versions: int = 1,
) -> LanguageMatchedVersion:
    """
    Pick the display name for one version.

    Args:
        version: The version to label
        alternate_names: All alternate names of the game
        primary_name: The game's primary name, used as fallback
        total_versions: Number of versions of the game

    Returns:
        LanguageMatchedVersion with the suggested name and its confidence
    """
    result = LanguageMatchedVersion(version=version)
    language = version.primary_language

    if total_versions == 1 and primary_name:
        return _fallback(result, primary_name, "Single version - using primary game name")

    if not language or not alternate_names:
        return _fallback(result, primary_name, "Fallback to primary game name (no language info)")

    if language == ENGLISH and primary_name:
        return _fallback(result, primary_name, "English version - using primary game name")

    exact = [name for name in alternate_names if name_matches_language(name, language)]
    if exact:
        result.suggested_alternate_name = exact[0]
        result.language_match = "exact"
        result.confidence = EXACT_CONFIDENCE
        result.reasoning = f"Exact {language} language match found"
        return result

    if version.is_multilingual:
        partial = []
        for name in alternate_names:
            confidence = PARTIAL_BASE_CONFIDENCE
            if any(lang.lower() in name.lower() for lang in version.languages):
                confidence += PARTIAL_LANGUAGE_BONUS
            partial.append((confidence, name))
        partial.sort(key=lambda pair: pair[0], reverse=True)
        best_confidence, best_name = partial[0]
        if best_confidence < MIN_CONFIDENCE and primary_name:
            return _fallback(
                result,
                primary_name,
                f"Low confidence partial match ({best_confidence * 100:.0f}%) - using primary game name",
            )
        result.suggested_alternate_name = best_name
        result.language_match = "partial"
        result.confidence = best_confidence
        result.reasoning = f"Partial language match in {language} version"
        return result

    if primary_name:
        return _fallback(result, primary_name, "Fallback to primary game name (no language match)")

    result.suggested_alternate_name = alternate_names[0]
    result.confidence = 0.05
    result.reasoning = "Fallback to first alternate name (no primary name available)"
    return result


def match_versions(record: GameMetadata) -> List[LanguageMatchedVersion]:
    """Language-match every version of a game, best confidence first."""
    versions = record.versions or []
    if not versions:
        logger.info(f"No versions found for game: {record.id}")
        return []

    matched = [
        match_version(version, record.alternate_names, record.name, len(versions))
        for version in versions
    ]
    matched.sort(key=lambda item: item.confidence, reverse=True)
    return matched
