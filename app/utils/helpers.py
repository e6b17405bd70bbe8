"""
Utility helper functions for safe data handling and unit conversion.
"""
import re
from typing import Any, Dict, Optional

_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


def safe_str(value: Any, default: str = "") -> str:
    """
    Safely convert value to string, handling None.

    Args:
        value: Any value to convert
        default: Default string if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value)


def safe_lower(value: Any) -> str:
    """
    Safely lowercase a value, handling None.

    Args:
        value: Any value to lowercase

    Returns:
        Lowercased string or empty string if None
    """
    if value is None:
        return ""
    return str(value).lower()


def safe_strip(value: Any) -> str:
    """
    Safely strip whitespace from a value, handling None.

    Args:
        value: Any value to strip

    Returns:
        Stripped string or empty string if None
    """
    if value is None:
        return ""
    return str(value).strip()


def safe_int(value: Any, default: int = 0) -> int:
    """
    Safely convert value to int, handling None and invalid values.

    Args:
        value: Any value to convert
        default: Default int if conversion fails

    Returns:
        Integer or default
    """
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert value to float, handling None and invalid values."""
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


# =============================================================================
# Unit conversion (BGG reports version dimensions in inches and pounds)
# =============================================================================

def inches_to_cm(inches: float) -> float:
    return round(inches * 2.54, 1)


def lbs_to_kg(pounds: float) -> float:
    return round(pounds * 0.453592, 1)


def _leading_number(text: str) -> Optional[float]:
    """First number in a string; zero counts as missing (BGG's 'unknown')."""
    match = _NUMBER_RE.search(text or "")
    if not match:
        return None
    value = float(match.group(1))
    return value if value > 0 else None


def _format_number(value: float) -> str:
    return f"{value:g}"


def convert_dimension(text: str) -> Dict[str, Any]:
    """
    Parse one dimension and convert it to centimeters.

    Values that already carry a metric unit are passed through.
    """
    value = _leading_number(text)
    if value is None:
        return {"imperial": "", "metric": "", "rawValue": None}

    lowered = text.lower()
    if "cm" in lowered or "mm" in lowered:
        return {"imperial": text, "metric": text, "rawValue": value}

    return {
        "imperial": f'{_format_number(value)}"',
        "metric": f"{_format_number(inches_to_cm(value))} cm",
        "rawValue": value,
    }


def convert_weight(text: str) -> Dict[str, Any]:
    """Parse a weight and convert it to kilograms."""
    value = _leading_number(text)
    if value is None:
        return {"imperial": "", "metric": "", "rawValue": None}

    lowered = text.lower()
    if "kg" in lowered or lowered.rstrip().endswith("g"):
        return {"imperial": text, "metric": text, "rawValue": value}

    return {
        "imperial": f"{_format_number(value)} lbs",
        "metric": f"{_format_number(lbs_to_kg(value))} kg",
        "rawValue": value,
    }


def format_dimensions(width: str, length: str, depth: str) -> Dict[str, Any]:
    """
    Format box dimensions for display, e.g. ``W: 29.8 cm × L: 29.8 cm``.

    Missing sides are skipped; ``hasDimensions`` is False when all are missing.
    """
    imperial_parts = []
    metric_parts = []
    for label, raw in (("W", width), ("L", length), ("D", depth)):
        converted = convert_dimension(raw)
        if converted["rawValue"] is None:
            continue
        imperial_parts.append(f"{label}: {converted['imperial']}")
        metric_parts.append(f"{label}: {converted['metric']}")

    return {
        "imperial": " × ".join(imperial_parts),
        "metric": " × ".join(metric_parts),
        "hasDimensions": bool(metric_parts),
    }
