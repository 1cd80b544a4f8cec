"""Map codename -> display name lookup.

The API reports internal map codenames; unknown codenames pass through.
"""

from typing import Optional

MAP_DISPLAY_NAMES: dict[str, str] = {
    "Baltic_Main": "Erangel",
    "Erangel_Main": "Erangel",
    "Desert_Main": "Miramar",
    "Savage_Main": "Sanhok",
    "DihorOtok_Main": "Vikendi",
    "Summerland_Main": "Karakin",
    "Chimera_Main": "Paramo",
    "Heaven_Main": "Haven",
    "Tiger_Main": "Taego",
    "Kiki_Main": "Deston",
    "Neon_Main": "Rondo",
    "Range_Main": "Camp Jackal",
}


def normalize_map_name(map_name: Optional[str]) -> Optional[str]:
    """Translate a map codename; blank input yields None."""
    cleaned = str(map_name or "").strip()
    if not cleaned:
        return None
    return MAP_DISPLAY_NAMES.get(cleaned, cleaned)
