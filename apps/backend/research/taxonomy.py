"""Localized discovery tables: seller types, regions and languages."""

from __future__ import annotations

import re
from typing import Dict, List

DEFAULT_SELLER_TYPE = "poster_dealer"
DEFAULT_LANGUAGE = "en"

# [seller type][language] -> search template with a {region} placeholder
DISCOVERY_TEMPLATES: Dict[str, Dict[str, str]] = {
    "poster_dealer": {
        "en": "vintage poster dealers {region}",
        "fr": "marchands d'affiches anciennes {region}",
        "de": "Vintage Plakat Händler {region}",
        "it": "commercianti di manifesti d'epoca {region}",
        "es": "distribuidores de carteles vintage {region}",
        "nl": "vintage poster handelaren {region}",
        "ja": "ヴィンテージポスター ディーラー {region}",
        "zh": "复古海报经销商 {region}",
    },
    "auction_house": {
        "en": "auction house vintage posters prints {region}",
        "fr": "maison de vente aux enchères affiches {region}",
        "de": "Auktionshaus Plakate Drucke {region}",
        "it": "casa d'aste manifesti stampe {region}",
        "es": "casa de subastas carteles grabados {region}",
        "nl": "veilinghuis posters prenten {region}",
        "ja": "オークションハウス ポスター 版画 {region}",
        "zh": "拍卖行 海报 版画 {region}",
    },
    "print_dealer": {
        "en": "antique print dealers {region}",
        "fr": "marchands d'estampes anciennes {region}",
        "de": "Antiquarische Drucke Händler {region}",
        "it": "commercianti stampe antiche {region}",
        "es": "distribuidores de grabados antiguos {region}",
        "nl": "antieke prenten handelaren {region}",
        "ja": "アンティークプリント ディーラー {region}",
        "zh": "古董版画经销商 {region}",
    },
    "book_dealer": {
        "en": "antiquarian book dealers rare books {region}",
        "fr": "libraires antiquaires livres rares {region}",
        "de": "Antiquarische Buchhandlung seltene Bücher {region}",
        "it": "librai antiquari libri rari {region}",
        "es": "libreros anticuarios libros raros {region}",
        "nl": "antiquariaat zeldzame boeken {region}",
        "ja": "古書店 稀覯本 {region}",
        "zh": "古董书商 珍本书籍 {region}",
    },
    "gallery": {
        "en": "vintage art gallery posters prints {region}",
        "fr": "galerie d'art affiches estampes {region}",
        "de": "Kunstgalerie Plakate Drucke {region}",
        "it": "galleria d'arte manifesti stampe {region}",
        "es": "galería de arte carteles grabados {region}",
        "nl": "kunstgalerie posters prenten {region}",
        "ja": "アートギャラリー ポスター 版画 {region}",
        "zh": "艺术画廊 海报 版画 {region}",
    },
    "map_dealer": {
        "en": "antique map dealers {region}",
        "fr": "marchands de cartes anciennes {region}",
        "de": "Antike Landkarten Händler {region}",
        "it": "commercianti mappe antiche {region}",
        "es": "distribuidores de mapas antiguos {region}",
        "nl": "antieke kaarten handelaren {region}",
        "ja": "アンティーク地図 ディーラー {region}",
        "zh": "古董地图经销商 {region}",
    },
}

REGION_NAMES: Dict[str, Dict[str, str]] = {
    "france": {"en": "France", "fr": "France", "de": "Frankreich", "it": "Francia", "es": "Francia"},
    "germany": {"en": "Germany", "fr": "Allemagne", "de": "Deutschland", "it": "Germania", "es": "Alemania"},
    "italy": {"en": "Italy", "fr": "Italie", "de": "Italien", "it": "Italia", "es": "Italia"},
    "spain": {"en": "Spain", "fr": "Espagne", "de": "Spanien", "it": "Spagna", "es": "España"},
    "uk": {
        "en": "United Kingdom",
        "fr": "Royaume-Uni",
        "de": "Vereinigtes Königreich",
        "it": "Regno Unito",
        "es": "Reino Unido",
    },
    "netherlands": {"en": "Netherlands", "fr": "Pays-Bas", "de": "Niederlande", "it": "Paesi Bassi", "es": "Países Bajos"},
    "japan": {"en": "Japan", "fr": "Japon", "de": "Japan", "it": "Giappone", "es": "Japón", "ja": "日本"},
    "usa": {
        "en": "United States",
        "fr": "États-Unis",
        "de": "Vereinigte Staaten",
        "it": "Stati Uniti",
        "es": "Estados Unidos",
    },
    "switzerland": {"en": "Switzerland", "fr": "Suisse", "de": "Schweiz", "it": "Svizzera", "es": "Suiza"},
    "belgium": {"en": "Belgium", "fr": "Belgique", "de": "Belgien", "it": "Belgio", "es": "Bélgica"},
    "austria": {"en": "Austria", "fr": "Autriche", "de": "Österreich", "it": "Austria", "es": "Austria"},
}

LANGUAGES: Dict[str, str] = {
    "en": "English",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "es": "Spanish",
    "nl": "Dutch",
    "ja": "Japanese",
    "zh": "Chinese",
}

_REGION_GROUPS: Dict[str, List[str]] = {
    "North America": ["usa", "canada", "mexico"],
    "Europe": ["france", "germany", "italy", "spain", "uk", "netherlands", "switzerland", "belgium", "austria"],
    "Asia": ["japan", "china", "korea"],
}

# Seller types the extractor may assign to a discovered business
SUGGESTION_SELLER_TYPES = (
    "auction_house",
    "poster_dealer",
    "book_dealer",
    "print_dealer",
    "map_dealer",
    "ephemera_dealer",
    "photography_dealer",
    "gallery",
    "marketplace",
    "aggregator",
    "museum",
)


def normalize_key(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", (value or "").strip().lower()).strip("_")


def seller_type_label(seller_type: str) -> str:
    return " ".join(word.capitalize() for word in normalize_key(seller_type).split("_") if word)


def resolve_region_name(region: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Display name for `region` in `language`, else English, else the raw input."""
    names = REGION_NAMES.get((region or "").strip().lower())
    if not names:
        return region
    return names.get(language) or names.get(DEFAULT_LANGUAGE) or region


def resolve_template(seller_type: str, language: str = DEFAULT_LANGUAGE) -> str:
    templates = DISCOVERY_TEMPLATES.get(normalize_key(seller_type)) or DISCOVERY_TEMPLATES[DEFAULT_SELLER_TYPE]
    return templates.get(language) or templates[DEFAULT_LANGUAGE]


def region_category(region: str) -> str:
    key = (region or "").strip().lower()
    for category, members in _REGION_GROUPS.items():
        if key in members:
            return category
    return "Global"


def available_regions() -> List[Dict[str, str]]:
    return [{"value": key, "label": names["en"]} for key, names in REGION_NAMES.items()]


def available_seller_types() -> List[Dict[str, str]]:
    return [{"value": key, "label": seller_type_label(key)} for key in DISCOVERY_TEMPLATES]


def available_languages() -> List[Dict[str, str]]:
    return [{"value": code, "label": label} for code, label in LANGUAGES.items()]
