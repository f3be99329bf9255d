# prism/merge_agent/themes.py
# Created: 2026-10-16
# Purpose: Thematic connection between two frameworks, plus phrasing helpers

"""
Thematic Connection Resolver.

Priority order:
    1. Known framework pairings (either order)
    2. First shared topical keyword found in both descriptions
    3. Default themes keyed by "A-B" abbreviations (either order)
    4. Generic connection
"""

from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence

from prism.merge_agent.question_models import FrameworkPair


KNOWN_CONNECTIONS: Dict[str, Dict[str, str]] = {
    "TCFD": {
        "GRI Standards": "climate transparency and environmental reporting",
        "Science Based Targets": "science-based climate action and risk disclosure",
        "EU CSRD": "climate-related financial and sustainability disclosures",
        "SASB": "industry-specific climate risk assessment and disclosure",
    },
    "GRI Standards": {
        "SASB": "comprehensive sustainability reporting and material ESG disclosure",
        "UN Global Compact": "global sustainability principles and comprehensive reporting",
        "B Corp Assessment": "transparency in sustainability performance and stakeholder impact",
        "EU CSRD": "comprehensive sustainability reporting across global frameworks",
    },
    "Integrated Reporting": {
        "IIRC Framework": "holistic value creation and integrated thinking",
        "SASB": "material financial and non-financial information integration",
        "GRI Standards": "comprehensive and strategic sustainability disclosure",
    },
    "IFC Listed Companies": {
        "SASB": "robust governance and material risk disclosure",
        "UN Global Compact": "governance structures and ethical business principles",
    },
}

DESCRIPTION_KEYWORDS = (
    "governance", "climate", "environmental", "social", "transparency",
    "sustainability", "disclosure", "reporting", "risk", "stakeholder",
    "value", "strategy", "performance", "impact", "ethical",
)

DEFAULT_THEMES: Dict[str, str] = {
    "TCFD-GRI": "climate disclosure and sustainability reporting",
    "SASB-GRI": "material sustainability reporting",
    "UNGC-ISO26000": "social responsibility principles",
    "CSRD-IIRC": "integrated sustainability disclosure",
    "SBT-TCFD": "science-based climate action",
    "BCORP-SDG": "impact measurement and sustainable development",
    "ISO26000-UNGC": "ethical business practices and social responsibility",
}

GENERIC_THEME = "sustainability compliance and strategic performance"

GENERIC_CONNECTORS = (
    "across frameworks",
    "in your reporting",
    "in practice",
    "effectively",
    "in your organization",
    "in sustainability reporting",
    "for stakeholders",
    "for compliance",
)


def resolve_theme(
    framework_a: str,
    framework_b: str,
    desc_a: Optional[str] = None,
    desc_b: Optional[str] = None,
) -> str:
    """Short phrase describing why two frameworks relate. Deterministic."""
    known = KNOWN_CONNECTIONS.get(framework_a, {}).get(framework_b)
    if known:
        return known
    known = KNOWN_CONNECTIONS.get(framework_b, {}).get(framework_a)
    if known:
        return known

    if desc_a and desc_b:
        lowered_a, lowered_b = desc_a.lower(), desc_b.lower()
        for keyword in DESCRIPTION_KEYWORDS:
            if keyword in lowered_a and keyword in lowered_b:
                return keyword

    theme = DEFAULT_THEMES.get(f"{framework_a}-{framework_b}") or DEFAULT_THEMES.get(f"{framework_b}-{framework_a}")
    if theme:
        return theme

    return GENERIC_THEME


def build_framework_pairs(
    framework_names: Sequence[str],
    descriptions: Optional[Dict[str, str]] = None,
) -> List[FrameworkPair]:
    """One FrameworkPair per unordered pair (i < j), in selection order."""
    descriptions = descriptions or {}
    pairs: List[FrameworkPair] = []
    for i, name_a in enumerate(framework_names):
        for name_b in framework_names[i + 1:]:
            pairs.append(FrameworkPair(
                framework_a=name_a,
                framework_b=name_b,
                thematic_connection=resolve_theme(
                    name_a, name_b, descriptions.get(name_a), descriptions.get(name_b)
                ),
            ))
    return pairs


def contextual_connector(theme: Optional[str], rng: random.Random) -> str:
    """Random connecting phrase, themed when a connection is known."""
    if theme:
        options = (
            f"for {theme}",
            f"in {theme} context",
            f"regarding {theme}",
            f"for {theme} purposes",
            f"in {theme} reporting",
        )
        return rng.choice(options)
    return rng.choice(GENERIC_CONNECTORS)


__all__ = [
    "KNOWN_CONNECTIONS",
    "DEFAULT_THEMES",
    "GENERIC_THEME",
    "resolve_theme",
    "build_framework_pairs",
    "contextual_connector",
]
