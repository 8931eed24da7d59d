"""Section catalog: canonical ids, titles, header patterns and keyword signals.

The catalog is a plain rule table. Detector and cleaner read it; nothing mutates it.
"""

from __future__ import annotations

from typing import Dict, Tuple

from src.exceptions import UnknownSectionError
from src.models.document import SectionDefinition


def _headers(*titles: str) -> Tuple[str, ...]:
    patterns = []
    for title in titles:
        patterns.extend([f"## {title}", f"**{title}**", f"# {title}"])
    return tuple(patterns)


SECTION_CATALOG: Tuple[SectionDefinition, ...] = (
    SectionDefinition(
        id="executive_summary",
        title="Executive Summary",
        header_patterns=_headers("Executive Summary"),
        keywords=(
            "executive summary",
            "overview",
            "mission statement",
            "company vision",
            "key objectives",
            "business goals",
        ),
    ),
    SectionDefinition(
        id="business_description",
        title="Business Description",
        header_patterns=_headers("Business Description", "Company Description"),
        keywords=(
            "business description",
            "company description",
            "what we do",
            "business model",
            "company history",
        ),
    ),
    SectionDefinition(
        id="market_analysis",
        title="Market Analysis",
        header_patterns=_headers("Market Analysis"),
        keywords=(
            "market analysis",
            "target market",
            "market size",
            "competition",
            "competitors",
            "market research",
            "customer demographics",
        ),
    ),
    SectionDefinition(
        id="products_services",
        title="Products & Services",
        header_patterns=_headers("Products & Services", "Products and Services"),
        keywords=(
            "products",
            "services",
            "offerings",
            "features",
            "benefits",
            "product development",
        ),
    ),
    SectionDefinition(
        id="marketing_plan",
        title="Marketing Plan",
        header_patterns=_headers("Marketing Plan"),
        keywords=(
            "marketing plan",
            "marketing strategy",
            "promotion",
            "advertising",
            "customer acquisition",
        ),
    ),
    SectionDefinition(
        id="operations_plan",
        title="Operations Plan",
        header_patterns=_headers("Operations Plan"),
        keywords=(
            "operations",
            "operational plan",
            "processes",
            "staffing",
            "suppliers",
            "location",
        ),
    ),
    SectionDefinition(
        id="funding_request",
        title="Funding Request",
        header_patterns=_headers("Funding Request"),
        keywords=(
            "funding",
            "investment",
            "capital",
            "loan",
            "financing",
            "investor",
        ),
    ),
    SectionDefinition(
        id="financial_projections",
        title="Financial Projections",
        header_patterns=_headers("Financial Projections"),
        keywords=(
            "financial projections",
            "revenue",
            "profit",
            "cash flow",
            "budget",
            "financial forecast",
        ),
    ),
    SectionDefinition(
        id="owner_bio",
        title="Owner Bio",
        header_patterns=_headers("Owner Bio", "Management Team"),
        keywords=(
            "owner bio",
            "management team",
            "leadership",
            "background",
            "experience",
        ),
    ),
)

SECTION_IDS: Tuple[str, ...] = tuple(definition.id for definition in SECTION_CATALOG)

_BY_ID: Dict[str, SectionDefinition] = {definition.id: definition for definition in SECTION_CATALOG}


def get_definition(section_id: str) -> SectionDefinition:
    try:
        return _BY_ID[section_id]
    except KeyError:
        raise UnknownSectionError(section_id) from None


def is_known_section(section_id: str) -> bool:
    return section_id in _BY_ID


def section_title(section_id: str) -> str:
    return get_definition(section_id).title
