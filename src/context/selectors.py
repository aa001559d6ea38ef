"""
src/context/selectors.py

Cheap text checks run on the user's message before any model call.
"""


import re
from typing import Optional


PRICING_KEYWORDS = ("price", "cost", "pricing", "hourly", "per hour", "compare", "cheapest", "rate")

REGION_QUESTION = "Which region should I use?"

# Tried in this order: us-east-1 style, Azure named regions, us-central1 style
AWS_REGION_RE = re.compile(r"\b[a-z]{2}-[a-z]+-\d\b", re.IGNORECASE)
AZURE_REGION_RE = re.compile(
    r"\b(eastus2?|westus2?|centralus|northcentralus|southcentralus|westcentralus|westeurope|northeurope"
    r"|southeastasia|eastasia|uksouth|ukwest|australiaeast|australiasoutheast|brazilsouth|canadacentral"
    r"|canadaeast|francecentral|germanywestcentral|japaneast|japanwest|koreacentral|koreasouth|southindia"
    r"|westindia|centralindia|southafricanorth|uaenorth)\b",
    re.IGNORECASE,
)
GCP_REGION_RE = re.compile(r"\b[a-z]{2,}-[a-z]+\d\b", re.IGNORECASE)


def requires_pricing(message: str) -> bool:
    """Substring match, so 'rate' also fires on words like 'separate'."""

    lower = message.lower()

    return any(keyword in lower for keyword in PRICING_KEYWORDS)


def extract_region(message: str) -> Optional[str]:

    match = AWS_REGION_RE.search(message)
    if match:
        return match.group(0)

    match = AZURE_REGION_RE.search(message)
    if match:
        return match.group(0).lower()

    match = GCP_REGION_RE.search(message)
    if match:
        return match.group(0)

    return None


def extract_provider(message: str) -> Optional[str]:
    """Provider named in free text, or None."""

    lower = message.lower()
    if "aws" in lower or "ec2" in lower:
        return "aws"
    if "azure" in lower:
        return "azure"
    if "gcp" in lower or "google" in lower:
        return "gcp"

    return None


def build_clarifying_question(message: str) -> Optional[str]:
    """
    The region question when the message asks about prices but names no region;
    None when the turn can go ahead.
    """

    if not requires_pricing(message):
        return None

    if extract_region(message) is None:
        return REGION_QUESTION

    return None
