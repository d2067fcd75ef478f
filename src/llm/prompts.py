"""
Prompt templates for match explanations.
"""

import json
from typing import Any

SYSTEM_PROMPT = (
    "You are a helpful assistant for real estate matching. "
    "Always respond with the exact format requested - no additional text."
)

# Fields the model is asked to check explicitly
CHECKED_FIELDS = (
    "Type",
    "Bedrooms",
    "Price (can be single value or range, match if within range)",
    "Neighborhood",
    "Amenities",
    "Style",
    "Floor",
    "Move-in Date",
    "Parking",
    "Public Transport",
    "Safety",
    "Pets",
    "View",
    "Lease Capacity",
    "Roommates",
)

USER_PROMPT_TEMPLATE = """You are an AI assistant helping users compare apartment listings with their preferences.

Your task:
1. Identify the features that match exactly between the user preference and apartment listing.
2. Identify the features that differ or are missing.
3. Identify bonus features that exceed user preferences (more amenities, better view, higher floor, larger sqft).
4. Return a short explanation with:
  ✅ Matched = Exactly as user requested
  ❌ Mismatched = Clearly missing or different
  💎 Bonus = Better than requested (extra features, upgrades)
  🟡 Partial Match = Some overlap, unclear or softer difference. A field never appears in both ❌ and 🟡.

Always check the following fields specifically:
{fields}

Format your output like this (strictly!):
✅ Matches in: A, B, C
❌ Missing: D, E
💎 Bonus features: X, Y
🟡 Partial Match: P, Q

Keep it short and clean: no paragraphs, no preamble, no metadata, no extra notes.

User Preferences:
{preference}

Apartment Listing:
{listing}
"""


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def build_user_prompt(pref: dict, listing: dict) -> str:
    """
    Build the user message comparing one preference with one listing.

    Args:
        pref: Preference dict
        listing: Listing dict

    Returns:
        Prompt text
    """
    return USER_PROMPT_TEMPLATE.format(
        fields="\n".join(f"- {field}" for field in CHECKED_FIELDS),
        preference=_to_json(pref),
        listing=_to_json(listing),
    )
