"""
Survivorship precedence configuration for catalog entity merges.

The resolvers consult these profiles to decide, field by field, whether an
existing Artist/Collection value or the freshly normalized value should win
when a token is re-imported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


SourceTier = str
"""Identifier for a precedence tier (``existing_core`` or ``incoming``)."""


@dataclass(frozen=True)
class FieldRule:
    """
    Survivorship precedence details for a single field.

    Attributes:
        field_name: Target attribute on the Artist/Collection model.
        tier_order: Ordered list of source tiers; earlier entries have higher
            precedence.
        prefer_non_null: When true, null/blank values lose to non-null values
            even if they originate from a higher tier.
    """

    field_name: str
    tier_order: Sequence[SourceTier]
    prefer_non_null: bool = True


@dataclass(frozen=True)
class FieldGroup:
    """Group of related fields that share precedence behavior."""

    name: str
    display_name: str
    fields: Sequence[FieldRule]


@dataclass(frozen=True)
class SurvivorshipProfile:
    key: str
    label: str
    description: str
    field_groups: Sequence[FieldGroup]

    def find_rule(self, field_name: str) -> FieldRule | None:
        for group in self.field_groups:
            for rule in group.fields:
                if rule.field_name == field_name:
                    return rule
        return None

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(rule.field_name for group in self.field_groups for rule in group.fields)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

FILL_ONLY_TIER_ORDER: tuple[SourceTier, ...] = ("existing_core", "incoming")
REFRESH_TIER_ORDER: tuple[SourceTier, ...] = ("incoming", "existing_core")

ARTIST_PROFILE = SurvivorshipProfile(
    key="artist",
    label="Artist fill-only",
    description="Stored artist values are kept; incoming values only fill fields that are empty.",
    field_groups=(
        FieldGroup(
            "identity",
            "Identity",
            (
                FieldRule("username", FILL_ONLY_TIER_ORDER),
                FieldRule("display_name", FILL_ONLY_TIER_ORDER),
                FieldRule("ens_name", FILL_ONLY_TIER_ORDER),
            ),
        ),
        FieldGroup(
            "profile",
            "Profile",
            (
                FieldRule("bio", FILL_ONLY_TIER_ORDER),
                FieldRule("avatar_url", FILL_ONLY_TIER_ORDER),
                FieldRule("profile_url", FILL_ONLY_TIER_ORDER),
                FieldRule("website_url", FILL_ONLY_TIER_ORDER),
                FieldRule("twitter_handle", FILL_ONLY_TIER_ORDER),
                FieldRule("instagram_handle", FILL_ONLY_TIER_ORDER),
                FieldRule("resolution_source", FILL_ONLY_TIER_ORDER),
            ),
        ),
    ),
)

COLLECTION_PROFILE = SurvivorshipProfile(
    key="collection",
    label="Collection refresh",
    description="Incoming marketplace metadata refreshes stored values but blanks never erase them.",
    field_groups=(
        FieldGroup(
            "descriptive",
            "Descriptive",
            (
                FieldRule("title", REFRESH_TIER_ORDER),
                FieldRule("description", REFRESH_TIER_ORDER),
                FieldRule("image_url", REFRESH_TIER_ORDER),
                FieldRule("banner_image_url", REFRESH_TIER_ORDER),
            ),
        ),
        FieldGroup(
            "links",
            "Links",
            (
                FieldRule("website_url", REFRESH_TIER_ORDER),
                FieldRule("discord_url", REFRESH_TIER_ORDER),
                FieldRule("twitter_handle", REFRESH_TIER_ORDER),
            ),
        ),
        FieldGroup(
            "contract",
            "Contract",
            (
                FieldRule("contract_address", FILL_ONLY_TIER_ORDER),
                FieldRule("blockchain", FILL_ONLY_TIER_ORDER),
                FieldRule("total_supply", REFRESH_TIER_ORDER),
                FieldRule("mint_start_date", FILL_ONLY_TIER_ORDER),
                FieldRule("fees", REFRESH_TIER_ORDER),
            ),
        ),
    ),
)
