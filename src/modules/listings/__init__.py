"""Listings module."""

from src.modules.listings.repository import ListingRepository, row_to_listing

__all__ = [
    "ListingRepository",
    "row_to_listing",
]
