"""Rental listing data model."""

from datetime import date, datetime

from pydantic import BaseModel, Field


class ListingRecord(BaseModel):
    """Immutable snapshot of a rental listing.

    Listings are produced by the ingestion pipeline (outside this package)
    and consumed read-only by the scoring engine. Every field except the
    identifier and creation time may be missing, in which case it is None.
    """

    # Identification
    id: str = Field(..., description="Unique listing identifier")
    created_at: datetime = Field(..., description="When the listing was ingested")
    url: str | None = Field(default=None, description="Link to the original post")

    # Pricing (CHF per month)
    rent_total: int | None = Field(default=None, ge=0, description="Rent including charges")
    rent_monthly: int | None = Field(default=None, ge=0, description="Rent excluding charges")

    # Dwelling
    rooms: float | None = Field(default=None, ge=0, description="Room count (half rooms allowed)")
    surface_m2: float | None = Field(default=None, ge=0, description="Living area in m²")
    dwelling_type: str | None = Field(default=None, description="Free-text type, e.g. Appartement")

    # Location (raw, as written in the post)
    neighborhood: str | None = None
    postal_code: str | None = None
    city: str | None = None
    street: str | None = None
    street_number: str | None = None
    full_address: str | None = None

    # Amenities
    top_floor: bool = False
    balcony: bool = False
    terrace: bool = False
    furnished: bool = False
    parking_included: bool = False

    # Availability
    urgent: bool = False
    available_from: date | None = None

    # Media (storage path, signed by an external collaborator)
    media_path: str | None = None

    model_config = {
        "frozen": True,
        "str_strip_whitespace": True,
    }
