"""
Mapeo estático de campos: listing local <-> tabla Listings de Airtable.

Editar aquí para agregar o quitar campos. El registro valida este mapeo
al arrancar (sanitizers, triggers, direcciones).
"""
from __future__ import annotations

from typing import Optional

from listing_sync.domain.fields.field_definition import FieldDefinition
from listing_sync.shared.constants.sync_constants import (
    DataType,
    FieldCategory,
    FieldDirection,
    ListingCalculation as Calc,
)

# Campos remotos usados para titular un listing creado desde Airtable (en orden)
TITLE_SOURCE_FIELDS = ("Property Name", "Street Address", "MLS Number")

LISTING_STATUSES = ("Active", "Pending", "Sold", "Expired", "Withdrawn")
PROPERTY_TYPES = ("Single Family Home", "Townhouse", "Condo", "Multi-Family", "Land", "Commercial")
STATES = ("DE", "MD", "PA", "NJ", "VA", "DC")


def _manual(
    local_name: str,
    remote_name: str,
    data_type: DataType,
    sanitizer: str,
    *,
    allowed_values: tuple[str, ...] = (),
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    triggers: tuple[Calc, ...] = (),
) -> FieldDefinition:
    return FieldDefinition(
        local_name=local_name,
        remote_name=remote_name,
        category=FieldCategory.MANUAL,
        data_type=data_type,
        direction=FieldDirection.BIDIRECTIONAL,
        sanitizer=sanitizer,
        allowed_values=allowed_values,
        min_value=min_value,
        max_value=max_value,
        triggers=tuple(t.value for t in triggers),
    )


def _calculated(
    local_name: str,
    remote_name: str,
    data_type: DataType,
    sanitizer: str,
    *,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    description: str = "",
) -> FieldDefinition:
    return FieldDefinition(
        local_name=local_name,
        remote_name=remote_name,
        category=FieldCategory.CALCULATED_LOCAL,
        data_type=data_type,
        direction=FieldDirection.LOCAL_TO_REMOTE_ONLY,
        sanitizer=sanitizer,
        min_value=min_value,
        max_value=max_value,
        description=description,
    )


def _media(
    local_name: str,
    remote_name: str,
    max_files: int,
    *,
    triggers: tuple[Calc, ...] = (),
) -> FieldDefinition:
    return FieldDefinition(
        local_name=local_name,
        remote_name=remote_name,
        category=FieldCategory.MEDIA,
        data_type=DataType.ATTACHMENT,
        direction=FieldDirection.BIDIRECTIONAL,
        max_files=max_files,
        triggers=tuple(t.value for t in triggers),
    )


def build_listing_fields() -> list[FieldDefinition]:
    """Retorna las definiciones de la tabla Listings en orden de declaración."""
    return [
        # Identificadores y estado
        _manual("property_name", "Property Name", DataType.TEXT, "text"),
        _manual("mls_number", "MLS Number", DataType.TEXT, "text"),
        _manual("list_date", "List Date", DataType.DATE, "date", triggers=(Calc.DAYS_ON_MARKET,)),
        _manual(
            "listing_status", "Listing Status", DataType.SELECT, "select",
            allowed_values=LISTING_STATUSES,
            triggers=(Calc.STATUS_CHANGE_DATE,),
        ),
        _manual("expiration_date", "Expiration Date", DataType.DATE, "date"),

        # Precio
        _manual(
            "price", "Current Price", DataType.NUMBER, "decimal",
            min_value=0, max_value=50_000_000,
            triggers=(Calc.PRICE_PER_SQFT, Calc.PRICE_CHANGE_COUNT),
        ),
        _calculated("original_price", "Original Price", DataType.NUMBER, "decimal",
                    description="Primer precio registrado"),
        _calculated("price_per_sqft", "Price Per SqFt", DataType.NUMBER, "decimal",
                    description="price / square_footage, 2 decimales"),
        _calculated("days_on_market", "Days on Market", DataType.INTEGER, "integer",
                    description="Días desde list_date"),
        _calculated("status_change_date", "Status Change Date", DataType.DATE, "date"),
        _calculated("price_change_count", "Price Changes", DataType.INTEGER, "integer"),

        # Acuerdo
        _manual(
            "listing_agreement_type", "Agreement Type", DataType.SELECT, "select",
            allowed_values=("Exclusive Right", "Exclusive Agency", "Open Listing"),
        ),
        _manual(
            "listing_service_level", "Service Level", DataType.SELECT, "select",
            allowed_values=("Full Service", "Limited Service", "Flat Fee"),
        ),

        # Clasificación
        _manual("property_type", "Property Type", DataType.SELECT, "select",
                allowed_values=PROPERTY_TYPES),
        _manual("property_style", "Property Style", DataType.SELECT, "select"),
        _manual("year_built", "Year Built", DataType.INTEGER, "integer",
                min_value=1800, max_value=2030),
        _manual("property_condition", "Property Condition", DataType.SELECT, "select"),

        # Superficie
        _manual(
            "square_footage", "Square Footage", DataType.INTEGER, "integer",
            min_value=0, max_value=50_000,
            triggers=(Calc.PRICE_PER_SQFT,),
        ),
        _manual("living_area", "Living Area", DataType.INTEGER, "integer", min_value=0),
        _manual("lot_size", "Lot Size (Acres)", DataType.NUMBER, "decimal",
                min_value=0, triggers=(Calc.LOT_SQFT,)),
        _calculated("lot_sqft", "Lot Size (SqFt)", DataType.INTEGER, "integer",
                    description="lot_size * 43560"),
        _manual("sqft_source", "SqFt Source", DataType.SELECT, "select"),
        _manual("stories", "Stories", DataType.INTEGER, "integer", min_value=1, max_value=10),

        # Ambientes
        _manual("bedrooms", "Bedrooms", DataType.INTEGER, "integer", min_value=0, max_value=20),
        _manual("bathrooms_full", "Full Bathrooms", DataType.INTEGER, "integer",
                min_value=0, max_value=20, triggers=(Calc.BATHROOMS_TOTAL,)),
        _manual("bathrooms_half", "Half Bathrooms", DataType.INTEGER, "integer",
                min_value=0, max_value=20, triggers=(Calc.BATHROOMS_TOTAL,)),
        _calculated("bathrooms_total", "Total Bathrooms", DataType.NUMBER, "decimal",
                    description="full + half * 0.5"),
        _manual("rooms_total", "Total Rooms", DataType.INTEGER, "integer", min_value=0, max_value=50),
        _manual("parking_spaces", "Parking Spaces", DataType.INTEGER, "integer",
                min_value=0, max_value=20),
        _manual("garage_spaces", "Garage Spaces", DataType.INTEGER, "integer",
                min_value=0, max_value=10),
        _manual("basement", "Basement", DataType.SELECT, "select"),
        _manual("fireplaces", "Fireplaces", DataType.INTEGER, "integer", min_value=0, max_value=10),
        _manual("has_pool", "Has Pool", DataType.BOOLEAN, "boolean"),
        _manual("has_spa", "Hot Tub/Spa", DataType.BOOLEAN, "boolean"),
        _manual("is_waterfront", "Waterfront", DataType.BOOLEAN, "boolean"),

        # Dirección
        _manual("street_address", "Street Address", DataType.TEXT, "text"),
        _manual("unit_number", "Unit Number", DataType.TEXT, "text"),
        _manual("city", "City", DataType.TEXT, "text"),
        _manual("state", "State", DataType.SELECT, "select", allowed_values=STATES),
        _manual("zip_code", "ZIP Code", DataType.TEXT, "text", triggers=(Calc.COUNTY,)),
        _calculated("county", "County", DataType.TEXT, "text", description="Lookup por ZIP"),
        _calculated("latitude", "Latitude", DataType.NUMBER, "decimal", min_value=-90, max_value=90),
        _calculated("longitude", "Longitude", DataType.NUMBER, "decimal", min_value=-180, max_value=180),
        _manual("parcel_number", "Parcel Number", DataType.TEXT, "text"),

        # Media
        _media("featured_photo", "Featured Photo", 1, triggers=(Calc.PHOTO_COUNT,)),
        _media("listing_photos", "Listing Photos", 50, triggers=(Calc.PHOTO_COUNT,)),
        _media("floor_plan_images", "Floor Plans", 10),
        _manual("virtual_tour_url", "Virtual Tour URL", DataType.URL, "url"),
        _manual("video_tour_url", "Video Tour URL", DataType.URL, "url"),
        _calculated("photo_count", "Photo Count", DataType.INTEGER, "integer"),

        # Zona
        _manual("neighborhood", "Neighborhood", DataType.TEXT, "text"),
        _manual("school_district", "School District", DataType.TEXT, "text"),
        _manual("mls_area_code", "MLS Area Code", DataType.TEXT, "text"),
        _manual("zoning", "Zoning", DataType.TEXT, "text"),
        _manual("flood_zone", "Flood Zone", DataType.TEXT, "text"),
        _manual("hoa_name", "HOA Name", DataType.TEXT, "text"),
        _manual(
            "address_visibility", "Address Visibility", DataType.SELECT, "select",
            allowed_values=("full", "street_only", "neighborhood", "city_only", "hidden"),
        ),

        # Calculados en Airtable (fórmulas): solo se reflejan localmente
        FieldDefinition(
            local_name="listing_score",
            remote_name="Listing Score",
            category=FieldCategory.CALCULATED_REMOTE,
            data_type=DataType.NUMBER,
            direction=FieldDirection.REMOTE_TO_LOCAL_ONLY,
            sanitizer="decimal",
            description="Fórmula de Airtable",
        ),

        # Metadatos de Airtable
        FieldDefinition(
            local_name="remote_last_modified",
            remote_name="Last Modified",
            category=FieldCategory.READ_ONLY,
            data_type=DataType.TEXT,
            direction=FieldDirection.REMOTE_TO_LOCAL_ONLY,
        ),
    ]
