from __future__ import annotations

from ..extensions import db
from ..models import StoreSettings
from ..validation import ValidationError, parse_amount

EDITABLE_FIELDS = ("store_name", "address", "phone", "email", "currency", "receipt_footer")


class SettingsValidationError(ValidationError):
    pass


def get_settings() -> StoreSettings:
    """The single settings row, created with defaults on first access."""
    settings = db.session.query(StoreSettings).order_by(StoreSettings.id.asc()).first()
    if settings is None:
        settings = StoreSettings()
        db.session.add(settings)
        db.session.flush()
    return settings


def update_settings(data: dict) -> StoreSettings:
    settings = get_settings()
    for key in EDITABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if value is not None and not isinstance(value, str):
            raise SettingsValidationError(f"{key} must be a string")
        value = value.strip() if value else None
        if key == "store_name" and (not value or len(value) < 2):
            raise SettingsValidationError("Store name must be at least 2 characters long")
        if key == "currency":
            if not value or len(value) > 8:
                raise SettingsValidationError("Currency code must be 1-8 characters")
            value = value.upper()
        setattr(settings, key, value)

    if "tax_rate" in data:
        rate = parse_amount(data["tax_rate"], "tax_rate")
        if rate > 100:
            raise SettingsValidationError("tax_rate cannot exceed 100")
        settings.tax_rate = rate

    db.session.commit()
    return settings
