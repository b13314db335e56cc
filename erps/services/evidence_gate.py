# erps/services/evidence_gate.py
"""
Evidence Validation Gate.
Pre-submission checks for warranties and inspections. Every check runs and every
violation is collected, so the caller can fix everything in one round trip.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional
from erps.config import settings
from erps.models.inspection import CHECKLIST_FIELDS, INSPECTION_AREAS
from erps.models.photo import Photo

CONDITION_PASS = "PASS"
CONDITION_ISSUE = "ISSUE"


@dataclass
class GateResult:
    violations: list[str] = field(default_factory=list)
    category_counts: dict[str, int] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not self.violations


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def check_photos(photos: Iterable[Photo], requirements: dict[str, int],
                 min_total: Optional[int] = None) -> GateResult:
    """
    Count live photos per required category.
    Only photos in a required category count towards the overall minimum.
    """
    min_total = settings.MIN_EVIDENCE_PHOTOS if min_total is None else min_total
    counts = {category: 0 for category in requirements}
    for photo in photos:
        if photo.is_deleted:
            continue
        if photo.category in counts:
            counts[photo.category] += 1

    result = GateResult(category_counts=counts)
    total = sum(counts.values())
    if total < min_total:
        result.violations.append(
            f"At least {min_total} categorized photos are required ({total} provided)"
        )
    for category, required in requirements.items():
        if counts[category] < required:
            result.violations.append(
                f"Missing required photo category {category} ({counts[category]}/{required})"
            )
    return result


def check_corrosion(corrosion_found: Optional[bool], corrosion_details: Optional[str]) -> list[str]:
    if corrosion_found is None:
        return ["Corrosion declaration is required (corrosion found: yes or no)"]
    if corrosion_found and _blank(corrosion_details):
        return ["Corrosion details are required when corrosion is found"]
    return []


def check_warranty_fields(warranty) -> list[str]:
    violations = []
    if _blank(warranty.vin_number):
        violations.append("VIN number is required")
    if _blank(warranty.generator_serial_number):
        violations.append("Generator serial number is required")
    if warranty.date_installed is None:
        violations.append("Installation date is required")
    violations.extend(check_corrosion(warranty.corrosion_found, warranty.corrosion_details))
    return violations


def check_inspection_fields(inspection) -> list[str]:
    """Checklist answers must be present (False is a complete answer); ISSUE areas need notes."""
    violations = []
    if inspection.inspection_date is None:
        violations.append("Inspection date is required")

    for name in CHECKLIST_FIELDS:
        if getattr(inspection, name) is None:
            violations.append(f"Checklist item {name} must be answered")

    for area in INSPECTION_AREAS:
        condition = getattr(inspection, f"{area}_condition")
        if condition is None:
            violations.append(f"Condition for {area} is required")
        elif condition not in (CONDITION_PASS, CONDITION_ISSUE):
            violations.append(f"Condition for {area} must be PASS or ISSUE")
        elif condition == CONDITION_ISSUE and _blank(getattr(inspection, f"{area}_notes")):
            violations.append(f"Notes are required for {area} marked ISSUE")

    violations.extend(check_corrosion(inspection.corrosion_found, inspection.corrosion_details))
    return violations


def validate_warranty(warranty, photos: Iterable[Photo]) -> GateResult:
    result = check_photos(photos, settings.WARRANTY_PHOTO_REQUIREMENTS)
    result.violations.extend(check_warranty_fields(warranty))
    return result


def validate_inspection(inspection, photos: Iterable[Photo]) -> GateResult:
    result = check_photos(photos, settings.INSPECTION_PHOTO_REQUIREMENTS)
    result.violations.extend(check_inspection_fields(inspection))
    return result
