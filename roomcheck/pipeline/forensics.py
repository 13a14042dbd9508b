"""
Metadata Forensics

Extracts capture time, GPS position and editing-software tags from a photo
and checks them against the active inspection policy.

Missing metadata never fails a check: a photo without EXIF cannot be
verified and is treated as valid.
"""

import io
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from PIL import Image

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000

# EXIF tag ids
TAG_SOFTWARE = 0x0131
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003
IFD_EXIF = 0x8769
IFD_GPS = 0x8825
GPS_LAT_REF = 1
GPS_LAT = 2
GPS_LON_REF = 3
GPS_LON = 4

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

DEFAULT_EDITING_SOFTWARE = (
    "photoshop", "gimp", "lightroom", "snapseed", "vsco",
    "afterlight", "picsart", "facetune", "meitu", "beautyplus",
    "faceapp", "snow", "b612", "foodie", "ulike",
)


@dataclass
class MetadataValidationResult:
    """Result of metadata validation."""
    time_valid: bool = True
    location_valid: bool = True
    not_edited: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)
    message: str = "Metadata check passed"

    @property
    def valid(self) -> bool:
        return self.time_valid and self.location_valid and self.not_edited


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def extract_metadata(photo_bytes: bytes) -> dict[str, Any]:
    """
    Best-effort tag extraction.

    Returns a dict that may contain ``DateTimeOriginal``, ``DateTime``,
    ``Software``, ``GPSLatitude`` and ``GPSLongitude`` (decimal degrees).
    Unreadable input yields an empty dict.
    """
    tags: dict[str, Any] = {}
    try:
        with Image.open(io.BytesIO(photo_bytes)) as image:
            tags["Format"] = image.format
            exif = image.getexif()
            if not exif:
                return tags

            if TAG_DATETIME in exif:
                tags["DateTime"] = _as_text(exif[TAG_DATETIME])
            if TAG_SOFTWARE in exif:
                tags["Software"] = _as_text(exif[TAG_SOFTWARE])

            exif_ifd = exif.get_ifd(IFD_EXIF)
            if TAG_DATETIME_ORIGINAL in exif_ifd:
                tags["DateTimeOriginal"] = _as_text(exif_ifd[TAG_DATETIME_ORIGINAL])

            gps = exif.get_ifd(IFD_GPS)
            lat = _gps_degrees(gps.get(GPS_LAT), gps.get(GPS_LAT_REF), negative="S")
            lon = _gps_degrees(gps.get(GPS_LON), gps.get(GPS_LON_REF), negative="W")
            if lat is not None and lon is not None:
                tags["GPSLatitude"] = lat
                tags["GPSLongitude"] = lon
    except Exception as e:
        logger.warning("Metadata extraction failed: %s", e)

    tags.setdefault("FileSize", len(photo_bytes))
    return tags


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    return str(value).strip("\x00 ").strip()


def _gps_degrees(value: Any, ref: Any, negative: str) -> Optional[float]:
    if not value:
        return None
    try:
        degrees, minutes, seconds = (float(part) for part in value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if any(math.isnan(part) for part in (degrees, minutes, seconds)):
        return None
    decimal = degrees + minutes / 60 + seconds / 3600
    if ref is not None and _as_text(ref).upper() == negative:
        decimal = -decimal
    return decimal


class MetadataForensics:
    """
    Photo authenticity checks based on embedded metadata.

    Checks:
    - Capture time within ``tolerance_minutes`` of now
    - Capture position within ``radius_m`` of the dormitory (when both the
      expected position and GPS tags exist)
    - No known editing/beautification app in the software tag
    """

    def __init__(
        self,
        editing_software: Sequence[str] = DEFAULT_EDITING_SOFTWARE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.editing_software = tuple(s.lower() for s in editing_software)
        self.clock = clock

    def validate(
        self,
        photo_bytes: bytes,
        tolerance_minutes: int,
        expected_lat: Optional[float] = None,
        expected_lon: Optional[float] = None,
        radius_m: int = 100,
        now: Optional[datetime] = None,
    ) -> MetadataValidationResult:
        try:
            metadata = extract_metadata(photo_bytes)
            now = now or self.clock()

            time_valid = self.check_capture_time(metadata, tolerance_minutes, now)
            location_valid = True
            if expected_lat is not None and expected_lon is not None:
                location_valid = self.check_location(metadata, expected_lat, expected_lon, radius_m)
            not_edited = self.check_not_edited(metadata)

            result = MetadataValidationResult(
                time_valid=time_valid,
                location_valid=location_valid,
                not_edited=not_edited,
                metadata=metadata,
            )
            result.message = build_message(result)
            logger.info(
                "Metadata check - valid=%s time=%s location=%s not_edited=%s",
                result.valid, time_valid, location_valid, not_edited,
            )
            return result
        except Exception:
            logger.exception("Metadata validation failed, treating photo as valid")
            return MetadataValidationResult(message="Metadata could not be verified")

    def check_capture_time(
        self, metadata: dict[str, Any], tolerance_minutes: int, now: datetime
    ) -> bool:
        raw = metadata.get("DateTimeOriginal") or metadata.get("DateTime")
        if not raw:
            logger.info("No capture time in metadata, skipping time check")
            return True
        try:
            captured = datetime.strptime(raw, EXIF_DATE_FORMAT)
        except ValueError:
            logger.warning("Unparseable capture time %r, skipping time check", raw)
            return True

        minutes = int(abs((now - captured).total_seconds()) // 60)
        if minutes > tolerance_minutes:
            logger.warning(
                "Capture time %s is %d minutes from now (tolerance %d)",
                captured, minutes, tolerance_minutes,
            )
            return False
        return True

    def check_location(
        self,
        metadata: dict[str, Any],
        expected_lat: float,
        expected_lon: float,
        radius_m: int,
    ) -> bool:
        lat = metadata.get("GPSLatitude")
        lon = metadata.get("GPSLongitude")
        if lat is None or lon is None:
            logger.info("No GPS position in metadata, skipping location check")
            return True

        distance = haversine_distance(lat, lon, expected_lat, expected_lon)
        if distance > radius_m:
            logger.warning("Capture position %.0fm away (radius %dm)", distance, radius_m)
            return False
        return True

    def check_not_edited(self, metadata: dict[str, Any]) -> bool:
        software = metadata.get("Software")
        if not software:
            return True
        lowered = software.lower()
        for editor in self.editing_software:
            if editor in lowered:
                logger.warning("Editing software detected: %s", software)
                return False
        return True


def build_message(result: MetadataValidationResult) -> str:
    parts = []
    if not result.time_valid:
        parts.append("Capture time does not match the submission time.")
    if not result.location_valid:
        parts.append("Photo was taken outside the dormitory area.")
    if not result.not_edited:
        parts.append("Photo editing software was detected.")
    return " ".join(parts) if parts else "Metadata check passed"
