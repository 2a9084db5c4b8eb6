"""Typed values decoded from NMEA sentences."""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SentenceKind(str, Enum):
    """NMEA sentence types handled by the decoder."""

    GGA = "GGA"  # Fix information
    RMC = "RMC"  # Recommended minimum data
    VTG = "VTG"  # Course and speed over ground
    GSA = "GSA"  # DOP and active satellites
    GLL = "GLL"  # Geographic position
    GSV = "GSV"  # Satellites in view
    TXT = "TXT"  # Text transmission
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_identifier(cls, identifier: str) -> "SentenceKind":
        """Classify a talker+type identifier such as ``GNRMC`` by its type suffix."""
        return _KIND_BY_SUFFIX.get(identifier[-3:], cls.UNKNOWN)


_KIND_BY_SUFFIX = {
    kind.value: kind for kind in SentenceKind if kind is not SentenceKind.UNKNOWN
}


class SatelliteSystem(str, Enum):
    """Constellation derived from a GSV talker prefix."""

    GPS = "GPS"
    GLONASS = "GLONASS"
    GALILEO = "Galileo"
    BEIDOU = "BeiDou"
    UNKNOWN = "Unknown"

    @classmethod
    def from_talker(cls, talker: str) -> "SatelliteSystem":
        return _SYSTEM_BY_TALKER.get(talker, cls.UNKNOWN)


_SYSTEM_BY_TALKER = {
    "GP": SatelliteSystem.GPS,
    "GL": SatelliteSystem.GLONASS,
    "GA": SatelliteSystem.GALILEO,
    "BD": SatelliteSystem.BEIDOU,
}


class FixType(str, Enum):
    """GSA fix type."""

    NOT_AVAILABLE = "Not Available"
    FIX_2D = "2D"
    FIX_3D = "3D"
    UNKNOWN = "Unknown"

    @classmethod
    def from_field(cls, value: str) -> "FixType":
        return _FIX_TYPE_BY_FIELD.get(value, cls.UNKNOWN)


_FIX_TYPE_BY_FIELD = {
    "1": FixType.NOT_AVAILABLE,
    "2": FixType.FIX_2D,
    "3": FixType.FIX_3D,
}


class Sentence(BaseModel):
    """One complete sentence, split into its identifier and fields."""

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Talker and sentence type, e.g. GNRMC")
    parts: Tuple[str, ...] = Field(..., description="All comma-separated fields including the identifier")
    checksum: Optional[str] = Field(None, description="Text following the '*' marker")

    @property
    def kind(self) -> SentenceKind:
        return SentenceKind.from_identifier(self.identifier)

    @property
    def talker(self) -> str:
        """Two-character talker prefix, e.g. ``GP`` or ``GN``."""
        return self.identifier[:2]

    @property
    def body(self) -> str:
        """The sentence text between ``$`` and ``*``."""
        return ",".join(self.parts)

    def __len__(self) -> int:
        return len(self.parts)


class Position(BaseModel):
    """Latitude and longitude in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(0.0, description="Decimal degrees, negative south")
    longitude: float = Field(0.0, description="Decimal degrees, negative west")


class UtcTime(BaseModel):
    """UTC time of day."""

    model_config = ConfigDict(frozen=True)

    hour: int = 0
    minute: int = 0
    second: int = 0

    def __str__(self) -> str:
        return f"{self.hour:02}:{self.minute:02}:{self.second:02}"


class NmeaDate(BaseModel):
    """Calendar date with the receiver's two-digit year."""

    model_config = ConfigDict(frozen=True)

    day: int = 0
    month: int = 0
    year: int = Field(0, description="Two-digit year, no century applied")

    def __str__(self) -> str:
        return f"{self.day:02}.{self.month:02}.20{self.year:02}"


class SatelliteReport(BaseModel):
    """One satellite entry of a GSV sentence."""

    model_config = ConfigDict(frozen=True)

    prn: int = Field(0, description="Satellite PRN number")
    system: SatelliteSystem = SatelliteSystem.UNKNOWN
    elevation: int = Field(0, description="Elevation in degrees")
    azimuth: int = Field(0, description="Azimuth in degrees true")
    snr: int = Field(0, description="Signal to noise ratio in dB-Hz")

    @property
    def in_view(self) -> bool:
        return self.snr > 0

    def __str__(self) -> str:
        return (
            f"PRN: {self.prn}, Type: {self.system.value}, "
            f"Elevation: {self.elevation}, Azimuth: {self.azimuth}, "
            f"SNR: {self.snr}, In View: {str(self.in_view).lower()}"
        )


class TextField(BaseModel):
    """A key/value pair announced in a TXT sentence, e.g. ``ANTSTATUS=OK``."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class GGAData(BaseModel):
    """Parsed GGA (fix data) sentence."""

    kind: SentenceKind = SentenceKind.GGA
    utc_time: UtcTime = Field(default_factory=UtcTime)
    position: Position = Field(default_factory=Position)
    fix_quality: int = Field(0, description="GPS fix quality (0-8)")
    num_satellites: int = Field(0, description="Number of satellites in use")
    hdop: float = Field(0.0, description="Horizontal dilution of precision")
    altitude: float = Field(0.0, description="Altitude above mean sea level in meters")

    @property
    def has_valid_fix(self) -> bool:
        """Check if GPS has a valid fix."""
        return self.fix_quality > 0


class RMCData(BaseModel):
    """Parsed RMC (recommended minimum data) sentence."""

    kind: SentenceKind = SentenceKind.RMC
    utc_time: UtcTime = Field(default_factory=UtcTime)
    status: str = Field("", description="A = valid, V = warning")
    position: Position = Field(default_factory=Position)
    speed_knots: float = 0.0
    course: float = Field(0.0, description="Course over ground in degrees true")
    date: NmeaDate = Field(default_factory=NmeaDate)


class VTGData(BaseModel):
    """Parsed VTG (course and speed over ground) sentence."""

    kind: SentenceKind = SentenceKind.VTG
    course: float = Field(0.0, description="Course over ground in degrees true")
    speed_knots: float = 0.0
    speed_kph: float = 0.0


class GSAData(BaseModel):
    """Parsed GSA (DOP and active satellites) sentence."""

    kind: SentenceKind = SentenceKind.GSA
    mode: str = Field("", description="M = manual, A = automatic 2D/3D")
    fix_type: FixType = FixType.UNKNOWN
    prn: int = Field(0, description="PRN of the first active satellite")
    pdop: float = 0.0
    hdop: float = 0.0
    vdop: float = 0.0


class GLLData(BaseModel):
    """Parsed GLL (geographic position) sentence."""

    kind: SentenceKind = SentenceKind.GLL
    position: Position = Field(default_factory=Position)
    utc_time: UtcTime = Field(default_factory=UtcTime)
    status: str = Field("", description="A = valid, V = invalid")


class GSVData(BaseModel):
    """Parsed GSV (satellites in view) sentence."""

    kind: SentenceKind = SentenceKind.GSV
    system: SatelliteSystem = SatelliteSystem.UNKNOWN
    num_satellites: int = Field(0, description="Total satellites in view")
    satellites: List[SatelliteReport] = Field(default_factory=list)


class TXTData(BaseModel):
    """Parsed TXT (text transmission) sentence."""

    kind: SentenceKind = SentenceKind.TXT
    message: str = ""
    text_field: Optional[TextField] = None
