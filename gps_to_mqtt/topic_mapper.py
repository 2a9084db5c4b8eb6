"""Maps decoded NMEA sentences to MQTT topics and payloads."""

from typing import Callable, Dict, List, Tuple
import structlog

from .codecs import format_number
from .config import Settings
from .models import (
    GGAData,
    GLLData,
    GSAData,
    GSVData,
    RMCData,
    SentenceKind,
    TXTData,
    VTGData,
)
from .nmea_decoder import DecodedSentence

logger = structlog.get_logger(__name__)

# The date has always been published here, outside the configured base topic
DATE_TOPIC = "/GOLF86/GPS/DTE"

Publication = Tuple[str, str]


class TopicMapper:
    """Convert decoded sentences into ``(topic, payload)`` publications."""

    def __init__(self, settings: Settings):
        """
        Initialize the topic mapper.

        Args:
            settings: Application settings providing the base topic
        """
        self.settings = settings
        self._converters: Dict[SentenceKind, Callable[..., List[Publication]]] = {
            SentenceKind.GGA: self._convert_gga,
            SentenceKind.RMC: self._convert_rmc,
            SentenceKind.VTG: self._convert_vtg,
            SentenceKind.GSA: self._convert_gsa,
            SentenceKind.GLL: self._convert_gll,
            SentenceKind.GSV: self._convert_gsv,
            SentenceKind.TXT: self._convert_txt,
        }

    def convert(self, decoded: DecodedSentence) -> List[Publication]:
        """
        Convert a decoded sentence to publications.

        Args:
            decoded: Output of the NMEA decoder

        Returns:
            Publications in the order they should be sent
        """
        publications = self._converters[decoded.kind](decoded)

        logger.debug("Mapped sentence to topics",
                     kind=decoded.kind.value,
                     topics=[topic for topic, _ in publications])

        return publications

    def _topic(self, suffix: str) -> str:
        return self.settings.topic(suffix)

    def _convert_gga(self, data: GGAData) -> List[Publication]:
        return [
            (self._topic("ALT"), format_number(data.altitude)),
            (self._topic("QTY"), str(data.fix_quality)),
        ]

    def _convert_rmc(self, data: RMCData) -> List[Publication]:
        return [
            (self._topic("TME"), str(data.utc_time)),
            (DATE_TOPIC, str(data.date)),
            (self._topic("LAT"), format_number(data.position.latitude)),
            (self._topic("LNG"), format_number(data.position.longitude)),
            (self._topic("SPD"), format_number(data.speed_knots)),
        ]

    def _convert_vtg(self, data: VTGData) -> List[Publication]:
        return [
            (self._topic("CRS"), format_number(data.course)),
            (self._topic("SPD_KTS"), format_number(data.speed_knots)),
            (self._topic("SPD_KPH"), format_number(data.speed_kph)),
        ]

    def _convert_gsa(self, data: GSAData) -> List[Publication]:
        return [
            (self._topic(f"SAT/VEHICLES/{data.prn}/FIX_TYPE"), data.fix_type.value),
        ]

    def _convert_gll(self, data: GLLData) -> List[Publication]:
        return [
            (self._topic("GLL_TME"), str(data.utc_time)),
            (self._topic("GLL_LAT"), format_number(data.position.latitude)),
            (self._topic("GLL_LNG"), format_number(data.position.longitude)),
        ]

    def _convert_gsv(self, data: GSVData) -> List[Publication]:
        publications = [(self._topic("SAT/GLOBAL/NUM"), str(data.num_satellites))]
        for satellite in data.satellites:
            publications.append(
                (self._topic(f"SAT/VEHICLES/{satellite.prn}"), str(satellite))
            )
        return publications

    def _convert_txt(self, data: TXTData) -> List[Publication]:
        if data.text_field is None:
            return []
        return [
            (self._topic(f"SAT/GLOBAL/{data.text_field.key}"), data.text_field.value),
        ]
