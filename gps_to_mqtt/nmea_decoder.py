"""NMEA-0183 sentence decoder for the sentence types relayed to MQTT."""

from typing import Callable, Dict, Optional, Union
import structlog

from .codecs import (
    decode_date,
    decode_latitude,
    decode_longitude,
    decode_utc_time,
    float_or_zero,
    int_or_zero,
)
from .logging_config import SENTENCES_DECODED, error_handler
from .models import (
    FixType,
    GGAData,
    GLLData,
    GSAData,
    GSVData,
    NmeaDate,
    Position,
    RMCData,
    SatelliteReport,
    SatelliteSystem,
    Sentence,
    SentenceKind,
    TextField,
    TXTData,
    UtcTime,
    VTGData,
)

logger = structlog.get_logger(__name__)

DecodedSentence = Union[GGAData, RMCData, VTGData, GSAData, GLLData, GSVData, TXTData]

# Minimum number of comma-separated fields, identifier included
MIN_FIELDS: Dict[SentenceKind, int] = {
    SentenceKind.GGA: 10,
    SentenceKind.RMC: 10,
    SentenceKind.VTG: 9,
    SentenceKind.GSA: 17,
    SentenceKind.GLL: 7,
    SentenceKind.GSV: 8,
}

TXT_FIELDS = 4

# Marker in a TXT message -> key of the extracted value
TEXT_MARKERS = (
    ("ANTSTATUS=", "ANTSTATUS"),
    ("PF=", "PF"),
    ("GNSS OTP=", "GNSS_OTP"),
)

# u-blox receivers emit this on buffer pressure; never worth relaying
IGNORED_TEXT = "txbuf alloc"


class DecodeError(ValueError):
    """A recognised sentence that cannot be decoded."""


def split_sentence(text: str) -> Optional[Sentence]:
    """
    Split a ``$...*hh`` sentence into identifier, fields and checksum.

    Args:
        text: Complete sentence as produced by the assembler

    Returns:
        Sentence, or None if the text is not framed by ``$`` and ``*``
    """
    if not text.startswith("$") or "*" not in text:
        return None

    body, _, checksum = text[1:].partition("*")
    parts = tuple(body.split(","))
    return Sentence(
        identifier=parts[0],
        parts=parts,
        checksum=checksum.strip() or None,
    )


def calculate_checksum(body: str) -> str:
    """XOR of every character between ``$`` and ``*``, as two hex digits."""
    calculated = 0
    for char in body:
        calculated ^= ord(char)
    return f"{calculated:02X}"


def _utc_time(value: str) -> UtcTime:
    hour, minute, second = decode_utc_time(value)
    return UtcTime(hour=hour, minute=minute, second=second)


def _date(value: str) -> NmeaDate:
    day, month, year = decode_date(value)
    return NmeaDate(day=day, month=month, year=year)


def _position(lat: str, lat_dir: str, lon: str, lon_dir: str) -> Position:
    return Position(
        latitude=decode_latitude(lat, lat_dir),
        longitude=decode_longitude(lon, lon_dir),
    )


class NMEADecoder:
    """Classifies complete NMEA sentences and decodes their fields.

    Every numeric subfield is decoded best-effort: an empty or garbled
    number becomes zero instead of failing the sentence. A sentence with
    fewer fields than its type requires is a decode error, reported through
    the error handler and dropped.
    """

    def __init__(self, verify_checksum: bool = False):
        """
        Initialize the decoder.

        Args:
            verify_checksum: Reject sentences whose checksum does not match
        """
        self.verify_checksum = verify_checksum
        self._handlers: Dict[SentenceKind, Callable[[Sentence], Optional[DecodedSentence]]] = {
            SentenceKind.GGA: self._decode_gga,
            SentenceKind.RMC: self._decode_rmc,
            SentenceKind.VTG: self._decode_vtg,
            SentenceKind.GSA: self._decode_gsa,
            SentenceKind.GLL: self._decode_gll,
            SentenceKind.GSV: self._decode_gsv,
            SentenceKind.TXT: self._decode_txt,
        }
        self.sentences_decoded = 0
        self.unknown_sentences = 0
        self.decode_errors = 0

    def decode(self, text: str) -> Optional[DecodedSentence]:
        """
        Decode one complete sentence.

        Args:
            text: Sentence starting with ``$`` and containing ``*``

        Returns:
            Decoded sentence model, or None if the text is unframed, of an
            unknown type, deliberately ignored or fails to decode
        """
        sentence = split_sentence(text)
        if sentence is None:
            logger.debug("Dropping unframed data", data=text)
            return None

        kind = sentence.kind
        if kind is SentenceKind.UNKNOWN:
            self.unknown_sentences += 1
            logger.info("Unknown sentence type",
                        identifier=sentence.identifier,
                        sentence=sentence.body)
            return None

        try:
            if self.verify_checksum:
                self._check_checksum(sentence)
            decoded = self._handlers[kind](sentence)
        except DecodeError as e:
            self.decode_errors += 1
            error_handler.handle_decode_error(text, e)
            return None

        if decoded is not None:
            self.sentences_decoded += 1
            SENTENCES_DECODED.labels(kind=kind.value).inc()
            logger.debug("Decoded sentence",
                         identifier=sentence.identifier,
                         data=decoded.model_dump(mode="json"))
        return decoded

    @staticmethod
    def _check_checksum(sentence: Sentence) -> None:
        expected = calculate_checksum(sentence.body)
        received = (sentence.checksum or "")[:2].upper()
        if received != expected:
            raise DecodeError(f"Checksum mismatch: expected {expected}, got {received or 'none'}")

    @staticmethod
    def _require_fields(sentence: Sentence) -> None:
        minimum = MIN_FIELDS[sentence.kind]
        if len(sentence) < minimum:
            raise DecodeError(
                f"Invalid {sentence.kind.value} sentence: "
                f"expected at least {minimum} fields, got {len(sentence)}"
            )

    def _decode_gga(self, sentence: Sentence) -> GGAData:
        self._require_fields(sentence)
        p = sentence.parts
        return GGAData(
            utc_time=_utc_time(p[1]),
            position=_position(p[2], p[3], p[4], p[5]),
            fix_quality=int_or_zero(p[6]),
            num_satellites=int_or_zero(p[7]),
            hdop=float_or_zero(p[8]),
            altitude=float_or_zero(p[9]),
        )

    def _decode_rmc(self, sentence: Sentence) -> RMCData:
        self._require_fields(sentence)
        p = sentence.parts
        return RMCData(
            utc_time=_utc_time(p[1]),
            status=p[2],
            position=_position(p[3], p[4], p[5], p[6]),
            speed_knots=float_or_zero(p[7]),
            course=float_or_zero(p[8]),
            date=_date(p[9]),
        )

    def _decode_vtg(self, sentence: Sentence) -> VTGData:
        self._require_fields(sentence)
        p = sentence.parts
        return VTGData(
            course=float_or_zero(p[1]),
            speed_knots=float_or_zero(p[5]),
            speed_kph=float_or_zero(p[7]),
        )

    def _decode_gsa(self, sentence: Sentence) -> GSAData:
        self._require_fields(sentence)
        p = sentence.parts
        return GSAData(
            mode=p[1],
            fix_type=FixType.from_field(p[2]),
            prn=int_or_zero(p[3]),
            pdop=float_or_zero(p[15]),
            hdop=float_or_zero(p[16]),
            vdop=float_or_zero(p[17]) if len(p) > 17 else 0.0,
        )

    def _decode_gll(self, sentence: Sentence) -> GLLData:
        self._require_fields(sentence)
        p = sentence.parts
        return GLLData(
            position=_position(p[1], p[2], p[3], p[4]),
            utc_time=_utc_time(p[5]),
            status=p[6],
        )

    def _decode_gsv(self, sentence: Sentence) -> GSVData:
        self._require_fields(sentence)
        p = sentence.parts

        system = SatelliteSystem.from_talker(sentence.talker)
        if system is SatelliteSystem.UNKNOWN:
            logger.debug("Unknown satellite type prefix", talker=sentence.talker)

        satellites = []
        for group in range((len(p) - 4) // 4):
            index = 4 + group * 4
            satellites.append(SatelliteReport(
                prn=int_or_zero(p[index]),
                system=system,
                elevation=int_or_zero(p[index + 1]),
                azimuth=int_or_zero(p[index + 2]),
                snr=int_or_zero(p[index + 3]),
            ))

        return GSVData(
            system=system,
            num_satellites=int_or_zero(p[3]),
            satellites=satellites,
        )

    def _decode_txt(self, sentence: Sentence) -> Optional[TXTData]:
        parts = sentence.body.split(",", TXT_FIELDS - 1)
        if len(parts) != TXT_FIELDS:
            raise DecodeError(
                f"Invalid TXT sentence: expected {TXT_FIELDS} fields, got {len(parts)}"
            )

        # The text field still carries the message index
        text = parts[3]
        message = text.split(",", 1)[1] if "," in text else text

        if IGNORED_TEXT in message:
            logger.debug("Ignoring receiver buffer notice", message=message)
            return None

        text_field = None
        for marker, key in TEXT_MARKERS:
            if marker in message:
                text_field = TextField(key=key, value=message.split(marker, 1)[1])
                break

        return TXTData(message=message, text_field=text_field)
