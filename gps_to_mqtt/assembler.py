"""Reassembles NMEA sentences from a line-oriented serial stream."""

from typing import Callable
import structlog

from .logging_config import SENTENCES_ASSEMBLED

logger = structlog.get_logger(__name__)


class SentenceAssembler:
    """Turns raw lines into complete ``$...*`` sentences.

    Serial reads do not always line up with sentence boundaries: a sentence
    may arrive split over several lines, and noise may appear between
    sentences. A line starting with ``$`` begins a new sentence, flushing
    any sentence still being accumulated. Lines without ``$`` are appended
    to the sentence in progress. As soon as the accumulated text contains
    the ``*`` checksum marker the sentence is complete and handed to the
    callback.

    Example::

        assembler = SentenceAssembler(decoder.decode)
        assembler.feed("$GNGGA,123519,4807.038,N,01131.000,E,1,08,")
        assembler.feed("0.9,545.4,M,46.9,M,,*47")   # emits one sentence
    """

    def __init__(self, on_sentence: Callable[[str], object]):
        """
        Initialize the assembler.

        Args:
            on_sentence: Called with each complete sentence
        """
        self.on_sentence = on_sentence
        self._buffer = ""
        self.sentences_emitted = 0
        self.fragments_dropped = 0

    @property
    def pending(self) -> str:
        """Text accumulated for the sentence in progress."""
        return self._buffer

    def feed(self, line: str) -> None:
        """
        Consume one line with its terminator already stripped.

        Args:
            line: Raw line from the transport
        """
        if not line:
            return

        if line.startswith("$"):
            self._flush()
            self._buffer = line
        elif self._buffer:
            self._buffer += line
        else:
            logger.debug("Dropping data outside a sentence", data=line)
            return

        if "*" in self._buffer:
            self._flush()

    def reset(self) -> None:
        """Discard any unterminated sentence, e.g. after the port was reopened."""
        if self._buffer:
            self.fragments_dropped += 1
            logger.debug("Discarding unterminated sentence", data=self._buffer)
        self._buffer = ""

    def _flush(self) -> None:
        if not self._buffer:
            return

        sentence = self._buffer
        self._buffer = ""
        self.sentences_emitted += 1
        SENTENCES_ASSEMBLED.inc()

        try:
            self.on_sentence(sentence)
        except Exception as e:
            logger.error("Error handling sentence",
                         sentence=sentence,
                         error=str(e))
