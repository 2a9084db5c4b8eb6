"""Console quit command listener."""

import threading
from typing import Callable, TextIO
import structlog

logger = structlog.get_logger(__name__)

QUIT_COMMAND = "q"


class QuitListener(threading.Thread):
    """Daemon thread that watches a text stream for the quit command.

    ``on_quit`` is called at most once, from the listener thread. Callers
    running an event loop should hop back onto it, e.g. with
    ``loop.call_soon_threadsafe(event.set)``.
    """

    def __init__(self, stream: TextIO, on_quit: Callable[[], None]):
        """
        Initialize the listener.

        Args:
            stream: Stream to read commands from, normally ``sys.stdin``
            on_quit: Called when a line equal to ``q`` is read
        """
        super().__init__(name="quit-listener", daemon=True)
        self.stream = stream
        self.on_quit = on_quit
        self.fired = False

    def run(self) -> None:
        logger.info("Type 'q' and press Enter to quit")

        try:
            for line in self.stream:
                if line.strip() == QUIT_COMMAND:
                    logger.info("Quit command received")
                    self.fired = True
                    self.on_quit()
                    return
        except (OSError, ValueError) as e:
            logger.warning("Stopped listening for quit command", error=str(e))
            return

        logger.debug("Quit listener reached end of input")
