"""
Relay channels carrying values between role instances.

Roles never talk to each other directly: they emit labelled values and
collect the values other instances emitted under a label. On the console
an operator relays them by hand, copying printed numbers into
another console; tests and the simulation relay them in memory.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Labels used on the console, one per relayed value kind
NONCE = "ri"
MODULUS = "N"
CIPHERTEXT = "ci"
LOCALITY_PRODUCT = "Mul(c)"
REMOTE_SHARE = "cMi"
ACCEPTED_SHARE = "cMi (accepted)"
FINAL_PRODUCT = "prod(c)"
PLAINTEXT = "m"
TALLY = "tally"


class Channel(ABC):
    """Transport-agnostic relay of labelled values"""

    @abstractmethod
    def emit(self, label: str, value):
        """Publish a value under label"""

    @abstractmethod
    def collect(self, label: str, count: Optional[int] = None) -> List:
        """Return values published under label

        With a count, block until that many values are available.
        Without one, return whatever the collaborator supplied.
        """


class MemoryChannel(Channel):
    """In-process bulletin board: every reader sees every value of a label"""

    def __init__(self):
        self._board: Dict[str, List] = {}
        self._changed = threading.Condition()

    def emit(self, label: str, value):
        with self._changed:
            self._board.setdefault(label, []).append(value)
            self._changed.notify_all()
        logger.debug("Channel: %s = %r", label, value)

    def collect(self, label: str, count: Optional[int] = None) -> List:
        with self._changed:
            if count is None:
                return list(self._board.get(label, []))
            self._changed.wait_for(lambda: len(self._board.get(label, [])) >= count)
            return list(self._board[label][:count])


class ConsoleChannel(Channel):
    """Operator relay: print emitted values, read typed integers"""

    def __init__(self, input_func: Optional[Callable[[str], str]] = None,
                 output_func: Optional[Callable[[str], None]] = None):
        self.input = input_func or input
        self.output = output_func or print

    def emit(self, label: str, value):
        if isinstance(value, (list, tuple)):
            value = " ".join(str(v) for v in value)
        self.output(f"{label} = {value}")

    def collect(self, label: str, count: Optional[int] = None) -> List[int]:
        if count is None:
            self.output(f"Enter {label} values, one per line (empty line to finish):")
        else:
            self.output(f"Enter {count} {label} value(s), one per line:")

        values = []
        while count is None or len(values) < count:
            line = self.input(f"{label}> ").strip()
            if not line:
                if count is None:
                    break
                continue
            try:
                values.append(int(line, 0))
            except ValueError:
                self.output(f"Not an integer: {line!r}")
        return values
