import logging
import math
import os
import threading
import time
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Tuple

from src.helpers import IdentifierCodec
from src.models import PasteRecord

logger = logging.getLogger(__name__)

DATA_DIR = os.getenv("DATA_DIR", "/var/lib/paast")
PASTE_COOLDOWN_SECONDS = int(os.getenv("PASTE_COOLDOWN_SECONDS", 5))

COUNTER_FILENAME = "counter.dat"
PASTES_DIRNAME = "pastes"


def readCounter(counter_file: BinaryIO) -> int:
    content = counter_file.read()
    try:
        return int(content.decode("ascii").strip())
    except ValueError:
        if content:
            logger.warning(f"Unparseable counter content {content[:32]!r}, starting from 0")
        return 0


def writeCounter(counter_file: BinaryIO, value: int):
    counter_file.seek(0)
    counter_file.write(str(value).encode("ascii"))
    counter_file.truncate()
    counter_file.flush()
    os.fsync(counter_file.fileno())


class PasteStore:
    """Durable paste storage keyed by ``<ordinal:09d>_<identifier>`` file names.

    Allocation runs under a single lock covering the counter update and the
    content write. Reads take no lock: an identifier is only handed out after
    its content is on disk.
    """

    def __init__(self, codec: IdentifierCodec, data_dir: str = DATA_DIR):
        self.codec = codec
        self.data_dir = Path(data_dir)
        self.counter_path = self.data_dir / COUNTER_FILENAME
        self.pastes_dir = self.data_dir / PASTES_DIRNAME
        self._lock = threading.Lock()

        self.pastes_dir.mkdir(parents=True, exist_ok=True)

    def paste_path(self, ordinal: int, identifier: str) -> Path:
        return self.pastes_dir / f"{ordinal:09d}_{identifier}"

    def current_ordinal(self) -> int:
        try:
            with open(self.counter_path, "rb") as counter_file:
                return readCounter(counter_file)
        except FileNotFoundError:
            return 0

    def allocate(self, payload: bytes) -> PasteRecord:
        if not payload:
            raise ValueError("Refusing to allocate an ordinal for an empty paste")

        with self._lock:
            fd = os.open(self.counter_path, os.O_CREAT | os.O_RDWR, 0o644)
            with os.fdopen(fd, "r+b") as counter_file:
                ordinal = readCounter(counter_file) + 1
                # The ordinal is burned from here on, even if the content write fails
                writeCounter(counter_file, ordinal)

            identifier = self.codec.encode(ordinal)
            path = self.paste_path(ordinal, identifier)
            try:
                with open(path, "xb") as paste_file:
                    paste_file.write(payload)
                    paste_file.flush()
                    os.fsync(paste_file.fileno())
            except FileExistsError:
                # Left in place, it belongs to an earlier paste
                raise
            except OSError:
                path.unlink(missing_ok=True)
                raise

        return PasteRecord(ordinal=ordinal, identifier=identifier, size=len(payload))

    def resolve(self, identifier: str) -> Optional[bytes]:
        ordinal = self.codec.decode(identifier)
        if ordinal is None:
            return None

        try:
            with open(self.paste_path(ordinal, identifier), "rb") as paste_file:
                return paste_file.read()
        except FileNotFoundError:
            return None

    def find_by_ordinal(self, ordinal: int) -> Optional[PasteRecord]:
        for path in self.pastes_dir.glob(f"{ordinal:09d}_*"):
            identifier = path.name.partition("_")[2]
            return PasteRecord(
                ordinal=ordinal, identifier=identifier, size=path.stat().st_size
            )
        return None


class SubmissionThrottle:
    """Per-client cooldown between accepted paste submissions.

    Entries live for the process lifetime; the table is never pruned.
    """

    def __init__(
        self,
        cooldown_seconds: float = PASTE_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._last_accepted: Dict[str, float] = {}
        self._lock = threading.Lock()

    def allow(self, client_key: str) -> Tuple[bool, int]:
        with self._lock:
            now = self._clock()
            last_accepted = self._last_accepted.get(client_key)
            if last_accepted is not None:
                remaining = last_accepted + self.cooldown_seconds - now
                if remaining > 0:
                    return False, math.ceil(remaining)

            self._last_accepted[client_key] = now
            return True, 0
