from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .logging_config import logger
from .schemas import PinRecord


class PinStateStore:
    """
    JSON file holding the identity of the pinned status message.

    Absence is a valid initial state. The record is never deleted by the
    service; removing the file by hand is the only reset path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> PinRecord | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read pin state %s: %s", self.path, exc)
            return None

        try:
            return PinRecord.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring corrupt pin state %s: %s", self.path, exc)
            return None

    def save(self, record: PinRecord) -> None:
        """
        Replace the stored record atomically (temp file + rename).
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record.model_dump(), fh, indent=2)
                fh.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


__all__ = ["PinStateStore"]
