"Serialization of the instance directory"

import json
import os
import tempfile

from typing import Iterable

from .store import Instance

PRETTY_FILENAME = "instances.json"
COMPACT_FILENAME = "instances.min.json"


class SnapshotWriter:
    """Writes the directory twice: indented for humans, compact for clients.

    Files are replaced atomically so a reader never sees a partial snapshot.
    """

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        os.makedirs(self.output_dir, exist_ok=True)
        self.pretty_path = os.path.join(self.output_dir, PRETTY_FILENAME)
        self.compact_path = os.path.join(self.output_dir, COMPACT_FILENAME)

    def write(self, instances: Iterable[Instance]):
        data = [instance.to_dict() for instance in instances]
        self._atomic_write(
            self.pretty_path, json.dumps(data, indent=2, ensure_ascii=False)
        )
        self._atomic_write(
            self.compact_path,
            json.dumps(data, separators=(",", ":"), ensure_ascii=False),
        )

    def _atomic_write(self, path: str, content: str):
        fd, tmp_path = tempfile.mkstemp(
            dir=self.output_dir, prefix=".snapshot-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                tmp_file.write(content)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            os.unlink(tmp_path)
            raise
