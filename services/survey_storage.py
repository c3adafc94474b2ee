from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union


class StorageError(Exception):
    """Raised when a survey record can't be read or written."""


class JsonSurveyStorage:
    """One pretty-printed JSON document per server under ``data_dir``."""

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self.data_dir = Path(data_dir)

    def path_for(self, guild_id: Union[int, str]) -> Path:
        return self.data_dir / f"{guild_id}.json"

    async def read(self, guild_id: Union[int, str]) -> Dict[str, Any]:
        """Return the stored record.

        Raises:
            FileNotFoundError: when the server has no record yet
            StorageError: on any other read or decode failure
        """
        path = self.path_for(guild_id)

        def _read() -> Dict[str, Any]:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)

        try:
            return await asyncio.to_thread(_read)
        except FileNotFoundError:
            raise
        except (OSError, ValueError) as e:
            raise StorageError(f"can't read {path}: {e}") from e

    async def write(self, guild_id: Union[int, str], data: Dict[str, Any]) -> None:
        """Write the record; the previous file stays intact if anything fails."""
        path = self.path_for(guild_id)
        text = json.dumps(data, indent=2, ensure_ascii=False)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"can't write {path}: {e}") from e
