"""Export of generated grids and spawn records."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import numpy as np
import pyarrow as pa
import pyarrow.feather as feather

from ..memory import checksum_array
from .models import SpawnRecord

if TYPE_CHECKING:
    from .context import GenerationContext

SPAWN_SCHEMA = pa.schema(
    [
        ("object_key", pa.string()),
        ("x", pa.float64()),
        ("y", pa.float64()),
        ("z", pa.float64()),
        ("rotation", pa.float64()),
        ("scale", pa.float64()),
        ("group_id", pa.string()),
    ]
)


def _hash_bytes(data: bytes) -> str:
    hasher = hashlib.blake2b()
    hasher.update(data)
    return hasher.hexdigest()


def spawn_table(records: Iterable[SpawnRecord]) -> pa.Table:
    rows = [record.to_dict() for record in records]
    return pa.Table.from_pylist(rows, schema=SPAWN_SCHEMA)


class DatasetWriter:
    """Writes one run's outputs under ``root`` and tracks them in a manifest."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._artifacts: Dict[str, Dict[str, Any]] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def artifacts(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._artifacts)

    def write_array(self, name: str, array: np.ndarray) -> Path:
        array = np.ascontiguousarray(array)
        path = self._root / f"{name}.npy"
        np.save(path, array, allow_pickle=False)
        self._artifacts[name] = {
            "filename": path.name,
            "kind": "grid",
            "shape": list(array.shape),
            "dtype": str(array.dtype),
            "checksum": checksum_array(array),
        }
        return path

    def write_grids(self, ctx: "GenerationContext") -> List[Path]:
        return [
            self.write_array("heights", ctx.heights),
            self.write_array("splat", ctx.splat),
            self.write_array("detail", ctx.detail),
        ]

    def write_spawn_records(self, records: Iterable[SpawnRecord], name: str = "spawns") -> Path:
        table = spawn_table(records)
        path = self._root / f"{name}.arrow"
        feather.write_feather(table, path)
        self._artifacts[name] = {
            "filename": path.name,
            "kind": "arrow",
            "rows": table.num_rows,
            "schema": table.schema.to_string(),
            "checksum": _hash_bytes(path.read_bytes()),
        }
        return path

    def write_json(self, name: str, value: Any) -> Path:
        encoded = json.dumps(value, sort_keys=True, default=str).encode("utf8")
        path = self._root / f"{name}.json"
        path.write_bytes(encoded)
        self._artifacts[name] = {"filename": path.name, "kind": "json", "checksum": _hash_bytes(encoded)}
        return path

    def write_manifest(self, extra: Optional[Dict[str, Any]] = None) -> Path:
        payload: Dict[str, Any] = {"artifacts": self._artifacts}
        if extra:
            payload.update(extra)
        path = self._root / "manifest.json"
        path.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str), encoding="utf8")
        return path

    def write_context(self, ctx: "GenerationContext") -> Path:
        """Grids, spawn records, biome cells and a manifest for ``ctx``."""
        self.write_grids(ctx)
        self.write_spawn_records(ctx.spawn_records)
        if ctx.biome_map is not None:
            cells = [
                {"index": cell.index, "biome_type": cell.biome_type, "x": cell.center[0], "z": cell.center[1]}
                for cell in ctx.biome_map.cells
            ]
            self.write_json("biome_cells", {"cells": cells, "metadata": ctx.biome_map.metadata})
        return self.write_manifest({"config": ctx.config.to_dict(), "bounds": ctx.bounds.to_dict()})


def read_spawn_records(path: Path) -> List[SpawnRecord]:
    table = feather.read_table(path)
    return [
        SpawnRecord(
            object_key=row["object_key"],
            position=(row["x"], row["y"], row["z"]),
            rotation=row["rotation"],
            scale=row["scale"],
            group_id=row["group_id"],
        )
        for row in table.to_pylist()
    ]


__all__ = ["DatasetWriter", "SPAWN_SCHEMA", "read_spawn_records", "spawn_table"]
