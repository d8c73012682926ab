# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Storage for the intermediate artifacts written between jobs and phases.

Every artifact is written once by one job and read by the next.  Records are
``(key, value)`` pairs, where keys are integer codes or
:class:`~distrec.data.records.StatKey` markers and values are sparse vectors
or one of the record types in :mod:`distrec.data.records`.
"""

# pyright: basic
from __future__ import annotations

import json
from os import PathLike
from pathlib import Path
from typing import Any, Hashable, Iterable, Iterator

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from distrec.logging import get_logger

from .records import (
    ColumnStat,
    PartialScores,
    Preference,
    RecommendedItems,
    ScoresOrPrefs,
    StatKey,
    StatKind,
    VectorAndPrefs,
    VectorOrPref,
)
from .vectors import SparseVector
from .vocab import Vocabulary

_log = get_logger(__name__)

Record = tuple[Hashable, Any]


class ArtifactStore:
    """
    In-memory artifact store.  Artifacts are lists of records; scalars and
    ID indices are kept alongside.
    """

    _records: dict[str, list[Record]]
    _scalars: dict[str, Any]
    _vocabs: dict[str, Vocabulary]

    def __init__(self):
        self._records = {}
        self._scalars = {}
        self._vocabs = {}

    def write(self, name: str, records: Iterable[Record]) -> int:
        """
        Write an artifact, replacing any existing artifact of the same name.

        Returns:
            The number of records written.
        """
        recs = list(records)
        self._records[name] = recs
        _log.debug("wrote artifact", artifact=name, n_records=len(recs))
        return len(recs)

    def read(self, name: str) -> Iterator[Record]:
        """
        Read an artifact's records.

        Raises:
            KeyError: if the artifact does not exist.
        """
        if name not in self._records:
            raise KeyError(f"artifact {name} does not exist")
        return iter(self._records[name])

    def exists(self, name: str) -> bool:
        return name in self._records

    def count_records(self, name: str) -> int:
        "Count the records in an artifact."
        if name not in self._records:
            raise KeyError(f"artifact {name} does not exist")
        return len(self._records[name])

    def delete(self, name: str):
        self._records.pop(name, None)

    def write_scalar(self, name: str, value: int | float | str):
        self._scalars[name] = value

    def read_scalar(self, name: str) -> Any:
        if name not in self._scalars:
            raise KeyError(f"scalar {name} does not exist")
        return self._scalars[name]

    def write_vocab(self, name: str, vocab: Vocabulary):
        self._vocabs[name] = vocab

    def read_vocab(self, name: str) -> Vocabulary:
        if name not in self._vocabs:
            raise KeyError(f"ID index {name} does not exist")
        return self._vocabs[name]

    def has_vocab(self, name: str) -> bool:
        return name in self._vocabs


RECORD_SCHEMA = pa.schema(
    [
        pa.field("key", pa.int64()),
        pa.field("stat", pa.string()),
        pa.field("kind", pa.string(), nullable=False),
        pa.field("ref", pa.int64()),
        pa.field("weight", pa.float64()),
        pa.field("label", pa.string()),
        pa.field("a_idx", pa.list_(pa.int64())),
        pa.field("a_val", pa.list_(pa.float64())),
        pa.field("b_idx", pa.list_(pa.int64())),
        pa.field("b_val", pa.list_(pa.float64())),
        pa.field("ids", pa.list_(pa.string())),
    ]
)
"""
Arrow schema shared by every persisted artifact.  The ``kind`` column says
which record type a row holds; the other columns are used as that type needs.
"""


class ParquetStore(ArtifactStore):
    """
    Artifact store persisting each artifact as a Parquet file in a directory,
    so a later run can resume from the outputs of completed phases.

    Args:
        path:
            The directory holding the artifacts.  Created if missing.
    """

    path: Path

    def __init__(self, path: str | PathLike[str]):
        super().__init__()
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)

    def _file(self, name: str, suffix: str = ".parquet") -> Path:
        return self.path / (name.replace("/", "--") + suffix)

    def write(self, name: str, records: Iterable[Record]) -> int:
        rows = [encode_record(k, v) for k, v in records]
        table = pa.Table.from_pylist(rows, schema=RECORD_SCHEMA)
        pq.write_table(table, self._file(name))
        _log.debug("wrote artifact", artifact=name, n_records=len(rows), path=str(self.path))
        return len(rows)

    def read(self, name: str) -> Iterator[Record]:
        file = self._file(name)
        if not file.exists():
            raise KeyError(f"artifact {name} does not exist")
        table = pq.read_table(file, schema=RECORD_SCHEMA)
        return (decode_record(row) for row in table.to_pylist())

    def exists(self, name: str) -> bool:
        return self._file(name).exists()

    def count_records(self, name: str) -> int:
        file = self._file(name)
        if not file.exists():
            raise KeyError(f"artifact {name} does not exist")
        return pq.ParquetFile(file).metadata.num_rows

    def delete(self, name: str):
        self._file(name).unlink(missing_ok=True)

    def write_scalar(self, name: str, value: int | float | str):
        with self._file(name, ".json").open("w") as f:
            json.dump({"value": value}, f)

    def read_scalar(self, name: str) -> Any:
        file = self._file(name, ".json")
        if not file.exists():
            raise KeyError(f"scalar {name} does not exist")
        with file.open("r") as f:
            return json.load(f)["value"]

    def write_vocab(self, name: str, vocab: Vocabulary):
        vocab.to_frame().to_parquet(self._file(name, ".vocab.parquet"), index=False)

    def read_vocab(self, name: str) -> Vocabulary:
        file = self._file(name, ".vocab.parquet")
        if not file.exists():
            raise KeyError(f"ID index {name} does not exist")
        return Vocabulary.from_frame(pd.read_parquet(file), name.rsplit("/", 1)[-1])

    def has_vocab(self, name: str) -> bool:
        return self._file(name, ".vocab.parquet").exists()


def _vec_cols(prefix: str, vec: SparseVector | None) -> dict[str, Any]:
    if vec is None:
        return {}
    return {f"{prefix}_idx": vec.indices.tolist(), f"{prefix}_val": vec.values.tolist()}


def _vec(row: dict[str, Any], prefix: str) -> SparseVector | None:
    idx = row[f"{prefix}_idx"]
    if idx is None:
        return None
    return SparseVector(idx, row[f"{prefix}_val"])


def encode_record(key: Hashable, value: Any) -> dict[str, Any]:
    """
    Encode a record as a row of :data:`RECORD_SCHEMA`.
    """
    row: dict[str, Any] = {}
    if isinstance(key, StatKey):
        row["stat"] = key.kind.value
    else:
        row["key"] = int(key)  # type: ignore

    match value:
        case SparseVector():
            row["kind"] = "vector"
            row |= _vec_cols("a", value)
        case ColumnStat(measure=measure, vector=vec):
            row["kind"] = "column_stat"
            row["label"] = measure
            row |= _vec_cols("a", vec)
        case VectorOrPref(vector=vec, entity=entity, value=pref):
            row["kind"] = "vector_or_pref"
            row |= _vec_cols("a", vec)
            row["ref"] = entity
            row["weight"] = pref
        case VectorAndPrefs(vector=vec, entities=ents, values=vals):
            row["kind"] = "vector_and_prefs"
            row |= _vec_cols("a", vec)
            row["b_idx"] = np.asarray(ents).tolist()
            row["b_val"] = np.asarray(vals).tolist()
        case PartialScores(numerators=nums, denominators=dens):
            row["kind"] = "partial_scores"
            row |= _vec_cols("a", nums)
            row |= _vec_cols("b", dens)
        case ScoresOrPrefs(scores=scores, known=known):
            row["kind"] = "scores_or_prefs"
            row |= _vec_cols("a", scores)
            row |= _vec_cols("b", known)
        case RecommendedItems(items=items, scores=scores):
            row["kind"] = "recommended"
            row["label"] = _id_type(items)
            row["ids"] = [str(i) for i in items]
            row["a_val"] = np.asarray(scores).tolist()
        case Preference(user=user, item=item, value=pref):
            row["kind"] = "preference"
            row["ref"] = user
            row["a_idx"] = [item]
            row["weight"] = pref
        case _:
            raise TypeError(f"cannot persist record of type {type(value)}")

    return row


def decode_record(row: dict[str, Any]) -> Record:
    """
    Decode a row of :data:`RECORD_SCHEMA` back into a record.
    """
    if row["stat"] is not None:
        key: Hashable = StatKey(StatKind(row["stat"]))
    else:
        key = row["key"]

    value: Any
    match row["kind"]:
        case "vector":
            value = _vec(row, "a")
        case "column_stat":
            value = ColumnStat(row["label"], _vec(row, "a"))  # type: ignore
        case "vector_or_pref":
            value = VectorOrPref(_vec(row, "a"), row["ref"], row["weight"])
        case "vector_and_prefs":
            value = VectorAndPrefs(
                _vec(row, "a"),  # type: ignore
                np.asarray(row["b_idx"], dtype=np.int64),
                np.asarray(row["b_val"], dtype=np.float64),
            )
        case "partial_scores":
            value = PartialScores(_vec(row, "a"), _vec(row, "b"))  # type: ignore
        case "scores_or_prefs":
            value = ScoresOrPrefs(_vec(row, "a"), _vec(row, "b"))
        case "recommended":
            conv = {"int": int, "float": float}.get(row["label"], str)
            value = RecommendedItems(
                [conv(i) for i in row["ids"]], np.asarray(row["a_val"], dtype=np.float64)
            )
        case "preference":
            value = Preference(row["ref"], row["a_idx"][0], row["weight"])
        case kind:
            raise ValueError(f"unknown record kind {kind}")

    return key, value


def _id_type(items: list[Any]) -> str:
    if all(isinstance(i, (int, np.integer)) for i in items):
        return "int"
    elif all(isinstance(i, (float, np.floating)) for i in items):
        return "float"
    else:
        return "str"
