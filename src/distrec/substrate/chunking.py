# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Splitting job inputs into map partitions.
"""

import math
from typing import Iterator, NamedTuple, Sequence, TypeVar

T = TypeVar("T")

MIN_CHUNKABLE = 100
TGT_CHUNK_LIMIT = 1000
MIN_CHUNK_SIZE = 100
MAX_CHUNK_SIZE = 4000


class WorkChunks(NamedTuple):
    """
    The partitioning of a job's input records.
    """

    total: int
    chunk_size: int
    chunk_count: int

    @classmethod
    def create(cls, n_records: int, partitions: int | None = None):
        """
        Compute the partitioning for ``n_records`` input records.  With an
        explicit partition count, records are spread evenly over that many
        partitions; otherwise the chunk size grows with the input size.
        """
        if n_records == 0:
            return cls(0, 0, 0)

        if partitions is not None:
            count = min(max(partitions, 1), n_records)
            csize = int(math.ceil(n_records / count))
            count = int(math.ceil(n_records / csize))
        elif n_records < MIN_CHUNKABLE:
            csize = n_records
            count = 1
        else:
            csize = max(n_records // TGT_CHUNK_LIMIT, MIN_CHUNK_SIZE)
            if csize > MAX_CHUNK_SIZE:
                csize = MAX_CHUNK_SIZE

            count = int(math.ceil(n_records / csize))

        return cls(n_records, csize, count)

    def split(self, records: Sequence[T]) -> Iterator[Sequence[T]]:
        "Split a sequence of records into this chunking's partitions."
        if self.chunk_count == 0:
            return
        for start in range(0, self.total, self.chunk_size):
            yield records[start : start + self.chunk_size]
