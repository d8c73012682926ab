# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
In-process implementation of the execution substrate.
"""

# pyright: basic
from __future__ import annotations

from collections import defaultdict
from typing import Any, Hashable

from typing_extensions import override

from distrec.data.records import key_order
from distrec.data.store import ArtifactStore, Record
from distrec.logging import Stopwatch, get_logger, trace
from distrec.random import RNGInput, random_generator

from ._base import Counters, JobResult, JobSpec, Reducer, Substrate, TaskContext
from .chunking import WorkChunks

_log = get_logger(__name__)


class LocalSubstrate(Substrate):
    """
    Runs jobs sequentially in the current process, with the same observable
    semantics as a distributed substrate: inputs are split into partitions,
    each partition gets its own mapper instance, map output is grouped by key,
    and each reduce partition gets its own reducer instance.

    Args:
        store:
            The artifact store.  Defaults to a new in-memory store.
        partitions:
            The number of map partitions (``None`` to size partitions from the
            input).
        reduce_partitions:
            The number of reduce partitions.
        shuffle:
            If not ``None``, a seed or generator used to shuffle the order in
            which values arrive at reducers, to exercise order independence.
    """

    partitions: int | None
    reduce_partitions: int
    history: list[JobResult]

    def __init__(
        self,
        store: ArtifactStore | None = None,
        *,
        partitions: int | None = None,
        reduce_partitions: int = 1,
        shuffle: RNGInput = None,
    ):
        self.store = store if store is not None else ArtifactStore()
        self.partitions = partitions
        self.reduce_partitions = max(reduce_partitions, 1)
        self._rng = random_generator(shuffle) if shuffle is not None else None
        self.history = []

    @override
    def run(self, job: JobSpec) -> JobResult:
        log = _log.bind(job=job.name)
        timer = Stopwatch()
        counters = Counters()
        log.info("starting job", inputs=job.inputs, output=job.output)

        try:
            output = self._execute(job, counters)
            n = self.store.write(job.output, output)
        except Exception as e:
            log.error("job failed after %s", timer, exc_info=e)
            result = JobResult(job.name, False, counters, error=e)
        else:
            log.info("[%s] finished job", timer, n_records=n, counters=counters.as_dict())
            result = JobResult(job.name, True, counters, records_written=n)

        self.history.append(result)
        return result

    def _execute(self, job: JobSpec, counters: Counters) -> list[Record]:
        log = _log.bind(job=job.name)

        map_out: list[Record] = []
        part = 0
        for name in job.inputs:
            records = list(self.store.read(name))
            chunks = WorkChunks.create(len(records), self.partitions)
            log.debug(
                "mapping %d records from %s in %d partitions",
                len(records),
                name,
                chunks.chunk_count,
            )

            mapper_cls = job.mapper_for(name)
            for chunk in chunks.split(records):
                out: list[Record] = []
                ctx = self._context(job, part, counters, out)
                mapper = mapper_cls()
                mapper.setup(ctx)
                for key, value in chunk:
                    mapper.map(key, value, ctx)
                mapper.cleanup(ctx)
                trace(log, "map partition %d emitted %d records", part, len(out))

                if job.combiner is not None:
                    out = self._reduce(job, job.combiner, out, part, counters)
                map_out.extend(out)
                part += 1

        if job.reducer is None:
            return map_out

        by_part: dict[int, list[Record]] = defaultdict(list)
        for rec in map_out:
            by_part[self._reduce_partition(rec[0])].append(rec)

        output: list[Record] = []
        for part in sorted(by_part.keys()):
            output.extend(self._reduce(job, job.reducer, by_part[part], part, counters))
        return output

    def _reduce(
        self,
        job: JobSpec,
        reducer_cls: type[Reducer],
        records: list[Record],
        part: int,
        counters: Counters,
    ) -> list[Record]:
        groups: dict[Hashable, list[Any]] = defaultdict(list)
        for key, value in records:
            groups[key].append(value)

        out: list[Record] = []
        ctx = self._context(job, part, counters, out)
        reducer = reducer_cls()
        reducer.setup(ctx)
        for key in sorted(groups.keys(), key=key_order):
            values = groups[key]
            if self._rng is not None:
                values = [values[i] for i in self._rng.permutation(len(values))]
            reducer.reduce(key, iter(values), ctx)
        reducer.cleanup(ctx)
        return out

    def _reduce_partition(self, key: Hashable) -> int:
        if isinstance(key, int):
            return key % self.reduce_partitions
        else:
            return 0

    def _context(self, job: JobSpec, part: int, counters: Counters, out: list[Record]):
        def emit(key: Hashable, value: Any):
            out.append((key, value))

        return TaskContext(job.name, part, job.conf, counters, self.store, emit)
