# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

# pyright: basic
from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, Iterator, TypeVar

from typing_extensions import override

from distrec.data.store import ArtifactStore, Record
from distrec.data.vocab import Vocabulary
from distrec.diagnostics import ConfigurationError

T = TypeVar("T")
_MISSING = object()


class Counters:
    """
    Monotonic named counters, used as a metrics sink by job tasks.  One
    instance is shared by reference among all tasks of a job.
    """

    _counts: Counter[str]

    def __init__(self):
        self._counts = Counter()

    def increment(self, name: str, amount: int = 1):
        if amount < 0:
            raise ValueError("counters cannot decrease")
        self._counts[name] += amount

    def get(self, name: str) -> int:
        return self._counts[name]

    def update(self, other: Counters):
        self._counts.update(other._counts)

    def as_dict(self) -> dict[str, int]:
        return dict(self._counts)

    def __repr__(self):
        return f"<Counters {self.as_dict()}>"


class TaskContext:
    """
    The context of one map or reduce task.  Tasks emit output through the
    context, and read their configuration and any side inputs from it.

    Attributes:
        job:
            The name of the job.
        partition:
            The partition number of this task.
        conf:
            The job configuration.
        counters:
            The job's counters.
    """

    job: str
    partition: int
    conf: dict[str, Any]
    counters: Counters
    _store: ArtifactStore
    _emit: Callable[[Hashable, Any], None]

    def __init__(
        self,
        job: str,
        partition: int,
        conf: dict[str, Any],
        counters: Counters,
        store: ArtifactStore,
        emit: Callable[[Hashable, Any], None],
    ):
        self.job = job
        self.partition = partition
        self.conf = conf
        self.counters = counters
        self._store = store
        self._emit = emit

    def emit(self, key: Hashable, value: Any):
        "Emit an output record."
        self._emit(key, value)

    def read(self, name: str) -> Iterator[Record]:
        "Read a side input artifact."
        return self._store.read(name)

    def vocab(self, name: str) -> Vocabulary | None:
        "Read an ID index side input, or ``None`` if it was never written."
        if self._store.has_vocab(name):
            return self._store.read_vocab(name)
        else:
            return None

    def param(self, name: str, convert: Callable[[Any], T] = str, default: Any = _MISSING) -> T:
        """
        Look up a job parameter.

        Raises:
            ConfigurationError:
                if the parameter is missing and has no default, or cannot be
                converted.
        """
        if name not in self.conf or self.conf[name] is None:
            if default is _MISSING:
                raise ConfigurationError(f"job {self.job}: missing parameter {name}")
            return default

        raw = self.conf[name]
        try:
            return convert(raw)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"job {self.job}: invalid value {raw!r} for {name}") from e


class Mapper(ABC):
    """
    Base class for map tasks.  A fresh instance processes each partition, so
    instance attributes are partition-local accumulators.
    """

    def setup(self, ctx: TaskContext) -> None:
        """
        Read configuration before any records are processed.
        """
        pass

    @abstractmethod
    def map(self, key: Hashable, value: Any, ctx: TaskContext) -> None:
        raise NotImplementedError()

    def cleanup(self, ctx: TaskContext) -> None:
        """
        Flush partition-local state after the last record.
        """
        pass


class Reducer(ABC):
    """
    Base class for reduce (and combine) tasks.  The substrate calls
    :meth:`reduce` once per distinct key, with the values in no particular
    order.
    """

    def setup(self, ctx: TaskContext) -> None:
        pass

    @abstractmethod
    def reduce(self, key: Hashable, values: Iterator[Any], ctx: TaskContext) -> None:
        raise NotImplementedError()

    def cleanup(self, ctx: TaskContext) -> None:
        pass


class IdentityMapper(Mapper):
    @override
    def map(self, key: Hashable, value: Any, ctx: TaskContext) -> None:
        ctx.emit(key, value)


class IdentityReducer(Reducer):
    @override
    def reduce(self, key: Hashable, values: Iterator[Any], ctx: TaskContext) -> None:
        for value in values:
            ctx.emit(key, value)


@dataclass
class JobSpec:
    """
    Description of one map/reduce job.

    Attributes:
        name:
            The job name.
        inputs:
            The names of the input artifacts; their records are concatenated.
        output:
            The name of the output artifact.
        mapper:
            The mapper class, instantiated once per map partition.
        reducer:
            The reducer class, or ``None`` for a map-only job.
        combiner:
            An optional reducer class applied to each map partition's output.
        input_mappers:
            Mapper classes for specific inputs, overriding :attr:`mapper` so
            one job can join differently-shaped streams.
        conf:
            The job parameters, available to tasks as
            :attr:`TaskContext.conf`.
    """

    name: str
    inputs: list[str]
    output: str
    mapper: type[Mapper] = IdentityMapper
    reducer: type[Reducer] | None = IdentityReducer
    combiner: type[Reducer] | None = None
    input_mappers: dict[str, type[Mapper]] = field(default_factory=dict)
    conf: dict[str, Any] = field(default_factory=dict)

    def mapper_for(self, input: str) -> type[Mapper]:
        "Get the mapper class for an input."
        return self.input_mappers.get(input, self.mapper)


@dataclass
class JobResult:
    """
    The outcome of running a job.
    """

    job: str
    succeeded: bool
    counters: Counters
    records_written: int = 0
    error: BaseException | None = None

    def __bool__(self):
        return self.succeeded


class Substrate(ABC):
    """
    Interface to the execution substrate that schedules tasks, groups emitted
    records by key between the map and reduce sides, and persists job outputs.

    Attributes:
        store:
            The artifact store jobs read from and write to.
    """

    store: ArtifactStore

    @abstractmethod
    def run(self, job: JobSpec) -> JobResult:
        """
        Run a job to completion.  Task failures are reported through the
        result's ``succeeded`` flag rather than raised.
        """
        raise NotImplementedError()

    def run_all(self, jobs: Iterable[JobSpec]) -> list[JobResult]:
        """
        Run jobs in order, stopping at the first failure.
        """
        results = []
        for job in jobs:
            res = self.run(job)
            results.append(res)
            if not res.succeeded:
                break
        return results
