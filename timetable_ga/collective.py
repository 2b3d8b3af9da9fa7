"""
Operaciones colectivas sobre bytes para repartir datos entre ranks.

Todas las funciones reciben un comunicador con la API de buffers de mpi4py
(``Get_rank``, ``Get_size``, ``Bcast``, ``Scatter``, ``Gather``): sirve
``MPI.COMM_WORLD`` o un ``LocalComm`` de ``local_comm``. Cada llamada es
bloqueante y todos los ranks deben hacerla en el mismo orden.

Las colecciones viajan con un ``FixedWidthCodec``: todos los elementos
ocupan el mismo número de bytes, lo que permite usar scatter/gather de
trozos iguales.
"""
import logging
import pickle
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

import numpy as np

from .encoding import FixedWidthCodec

logger = logging.getLogger(__name__)

T = TypeVar("T")

ROOT_RANK = 0


class CollectiveError(RuntimeError):
    pass


@dataclass(frozen=True)
class RankCommand(Generic[T]):
    """Cálculo que solo ejecuta ``owner_rank``; el resto espera el resultado."""

    produce: Callable[[], T]
    owner_rank: int = ROOT_RANK
    placeholder: Optional[T] = None


def replicate_scalar(value: Optional[T], comm, owner_rank: int = ROOT_RANK) -> T:
    """El dueño serializa ``value``; primero viaja la longitud y luego los bytes."""
    rank = comm.Get_rank()
    length = np.zeros(1, dtype=np.int64)

    if rank == owner_rank:
        payload = np.frombuffer(pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL), dtype=np.uint8).copy()
        length[0] = len(payload)
    comm.Bcast(length, root=owner_rank)

    if rank != owner_rank:
        payload = np.empty(int(length[0]), dtype=np.uint8)
    comm.Bcast(payload, root=owner_rank)

    if rank == owner_rank:
        return value
    return pickle.loads(payload.tobytes())


def execute_and_replicate(command: RankCommand[T], comm) -> T:
    if comm.Get_rank() == command.owner_rank:
        value = command.produce()
    else:
        value = command.placeholder
    return replicate_scalar(value, comm, command.owner_rank)


def scatter_even(
    items: Sequence[T],
    codec: FixedWidthCodec[T],
    comm,
    owner_rank: int = ROOT_RANK,
) -> List[T]:
    """
    Reparte ``items`` (del dueño) en trozos contiguos del mismo tamaño.

    Todos los ranks conocen ``len(items)``: la colección está replicada.
    """
    rank, size = comm.Get_rank(), comm.Get_size()
    if len(items) % size != 0:
        raise CollectiveError(
            f"No se pueden repartir {len(items)} elementos entre {size} ranks en partes iguales"
        )
    per_rank = len(items) // size

    width = np.zeros(1, dtype=np.int64)
    sendbuf = None
    if rank == owner_rank:
        sendbuf = codec.encode_many(items)
        width[0] = codec.width
    comm.Bcast(width, root=owner_rank)
    if int(width[0]) != codec.width:
        raise CollectiveError(f"Rank {rank}: ancho {codec.width} distinto al del dueño ({int(width[0])})")

    recvbuf = np.empty(per_rank * codec.width, dtype=np.uint8)
    comm.Scatter(sendbuf, recvbuf, root=owner_rank)
    logger.debug("rank %d recibió %d elementos de %d bytes", rank, per_rank, codec.width)
    return codec.decode_many(recvbuf)


def gather_and_replicate(
    shard: Sequence[T],
    codec: FixedWidthCodec[T],
    comm,
    owner_rank: int = ROOT_RANK,
) -> List[T]:
    """Junta los trozos en el dueño y replica la colección completa a todos."""
    rank, size = comm.Get_rank(), comm.Get_size()
    sendbuf = codec.encode_many(shard)

    count = np.array([len(shard)], dtype=np.int64)
    counts = np.empty(size, dtype=np.int64) if rank == owner_rank else None
    comm.Gather(count, counts, root=owner_rank)

    gathered = None
    if rank == owner_rank:
        if np.any(counts != counts[0]):
            raise CollectiveError(f"Trozos de distinto tamaño por rank: {counts.tolist()}")
        gathered = np.empty(size * len(sendbuf), dtype=np.uint8)
    comm.Gather(sendbuf, gathered, root=owner_rank)

    merged = codec.decode_many(gathered) if rank == owner_rank else None
    return replicate_scalar(merged, comm, owner_rank)
