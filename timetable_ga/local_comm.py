"""
Comunicador en memoria: un hilo por rank.

Implementa el subconjunto de la API de buffers de mpi4py que usa
``collective`` (Bcast, Scatter, Gather, Barrier) sobre una tabla de slots
compartida y un ``threading.Barrier``. Sirve para correr sin MPI y para
las pruebas.
"""
import threading
from typing import Any, Callable, List

import numpy as np


class _SharedState:
    def __init__(self, size: int):
        self.size = size
        self.barrier = threading.Barrier(size)
        self.slots: List[Any] = [None] * size


class LocalComm:
    def __init__(self, state: _SharedState, rank: int):
        self._state = state
        self._rank = rank

    def Get_rank(self) -> int:
        return self._rank

    def Get_size(self) -> int:
        return self._state.size

    def Barrier(self) -> None:
        self._state.barrier.wait()

    def Bcast(self, buf: np.ndarray, root: int = 0) -> None:
        if self._rank == root:
            self._state.slots[root] = np.array(buf, copy=True)
        self.Barrier()
        if self._rank != root:
            src = self._state.slots[root]
            if src.shape != buf.shape:
                raise ValueError(f"Bcast: buffer de {buf.shape}, el dueño envió {src.shape}")
            np.copyto(buf, src)
        self.Barrier()

    def Scatter(self, sendbuf, recvbuf: np.ndarray, root: int = 0) -> None:
        if self._rank == root:
            self._state.slots[root] = np.array(sendbuf, copy=True).reshape(self._state.size, -1)
        self.Barrier()
        chunk = self._state.slots[root][self._rank]
        if chunk.size != recvbuf.size:
            raise ValueError(f"Scatter: buffer de {recvbuf.size}, trozo de {chunk.size}")
        np.copyto(recvbuf, chunk.reshape(recvbuf.shape))
        self.Barrier()

    def Gather(self, sendbuf: np.ndarray, recvbuf, root: int = 0) -> None:
        self._state.slots[self._rank] = np.array(sendbuf, copy=True)
        self.Barrier()
        if self._rank == root:
            np.copyto(recvbuf.reshape(self._state.size, -1), np.stack(self._state.slots))
        self.Barrier()


class LocalWorld:
    """
    Grupo de ``size`` ranks en el mismo proceso.

    ``run(fn)`` ejecuta ``fn(comm, *args)`` en un hilo por rank y devuelve
    los resultados ordenados por rank. Si un rank falla se rompe la barrera
    (los demás también fallan) y se relanza el primer error real.
    Tras un fallo el grupo queda inutilizable.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("Se necesita al menos un rank")
        self.size = size
        self._state = _SharedState(size)
        self.comms = [LocalComm(self._state, rank) for rank in range(size)]

    def run(self, fn: Callable[..., Any], *args) -> List[Any]:
        results: List[Any] = [None] * self.size
        errors: List[Any] = [None] * self.size

        def target(rank: int):
            try:
                results[rank] = fn(self.comms[rank], *args)
            except Exception as exc:
                errors[rank] = exc
                self._state.barrier.abort()

        threads = [
            threading.Thread(target=target, args=(rank,), name=f"rank-{rank}")
            for rank in range(self.size)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        failures = [e for e in errors if e is not None]
        if failures:
            real = [e for e in failures if not isinstance(e, threading.BrokenBarrierError)]
            raise (real or failures)[0]
        return results
