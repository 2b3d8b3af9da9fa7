# timetable_ga/random_source.py
import threading
from typing import Optional

import numpy as np


class RandomSource:
    """
    Proveedor explícito de aleatoriedad.

    Cada llamada a ``generator()`` entrega un ``np.random.Generator`` nuevo,
    sembrado con un hijo independiente de la SeedSequence. Así cada tarea
    paralela tiene su propio estado y nada se comparte entre hilos.
    Con ``seed`` la corrida es reproducible por rank. Sin semilla la entropía
    del sistema se toma una sola vez, al construir la SeedSequence; los
    generadores posteriores son hijos de esa secuencia (independientes entre
    sí, pero sin volver a leer entropía).
    """

    def __init__(self, seed: Optional[int] = None, rank: int = 0):
        self._seq = np.random.SeedSequence(entropy=seed, spawn_key=(rank,))
        self._lock = threading.Lock()

    def generator(self) -> np.random.Generator:
        with self._lock:
            child = self._seq.spawn(1)[0]
        return np.random.default_rng(child)

