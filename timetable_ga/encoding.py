"""
Codificación de ancho fijo para transferir individuos entre ranks.

Layout de un individuo (int32 little-endian):
    fitness | len(periodo 0) ... len(periodo P-1) | genes del periodo 0 ... P-1

Con P periodos y G genes el ancho es 4 * (1 + P + G) bytes. Si el individuo
cumple la completitud (G = número de tuplas) el ancho es el mismo para toda
la población, que es lo que necesitan scatter/gather.
"""
from typing import Generic, List, Sequence, TypeVar

import numpy as np

from .model import Chromosome, Individual

T = TypeVar("T")

_INT32 = np.dtype("<i4")


class EncodingError(ValueError):
    pass


class FixedWidthCodec(Generic[T]):
    """Todo valor codificado ocupa exactamente ``width`` bytes."""

    width: int

    def encode(self, item: T) -> bytes:
        raise NotImplementedError

    def decode(self, buf: bytes) -> T:
        raise NotImplementedError

    def encode_many(self, items: Sequence[T]) -> np.ndarray:
        out = np.empty(len(items) * self.width, dtype=np.uint8)
        for i, item in enumerate(items):
            raw = self.encode(item)
            if len(raw) != self.width:
                raise EncodingError(
                    f"Elemento {i} ocupa {len(raw)} bytes, se esperaban {self.width}"
                )
            out[i * self.width:(i + 1) * self.width] = np.frombuffer(raw, dtype=np.uint8)
        return out

    def decode_many(self, buf: np.ndarray) -> List[T]:
        if len(buf) % self.width != 0:
            raise EncodingError(f"Buffer de {len(buf)} bytes no es múltiplo de {self.width}")
        data = bytes(buf)
        return [self.decode(data[i:i + self.width]) for i in range(0, len(data), self.width)]


class IndividualCodec(FixedWidthCodec[Individual]):
    def __init__(self, number_of_periods: int, number_of_genes: int):
        self.number_of_periods = number_of_periods
        self.number_of_genes = number_of_genes
        self.width = _INT32.itemsize * (1 + number_of_periods + number_of_genes)

    def encode(self, ind: Individual) -> bytes:
        if len(ind.chromosomes) != self.number_of_periods:
            raise EncodingError(
                f"Individuo con {len(ind.chromosomes)} periodos, se esperaban {self.number_of_periods}"
            )
        if ind.gene_count() != self.number_of_genes:
            raise EncodingError(
                f"Individuo con {ind.gene_count()} genes, se esperaban {self.number_of_genes}"
            )
        header = [ind.fitness] + [len(c.genes) for c in ind.chromosomes]
        return np.asarray(header + ind.gene_ids(), dtype=_INT32).tobytes()

    def decode(self, buf: bytes) -> Individual:
        values = np.frombuffer(buf, dtype=_INT32).tolist()
        p = self.number_of_periods
        fitness, lengths, genes = values[0], values[1:1 + p], values[1 + p:]
        chromosomes = []
        offset = 0
        for period_id, n in enumerate(lengths):
            chromosomes.append(Chromosome(period_id, genes[offset:offset + n]))
            offset += n
        if offset != len(genes):
            raise EncodingError(f"Longitudes de periodos ({offset}) no cuadran con {len(genes)} genes")
        return Individual(chromosomes, fitness)
