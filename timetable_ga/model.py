# timetable_ga/model.py
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List

Gene = int  # id de un ClassTuple

UNSET_FITNESS = -1000


@dataclass(frozen=True)
class ClassTuple:
    id: int
    label: str    # asignatura
    room: str
    teacher: str


@dataclass
class Chromosome:
    # Un cromosoma = un periodo con las clases asignadas
    id: int
    genes: List[Gene] = field(default_factory=list)

    def copy(self) -> "Chromosome":
        return Chromosome(self.id, list(self.genes))


@dataclass
class Individual:
    chromosomes: List[Chromosome] = field(default_factory=list)
    fitness: int = UNSET_FITNESS

    @classmethod
    def empty(cls, number_of_periods: int) -> "Individual":
        return cls([Chromosome(period_id) for period_id in range(number_of_periods)])

    def copy(self) -> "Individual":
        return Individual([c.copy() for c in self.chromosomes], self.fitness)

    def gene_ids(self) -> List[Gene]:
        return [g for c in self.chromosomes for g in c.genes]

    def gene_count(self) -> int:
        return sum(len(c.genes) for c in self.chromosomes)


Population = List[Individual]


def validate_individual(ind: Individual, tuple_ids: Iterable[int], number_of_periods: int) -> None:
    """
    Verifica la forma (periodos 0..P-1 en orden) y la completitud: cada tupla
    aparece exactamente una vez en el individuo.
    """
    ids = [c.id for c in ind.chromosomes]
    if ids != list(range(number_of_periods)):
        raise ValueError(f"Periodos inválidos en individuo: {ids}")

    counts = Counter(ind.gene_ids())
    duplicated = sorted(g for g, n in counts.items() if n > 1)
    if duplicated:
        raise ValueError(f"Genes duplicados en individuo: {duplicated}")

    expected = set(tuple_ids)
    missing = sorted(expected - counts.keys())
    extra = sorted(counts.keys() - expected)
    if missing or extra:
        raise ValueError(f"Individuo incompleto: faltan {missing}, sobran {extra}")
