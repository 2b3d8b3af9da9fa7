from typing import List, Tuple

import numpy as np

from .config import AlgorithmConfig
from .model import Chromosome, Gene, Individual, Population

# w(i) = exp(RANK_SLOPE * i + RANK_OFFSET), i = posición tras ordenar por aptitud
RANK_SLOPE = -0.3
RANK_OFFSET = 2.0


def rank_weights(n: int) -> np.ndarray:
    return np.exp(RANK_SLOPE * np.arange(n) + RANK_OFFSET)


def select_parents(population: Population, rng: np.random.Generator) -> Tuple[Individual, Individual]:
    """
    Selección por ranking exponencial.

    La ruleta clásica pierde presión selectiva con poblaciones grandes: la
    proporción de cada individuo sobre la suma total se vuelve ínfima. Aquí
    el peso depende solo de la posición en el ranking, no del valor de la
    aptitud. Devuelve dos posiciones distintas del ranking.
    """
    if len(population) < 2:
        raise ValueError("Se necesitan al menos dos individuos para seleccionar padres")

    ranked = sorted(population, key=lambda ind: ind.fitness, reverse=True)
    weights = rank_weights(len(ranked))
    p = weights / weights.sum()

    idx1 = int(rng.choice(len(ranked), p=p))
    idx2 = idx1
    while idx2 == idx1:
        idx2 = int(rng.choice(len(ranked), p=p))
    return ranked[idx1], ranked[idx2]


def _cross_chromosome(
    mother: Chromosome,
    father: Chromosome,
    rng: np.random.Generator,
) -> Chromosome:
    if mother.id != father.id:
        raise ValueError(f"Periodos desalineados: {mother.id} vs {father.id}")
    # prefijo de la madre, sufijo del padre
    upper = min(len(mother.genes), len(father.genes))
    mating_point = int(rng.integers(0, upper + 1))
    return Chromosome(mother.id, mother.genes[:mating_point] + father.genes[mating_point:])


def repair_lost_genes(
    child: Individual,
    reference: List[Gene],
    number_of_periods: int,
    rng: np.random.Generator,
) -> None:
    present = set(child.gene_ids())
    for g in dict.fromkeys(reference):
        if g not in present:
            child.chromosomes[int(rng.integers(0, number_of_periods))].genes.append(g)
            present.add(g)


def remove_duplicates(child: Individual) -> None:
    # gana la primera aparición: orden de periodos y luego orden interno
    seen = set()
    for period in child.chromosomes:
        kept = []
        for g in period.genes:
            if g not in seen:
                seen.add(g)
                kept.append(g)
        period.genes = kept


def crossover(cfg: AlgorithmConfig, population: Population, rng: np.random.Generator) -> Individual:
    """
    Cruce de un punto por periodo seguido de reparación.

    Tras combinar prefijo/sufijo pueden faltar o sobrar clases: las que
    faltan (respecto a la unión de genes de ambos padres) se agregan a un
    periodo al azar y los duplicados se eliminan dejando la primera aparición.
    """
    mother, father = select_parents(population, rng)

    child = Individual([
        _cross_chromosome(m, f, rng)
        for m, f in zip(mother.chromosomes, father.chromosomes)
    ])
    repair_lost_genes(child, mother.gene_ids() + father.gene_ids(), cfg.number_of_periods, rng)
    remove_duplicates(child)
    return child


def mutate(cfg: AlgorithmConfig, ind: Individual, rng: np.random.Generator) -> None:
    """
    Mueve una clase al azar de un periodo a otro periodo distinto.

    La probabilidad se aplica por periodo, no por individuo.
    """
    n = len(ind.chromosomes)
    if n < 2:
        return
    for period_idx in range(n):
        if rng.random() >= cfg.mutation_probability:
            continue
        genes = ind.chromosomes[period_idx].genes
        if not genes:
            continue
        gene = genes.pop(int(rng.integers(0, len(genes))))
        target = int(rng.integers(0, n - 1))
        if target >= period_idx:
            target += 1
        ind.chromosomes[target].genes.append(gene)
