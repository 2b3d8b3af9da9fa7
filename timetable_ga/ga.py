import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

import numpy as np

from .collective import (
    ROOT_RANK,
    RankCommand,
    execute_and_replicate,
    gather_and_replicate,
    scatter_even,
)
from .config import AlgorithmConfig
from .encoding import IndividualCodec
from .evaluation import Catalog, evaluate
from .initial_population import create_first_population
from .model import ClassTuple, Individual, Population, validate_individual
from .operators import crossover, mutate, select_parents
from .random_source import RandomSource

logger = logging.getLogger(__name__)


class GeneticSolver:
    """
    Bucle generacional distribuido.

    Cada rank tiene la población completa (solo lectura) y produce un hijo
    por cada elemento de su trozo; los hijos se juntan en el rank raíz y se
    replican, así todos ordenan la misma población y toman la misma
    decisión de parada.
    """

    def __init__(
        self,
        tuples: List[ClassTuple],
        catalog: Catalog,
        cfg: AlgorithmConfig,
        comm,
        random_source: RandomSource,
        threads: Optional[int] = None,
    ):
        self.tuples = tuples
        self.catalog = catalog
        self.cfg = cfg
        self.comm = comm
        self.rank = comm.Get_rank()
        self.random_source = random_source
        self.threads = threads
        self.tuple_ids = [t.id for t in tuples]
        self.codec = IndividualCodec(cfg.number_of_periods, len(tuples))
        self.history: List[Dict] = []

    def _first_population(self) -> Population:
        rng = self.random_source.generator()
        population = create_first_population(self.cfg, self.tuples, rng)
        for ind in population:
            evaluate(ind, self.catalog)
        return population

    def _offspring(self, population: Population, rng: np.random.Generator) -> Individual:
        # con probabilidad 1 - crossover_probability no hay cruce: el hijo copia al primer padre
        if rng.random() < self.cfg.crossover_probability:
            child = crossover(self.cfg, population, rng)
        else:
            child = select_parents(population, rng)[0].copy()
        mutate(self.cfg, child, rng)
        validate_individual(child, self.tuple_ids, self.cfg.number_of_periods)
        evaluate(child, self.catalog)
        return child

    def _breed(self, population: Population, n_children: int) -> Population:
        rngs = [self.random_source.generator() for _ in range(n_children)]
        with ThreadPoolExecutor(max_workers=self.threads) as pool:
            return list(pool.map(lambda rng: self._offspring(population, rng), rngs))

    def evolve(self) -> Individual:
        population = execute_and_replicate(
            RankCommand(self._first_population, owner_rank=ROOT_RANK), self.comm
        )
        population.sort(key=lambda x: x.fitness, reverse=True)

        for gen in range(self.cfg.max_generations):
            shard = scatter_even(population, self.codec, self.comm, ROOT_RANK)
            children = self._breed(population, len(shard))
            next_population = gather_and_replicate(children, self.codec, self.comm, ROOT_RANK)
            next_population.sort(key=lambda x: x.fitness, reverse=True)
            population = next_population

            best = population[0].fitness
            avg = sum(ind.fitness for ind in population) / len(population)
            self.history.append({"gen": gen + 1, "best_fitness": best, "avg_fitness": avg})
            logger.debug("rank %d gen %d: %d hijos locales", self.rank, gen + 1, len(children))

            if self.rank == ROOT_RANK:
                print(f"Generation: {gen + 1}")
                print(f"Best adaptation: {best}")
            if best == 0:
                break

        return population[0]
