# timetable_ga/initial_population.py
from typing import List

import numpy as np

from .config import AlgorithmConfig
from .model import ClassTuple, Individual, Population


def build_random_individual(
    tuples: List[ClassTuple],
    number_of_periods: int,
    rng: np.random.Generator,
) -> Individual:
    ind = Individual.empty(number_of_periods)
    # cada tupla va a un periodo al azar, exactamente una vez
    for t, period in zip(tuples, rng.integers(0, number_of_periods, size=len(tuples))):
        ind.chromosomes[int(period)].genes.append(t.id)
    return ind


def create_first_population(
    cfg: AlgorithmConfig,
    tuples: List[ClassTuple],
    rng: np.random.Generator,
) -> Population:
    return [
        build_random_individual(tuples, cfg.number_of_periods, rng)
        for _ in range(cfg.population_size)
    ]
