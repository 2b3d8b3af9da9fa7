import tempfile
import unittest
from collections import Counter
from pathlib import Path

import numpy as np

from timetable_ga.config import AlgorithmConfig, adapt_population_size, load_config
from timetable_ga.data_loader import load_tuples
from timetable_ga.encoding import EncodingError, IndividualCodec
from timetable_ga.evaluation import UnknownTupleError, build_catalog, calculate_fitness, evaluate
from timetable_ga.initial_population import create_first_population
from timetable_ga.model import Chromosome, ClassTuple, Individual, UNSET_FITNESS, validate_individual
from timetable_ga.operators import (
    _cross_chromosome,
    crossover,
    mutate,
    rank_weights,
    remove_duplicates,
    repair_lost_genes,
    select_parents,
)


def sample_tuples(n=12):
    teachers = ["Ana", "Luis", "Rosa"]
    rooms = ["A1", "A2", "L1", "L2"]
    labels = ["Mate", "Física", "Química"]
    return [
        ClassTuple(id=i, label=labels[i % 3], room=rooms[i % 4], teacher=teachers[i % 3])
        for i in range(1, n + 1)
    ]


def individual(*periods, fitness=UNSET_FITNESS):
    return Individual([Chromosome(i, list(g)) for i, g in enumerate(periods)], fitness)


class FixedRng:
    """Generador mínimo con respuestas prefijadas para las pruebas de mutación."""

    def __init__(self, randoms, integers):
        self._randoms = list(randoms)
        self._integers = list(integers)

    def random(self):
        return self._randoms.pop(0)

    def integers(self, low, high=None, size=None):
        return self._integers.pop(0)


class ModelTests(unittest.TestCase):
    def test_default_fitness_is_sentinel(self):
        ind = Individual.empty(3)
        self.assertEqual(ind.fitness, -1000)
        self.assertEqual([c.id for c in ind.chromosomes], [0, 1, 2])

    def test_validate_rejects_duplicates_and_missing(self):
        with self.assertRaises(ValueError):
            validate_individual(individual([1, 2], [2]), [1, 2, 3], 2)
        with self.assertRaises(ValueError):
            validate_individual(individual([1], [2]), [1, 2, 3], 2)
        with self.assertRaises(ValueError):
            validate_individual(individual([1, 2], [3]), [1, 2, 3], 3)
        validate_individual(individual([3, 1], [2]), [1, 2, 3], 2)


class ConfigTests(unittest.TestCase):
    def test_missing_file_uses_defaults(self):
        cfg = load_config("/no/existe/config.json")
        self.assertEqual(cfg, AlgorithmConfig())
        self.assertEqual(cfg.max_generations, 100)
        self.assertEqual(cfg.number_of_periods, 10)
        self.assertAlmostEqual(cfg.mutation_probability, 0.01)

    def test_json_overrides_fields(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text('{"population_size": 40, "mutation_probability": 0.2, "otro": 1}')
            cfg = load_config(str(path))
        self.assertEqual(cfg.population_size, 40)
        self.assertAlmostEqual(cfg.mutation_probability, 0.2)
        self.assertEqual(cfg.max_generations, 100)

    def test_invalid_file_falls_back(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text('{"population_size": "muchos"}')
            self.assertEqual(load_config(str(path)), AlgorithmConfig())
            path.write_text("{: [")
            self.assertEqual(load_config(str(path)), AlgorithmConfig())

    def test_adapt_population_size(self):
        self.assertEqual(adapt_population_size(100, 4), 100)
        self.assertEqual(adapt_population_size(100, 3), 102)
        self.assertEqual(adapt_population_size(7, 1), 7)


class DataLoaderTests(unittest.TestCase):
    def test_load_csv_without_header(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "tuples.csv"
            path.write_text("1,Mate,101,Ana\n2,Física,102,Luis\n")
            tuples = load_tuples(str(path))
        self.assertEqual(tuples[0], ClassTuple(1, "Mate", "101", "Ana"))
        self.assertEqual(tuples[1].teacher, "Luis")

    def test_bad_catalog_is_fatal(self):
        with self.assertRaises(ValueError):
            load_tuples("/no/existe/tuples.csv")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "tuples.csv"
            path.write_text("uno,Mate,101,Ana\n")
            with self.assertRaises(ValueError):
                load_tuples(str(path))
            path.write_text("1,Mate,101,Ana\n1,Física,102,Luis\n")
            with self.assertRaises(ValueError):
                load_tuples(str(path))

    def test_id_outside_int32_is_fatal(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "tuples.csv"
            path.write_text("3000000000,Math,101,A\n")
            with self.assertRaises(ValueError):
                load_tuples(str(path))
            path.write_text("-2147483649,Math,101,A\n")
            with self.assertRaises(ValueError):
                load_tuples(str(path))
            path.write_text("2147483647,Math,101,A\n")
            self.assertEqual(load_tuples(str(path))[0].id, 2147483647)


class InitialPopulationTests(unittest.TestCase):
    def test_shape_and_completeness(self):
        cfg = AlgorithmConfig(population_size=8, number_of_periods=5)
        tuples = sample_tuples()
        pop = create_first_population(cfg, tuples, np.random.default_rng(1))
        self.assertEqual(len(pop), 8)
        for ind in pop:
            self.assertEqual([c.id for c in ind.chromosomes], list(range(5)))
            validate_individual(ind, [t.id for t in tuples], 5)


class EvaluationTests(unittest.TestCase):
    def test_no_conflicts_scores_zero(self):
        catalog = build_catalog(sample_tuples(6))
        # 1..3: docentes y aulas distintos
        self.assertEqual(calculate_fitness(individual([1, 2, 3], [4, 5, 6]), catalog), 0)

    def test_same_teacher_room_and_subject(self):
        catalog = build_catalog([
            ClassTuple(1, "Math", "101", "A"),
            ClassTuple(2, "Math", "101", "A"),
        ])
        ind = individual([1, 2], [])
        res = evaluate(ind, catalog)
        self.assertEqual(res.fitness, -20)
        self.assertEqual(ind.fitness, -20)
        self.assertEqual((res.teacher_room, res.teacher_subject), (1, 1))
        # en periodos distintos no hay choque
        self.assertEqual(calculate_fitness(individual([1], [2]), catalog), 0)

    def test_room_and_teacher_conflicts(self):
        catalog = build_catalog([
            ClassTuple(1, "Math", "101", "A"),
            ClassTuple(2, "Art", "101", "B"),
            ClassTuple(3, "Music", "202", "A"),
        ])
        res = evaluate(individual([1, 2, 3]), catalog)
        self.assertEqual(res.room, 1)
        self.assertEqual(res.teacher, 1)
        self.assertEqual(res.fitness, -40)

    def test_unknown_gene(self):
        catalog = build_catalog(sample_tuples(2))
        with self.assertRaises(UnknownTupleError):
            calculate_fitness(individual([1, 2, 99]), catalog)


class OperatorTests(unittest.TestCase):
    def setUp(self):
        self.tuples = sample_tuples()
        self.ids = [t.id for t in self.tuples]
        self.cfg = AlgorithmConfig(population_size=10, number_of_periods=4)
        self.rng = np.random.default_rng(3)
        self.catalog = build_catalog(self.tuples)
        self.pop = create_first_population(self.cfg, self.tuples, self.rng)
        for ind in self.pop:
            evaluate(ind, self.catalog)

    def test_rank_weights_decrease(self):
        w = rank_weights(5)
        self.assertAlmostEqual(w[0], np.exp(2.0))
        self.assertTrue(np.all(np.diff(w) < 0))

    def test_select_parents_distinct(self):
        for _ in range(200):
            a, b = select_parents(self.pop, self.rng)
            self.assertIsNot(a, b)
        two = self.pop[:2]
        a, b = select_parents(two, self.rng)
        self.assertEqual({id(a), id(b)}, {id(two[0]), id(two[1])})

    def test_select_parents_needs_two(self):
        with self.assertRaises(ValueError):
            select_parents(self.pop[:1], self.rng)

    def test_crossover_keeps_every_gene_once(self):
        for _ in range(50):
            child = crossover(self.cfg, self.pop, self.rng)
            validate_individual(child, self.ids, self.cfg.number_of_periods)
            self.assertEqual(child.fitness, UNSET_FITNESS)

    def test_cross_chromosome_prefix_from_mother(self):
        mother = Chromosome(2, [1, 2, 3, 4])
        father = Chromosome(2, [5, 6, 7])
        for seed in range(20):
            m = int(np.random.default_rng(seed).integers(0, 4))
            child = _cross_chromosome(mother, father, np.random.default_rng(seed))
            self.assertEqual(child.id, 2)
            self.assertEqual(child.genes, mother.genes[:m] + father.genes[m:])

    def test_cross_chromosome_rejects_misaligned_periods(self):
        with self.assertRaises(ValueError):
            _cross_chromosome(Chromosome(0, [1]), Chromosome(1, [2]), self.rng)

    def test_remove_duplicates_keeps_first_occurrence(self):
        ind = individual([3, 1], [1, 2, 3], [2, 4])
        remove_duplicates(ind)
        self.assertEqual([c.genes for c in ind.chromosomes], [[3, 1], [2], [4]])

    def test_repair_lost_genes_appends_missing(self):
        for seed in range(10):
            child = individual([1], [2], [])
            repair_lost_genes(child, [1, 2, 3, 4, 3], 3, np.random.default_rng(seed))
            self.assertEqual(Counter(child.gene_ids()), Counter([1, 2, 3, 4]))
            self.assertEqual(child.chromosomes[0].genes[0], 1)
            self.assertEqual(child.chromosomes[1].genes[0], 2)
            # las agregadas quedan al final y en el orden de referencia
            appended = [g for c in child.chromosomes for g in c.genes if g in (3, 4)]
            for c in child.chromosomes:
                tail = [g for g in c.genes if g in (3, 4)]
                self.assertEqual(c.genes[len(c.genes) - len(tail):], tail)
                if len(tail) == 2:
                    self.assertEqual(tail, [3, 4])
            self.assertEqual(sorted(appended), [3, 4])

    def test_mutation_moves_gene_to_another_period(self):
        cfg = AlgorithmConfig(number_of_periods=3, mutation_probability=1.0)
        # solo muta el periodo 0; destino sorteado 0 -> se salta el propio periodo
        ind = individual([5], [], [])
        mutate(cfg, ind, FixedRng(randoms=[0.0, 1.0, 1.0], integers=[0, 0]))
        self.assertEqual([c.genes for c in ind.chromosomes], [[], [5], []])

        ind = individual([], [], [7])
        mutate(cfg, ind, FixedRng(randoms=[1.0, 1.0, 0.0], integers=[0, 1]))
        self.assertEqual([c.genes for c in ind.chromosomes], [[], [7], []])

    def test_mutation_disabled_is_noop(self):
        cfg = AlgorithmConfig(number_of_periods=4, mutation_probability=0.0)
        ind = self.pop[0].copy()
        before = [list(c.genes) for c in ind.chromosomes]
        mutate(cfg, ind, self.rng)
        self.assertEqual([c.genes for c in ind.chromosomes], before)

    def test_mutation_moves_genes_between_periods(self):
        cfg = AlgorithmConfig(number_of_periods=4, mutation_probability=1.0)
        ind = individual([1, 2, 3], [4, 5, 6], [7, 8, 9], [10, 11, 12])
        mutate(cfg, ind, self.rng)
        self.assertEqual(Counter(ind.gene_ids()), Counter(self.ids))
        validate_individual(ind, self.ids, 4)

    def test_mutation_single_period(self):
        cfg = AlgorithmConfig(number_of_periods=1, mutation_probability=1.0)
        ind = individual([1, 2, 3])
        mutate(cfg, ind, self.rng)
        self.assertEqual(ind.chromosomes[0].genes, [1, 2, 3])


class EncodingTests(unittest.TestCase):
    def test_width_and_decode(self):
        codec = IndividualCodec(number_of_periods=3, number_of_genes=4)
        self.assertEqual(codec.width, 4 * (1 + 3 + 4))
        ind = individual([4, 1], [], [3, 2], fitness=-30)
        raw = codec.encode(ind)
        self.assertEqual(len(raw), codec.width)
        self.assertEqual(codec.decode(raw), ind)

    def test_incomplete_individual_rejected(self):
        codec = IndividualCodec(number_of_periods=2, number_of_genes=3)
        with self.assertRaises(EncodingError):
            codec.encode(individual([1], [2]))
        with self.assertRaises(EncodingError):
            codec.encode_many([individual([1, 3], [2]), individual([1], [2], [3])])


if __name__ == "__main__":
    unittest.main()
