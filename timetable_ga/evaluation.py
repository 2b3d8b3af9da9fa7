# timetable_ga/evaluation.py
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, Iterable

from .model import ClassTuple, Individual

# Penalizaciones por par de clases en el mismo periodo
PENALTY_TEACHER_ROOM = 10      # mismo docente en la misma aula
PENALTY_ROOM = 20              # aula ocupada por dos docentes
PENALTY_TEACHER_SUBJECT = 10   # mismo docente, misma asignatura (sesión redundante)
PENALTY_TEACHER = 20           # docente con dos asignaturas a la vez

Catalog = Dict[int, ClassTuple]


class UnknownTupleError(KeyError):
    pass


@dataclass
class EvaluationResult:
    fitness: int
    teacher_room: int
    room: int
    teacher_subject: int
    teacher: int


def build_catalog(tuples: Iterable[ClassTuple]) -> Catalog:
    catalog: Catalog = {}
    for t in tuples:
        if t.id in catalog:
            raise ValueError(f"Tupla con id {t.id} repetida en el catálogo")
        catalog[t.id] = t
    return catalog


def evaluate(ind: Individual, catalog: Catalog) -> EvaluationResult:
    """
    Cuenta los choques de cada periodo comparando cada par de clases una sola
    vez y guarda la aptitud en el individuo (0 = sin conflictos).
    """
    teacher_room = room = teacher_subject = teacher = 0

    for period in ind.chromosomes:
        try:
            classes = [catalog[g] for g in period.genes]
        except KeyError as exc:
            raise UnknownTupleError(f"Tupla con id {exc.args[0]} no encontrada") from exc

        for a, b in combinations(classes, 2):
            if a.room == b.room:
                if a.teacher == b.teacher:
                    teacher_room += 1
                else:
                    room += 1
            if a.teacher == b.teacher:
                if a.label == b.label:
                    teacher_subject += 1
                else:
                    teacher += 1

    fitness = -(
        PENALTY_TEACHER_ROOM * teacher_room
        + PENALTY_ROOM * room
        + PENALTY_TEACHER_SUBJECT * teacher_subject
        + PENALTY_TEACHER * teacher
    )
    ind.fitness = fitness

    return EvaluationResult(
        fitness=fitness,
        teacher_room=teacher_room,
        room=room,
        teacher_subject=teacher_subject,
        teacher=teacher,
    )


def calculate_fitness(ind: Individual, catalog: Catalog) -> int:
    return evaluate(ind, catalog).fitness
