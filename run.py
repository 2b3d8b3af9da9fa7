import argparse
import sys
import time
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from timetable_ga.collective import ROOT_RANK, RankCommand, execute_and_replicate
from timetable_ga.config import AlgorithmConfig, adapt_population_size, load_config
from timetable_ga.data_loader import load_tuples
from timetable_ga.evaluation import Catalog, build_catalog, evaluate
from timetable_ga.ga import GeneticSolver
from timetable_ga.local_comm import LocalWorld
from timetable_ga.model import ClassTuple, Individual
from timetable_ga.random_source import RandomSource


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Algoritmo genético distribuido de horarios")
    parser.add_argument("-c", "--config", default="config.json", help="Ruta al archivo de configuración")
    parser.add_argument("-t", "--tuples", default="tuples.csv", help="CSV con las tuplas id,label,room,teacher")
    parser.add_argument("--backend", choices=["local", "mpi"], default="local",
                        help="local: un hilo por rank; mpi: lanzar con mpiexec")
    parser.add_argument("--ranks", type=int, default=1, help="Ranks del backend local")
    parser.add_argument("--threads", type=int, default=None, help="Hilos por rank (por defecto, CPUs)")
    parser.add_argument("--seed", type=int, default=None, help="Semilla (por rank)")
    parser.add_argument("--out_dir", default=None, help="Exporta el mejor horario e historial en CSV")
    return parser.parse_args(argv)


def root_init(args: argparse.Namespace) -> Tuple[AlgorithmConfig, List[ClassTuple]]:
    cfg = load_config(args.config)
    print("Cargando tuplas...")
    tuples = load_tuples(args.tuples)
    return cfg, tuples


def individual_to_dataframe(best: Individual, catalog: Catalog) -> pd.DataFrame:
    data = []
    for period in best.chromosomes:
        for g in period.genes:
            t = catalog[g]
            data.append(
                {
                    "Periodo": period.id,
                    "Tupla": t.id,
                    "Asignatura": t.label,
                    "Aula": t.room,
                    "Docente": t.teacher,
                }
            )
    return pd.DataFrame(data, columns=["Periodo", "Tupla", "Asignatura", "Aula", "Docente"])


def export_outputs(best: Individual, catalog: Catalog, history: List[dict], out_dir: Path):
    out_dir.mkdir(parents=True, exist_ok=True)
    individual_to_dataframe(best, catalog).to_csv(out_dir / "schedule.csv", index=False)
    if history:
        pd.DataFrame(history).to_csv(out_dir / "history.csv", index=False)
    res = evaluate(best, catalog)
    conflicts = pd.DataFrame(
        [
            {"tipo": "docente_aula", "valor": res.teacher_room},
            {"tipo": "aula", "valor": res.room},
            {"tipo": "docente_asignatura", "valor": res.teacher_subject},
            {"tipo": "docente", "valor": res.teacher},
            {"tipo": "aptitud", "valor": res.fitness},
        ]
    )
    conflicts.to_csv(out_dir / "conflicts.csv", index=False)


def run_rank(comm, args: argparse.Namespace) -> Individual:
    rank, size = comm.Get_rank(), comm.Get_size()

    cfg, tuples = execute_and_replicate(
        RankCommand(lambda: root_init(args), owner_rank=ROOT_RANK, placeholder=(None, None)), comm
    )
    catalog = build_catalog(tuples)

    new_size = adapt_population_size(cfg.population_size, size)
    if new_size != cfg.population_size and rank == ROOT_RANK:
        print(f"Changing population size from {cfg.population_size} to {new_size}, to match node number")
    cfg.population_size = new_size

    if rank == ROOT_RANK:
        print(cfg)
        print(f"Tuplas: {len(tuples)} | Ranks: {size} | Generaciones: {cfg.max_generations}")

    solver = GeneticSolver(
        tuples, catalog, cfg, comm, RandomSource(args.seed, rank), threads=args.threads
    )
    start = time.perf_counter()
    best = solver.evolve()
    elapsed = time.perf_counter() - start

    if rank == ROOT_RANK:
        print("\n--- MEJOR SOLUCIÓN ---")
        print(f"Aptitud: {best.fitness} | Generaciones: {len(solver.history)} | Tiempo: {elapsed:.2f}s")
        if args.out_dir:
            export_outputs(best, catalog, solver.history, Path(args.out_dir))
            print(f"Se guardaron resultados en {args.out_dir}")
    return best


def main(argv=None):
    args = parse_args(argv)

    if args.backend == "mpi":
        from mpi4py import MPI

        comm = MPI.COMM_WORLD
        try:
            run_rank(comm, args)
        except Exception as exc:
            print(f"Rank {comm.Get_rank()}: error fatal: {exc!r}", file=sys.stderr)
            comm.Abort(1)
        return

    try:
        LocalWorld(args.ranks).run(run_rank, args)
    except Exception as exc:
        print(f"Error fatal: {exc!r}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
