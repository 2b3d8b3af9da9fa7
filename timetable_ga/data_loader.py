# timetable_ga/data_loader.py
from typing import List

import numpy as np
import pandas as pd

from .model import ClassTuple

TUPLE_COLUMNS = ["id", "label", "room", "teacher"]


def load_tuples(path: str) -> List[ClassTuple]:
    """
    Lee el catálogo de tuplas (CSV sin cabecera: id,label,room,teacher).
    Cualquier problema es fatal: no hay catálogo por defecto.
    """
    try:
        df = pd.read_csv(path, header=None, names=TUPLE_COLUMNS, dtype=str, skipinitialspace=True)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ValueError(f"No se pudo leer el catálogo de tuplas {path}: {exc}") from exc

    if df[TUPLE_COLUMNS].isna().any().any():
        bad = df.index[df[TUPLE_COLUMNS].isna().any(axis=1)].tolist()
        raise ValueError(f"Filas incompletas en {path}: {bad}")

    try:
        ids = df["id"].str.strip().astype(int)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Columna id no numérica en {path}: {exc}") from exc

    # los genes viajan como int32
    info = np.iinfo(np.int32)
    out_of_range = ids[(ids < info.min) | (ids > info.max)]
    if not out_of_range.empty:
        raise ValueError(f"IDs de tupla fuera de rango int32 en {path}: {out_of_range.tolist()}")

    if ids.duplicated().any():
        raise ValueError(f"IDs de tupla duplicados en {path}: {sorted(set(ids[ids.duplicated()]))}")

    return [
        ClassTuple(id=int(i), label=r.label.strip(), room=r.room.strip(), teacher=r.teacher.strip())
        for i, r in zip(ids, df.itertuples(index=False))
    ]
