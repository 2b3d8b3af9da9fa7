"""
Configuración del algoritmo genético.

Los parámetros se leen desde YAML (o JSON, que PyYAML también entiende).
Si el archivo no existe o no se puede interpretar se usan los valores
por defecto; es el único error recuperable de toda la corrida.
"""
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass
class AlgorithmConfig:
    # Número máximo de generaciones
    max_generations: int = 100
    # Individuos en la población (se redondea al múltiplo de ranks)
    population_size: int = 100
    # Cromosomas (periodos) por individuo
    number_of_periods: int = 10
    crossover_probability: float = 0.6
    # Probabilidad por cromosoma, no por individuo: mantenerla baja
    mutation_probability: float = 0.01
    dead_threshold: float = 0.1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlgorithmConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k in merged:
                merged[k] = v
        cfg = cls(**merged)
        # Normalizamos tipos (JSON puede traer 10.0 donde va un entero)
        for f in fields(cls):
            if f.type in (int, float):
                setattr(cfg, f.name, f.type(getattr(cfg, f.name)))
        return cfg

    def validate(self) -> None:
        if self.population_size < 2:
            raise ValueError("population_size debe ser al menos 2")
        if self.number_of_periods < 1:
            raise ValueError("number_of_periods debe ser al menos 1")
        for name in ("crossover_probability", "mutation_probability"):
            p = getattr(self, name)
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{name} debe estar en [0, 1], llegó {p}")


def _load_yaml_or_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        # Archivo ilegible: seguimos con defaults
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: str = "config.json") -> AlgorithmConfig:
    data = _load_yaml_or_json(Path(path))
    try:
        cfg = AlgorithmConfig.from_dict(data)
        cfg.validate()
        return cfg
    except (TypeError, ValueError):
        return AlgorithmConfig()


def adapt_population_size(population_size: int, n_workers: int) -> int:
    """Redondea hacia arriba al múltiplo de ``n_workers`` más cercano."""
    remainder = population_size % n_workers
    if remainder == 0:
        return population_size
    return population_size + n_workers - remainder
