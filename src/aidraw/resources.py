import json
from functools import lru_cache
from importlib import resources


def _load_json(name: str) -> dict:
    with resources.files(__package__).joinpath(f"data/{name}").open("r", encoding="utf-8") as fh:
        return json.load(fh)


@lru_cache(maxsize=None)
def load_diagram_schema() -> dict:
    return _load_json("diagram.schema.json")


@lru_cache(maxsize=None)
def load_config_schema() -> dict:
    return _load_json("config.schema.json")
