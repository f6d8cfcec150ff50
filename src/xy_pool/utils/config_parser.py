import json
import os
import yaml

from xy_pool.agents.curves import CURVES


def load_config(path: str) -> dict:
    """
    Load a simulation configuration file (YAML or JSON) and return it as a dictionary.

    Parameters
    ----------
    path : str
        The path to the configuration file (``.yaml``, ``.yml`` or ``.json``).

    Returns
    -------
    dict
        Parsed configuration data.

    Raises
    ------
    FileNotFoundError
        If the file does not exist at the given path.

    ValueError
        If the extension is unsupported or the root is not a mapping.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    _, ext = os.path.splitext(path.lower())

    if ext in (".yaml", ".yml"):
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    elif ext == ".json":
        with open(path, "r") as f:
            data = json.load(f)
    else:
        raise ValueError("Unsupported config extension. Use .yaml, .yml, or .json.")

    if not isinstance(data, dict):
        raise ValueError("Config file root must be a dictionary.")
    return data


def _require_int(section: dict, key: str, where: str, minimum: int = 0) -> None:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{where}.{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{where}.{key} must be >= {minimum}, got {value}")


def validate_pool_config(config: dict) -> dict:
    """
    Check the ``pool``, ``traders`` and ``providers`` sections of a simulation config.

    Token amounts must be integers because the pool only does integer arithmetic; floats
    read from YAML (``1e6``) are rejected rather than silently truncated.

    Parameters
    ----------
    config : dict
        Configuration as returned by :func:`load_config`.

    Returns
    -------
    dict
        The same configuration, unchanged.

    Raises
    ------
    ValueError
        Naming the first missing or malformed key.
    """
    pool_cfg = config.get("pool")
    if not isinstance(pool_cfg, dict):
        raise ValueError("Config must contain a 'pool' mapping.")
    for key in ("token_x", "token_y"):
        if not pool_cfg.get(key):
            raise ValueError(f"pool.{key} is required")
    if pool_cfg["token_x"] == pool_cfg["token_y"]:
        raise ValueError("pool.token_x and pool.token_y must differ")
    for key in ("initial_x", "initial_y"):
        _require_int(pool_cfg, key, "pool", minimum=1)
    curve = pool_cfg.get("curve", "constant_product")
    if curve not in CURVES:
        raise ValueError(f"pool.curve must be one of {sorted(CURVES)}, got {curve!r}")

    for section, amount_key in (("traders", "max_trade"), ("providers", "deposit_x")):
        entries = config.get(section, [])
        if not isinstance(entries, list):
            raise ValueError(f"'{section}' must be a list")
        for i, entry in enumerate(entries):
            where = f"{section}[{i}]"
            if not entry.get("name"):
                raise ValueError(f"{where}.name is required")
            _require_int(entry, amount_key, where, minimum=1)
            for key in ("balance_x", "balance_y"):
                if key in entry:
                    _require_int(entry, key, where)
            activity = entry.get("activity", 1.0)
            if not 0.0 <= float(activity) <= 1.0:
                raise ValueError(f"{where}.activity must be within [0, 1]")
    return config
