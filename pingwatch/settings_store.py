import copy
import logging
import os

from dotenv import dotenv_values

from .settings_defaults import DEFAULTS, ENV_OVERRIDES

logger = logging.getLogger(__name__)

ENV_FILE = ".env"


def deep_merge(defaults, overrides):
    if overrides is None:
        return copy.deepcopy(defaults)
    result = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def parse_bool(value):
    return str(value).strip().lower() in ("on", "true", "1", "yes")


def _lookup(tree, path):
    for key in path:
        tree = tree[key]
    return tree


def _assign(tree, path, value):
    for key in path[:-1]:
        tree = tree.setdefault(key, {})
    tree[path[-1]] = value


def read_environment(env_file=ENV_FILE):
    """Process environment layered over the values of ``env_file``."""
    environ = {}
    if env_file:
        environ.update({key: value for key, value in dotenv_values(env_file).items() if value is not None})
    environ.update(os.environ)
    return environ


def env_overrides(environ=None):
    environ = read_environment() if environ is None else environ
    overrides = {}
    for name, (path, kind) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        if kind == "int":
            try:
                value = int(raw.strip())
            except ValueError:
                value = _lookup(DEFAULTS, path)
                logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, value)
        elif kind == "bool":
            value = parse_bool(raw)
        else:
            value = raw.strip()
        _assign(overrides, path, value)
    return overrides


def get_settings(environ=None, overrides=None, env_file=ENV_FILE):
    if environ is None:
        environ = read_environment(env_file)
    settings = deep_merge(DEFAULTS, env_overrides(environ))
    return deep_merge(settings, overrides or {})
