PROBE_DEFAULTS = {
    "target": "",
    "interval_ms": 5000,
    "timeout_seconds": 1,
}

SPEEDTEST_DEFAULTS = {
    "enabled": True,
    "interval_seconds": 600,
    "run_on_startup": True,
    "command": "speedtest",
    "args": "--format=json --accept-license --accept-gdpr",
    "timeout_seconds": 120,
}

API_DEFAULTS = {
    "api_key": "",
    "host": "0.0.0.0",
    "port": 3000,
    "rate_limit": {
        "window_seconds": 60,
        "general": 100,
        "health": 1,
    },
}

STORAGE_DEFAULTS = {
    "data_dir": "data",
}

DEFAULTS = {
    "probe": PROBE_DEFAULTS,
    "speedtest": SPEEDTEST_DEFAULTS,
    "api": API_DEFAULTS,
    "storage": STORAGE_DEFAULTS,
}

# env var -> (section path, parser name)
ENV_OVERRIDES = {
    "PING_TARGET": (("probe", "target"), "str"),
    "PING_INTERVAL": (("probe", "interval_ms"), "int"),
    "PING_TIMEOUT": (("probe", "timeout_seconds"), "int"),
    "SPEEDTEST_ENABLED": (("speedtest", "enabled"), "bool"),
    "SPEEDTEST_INTERVAL": (("speedtest", "interval_seconds"), "int"),
    "SPEEDTEST_COMMAND": (("speedtest", "command"), "str"),
    "SPEEDTEST_ARGS": (("speedtest", "args"), "str"),
    "SPEEDTEST_TIMEOUT": (("speedtest", "timeout_seconds"), "int"),
    "API_KEY": (("api", "api_key"), "str"),
    "HOST": (("api", "host"), "str"),
    "PORT": (("api", "port"), "int"),
    "GENERAL_RATE_LIMIT": (("api", "rate_limit", "general"), "int"),
    "HEALTH_RATE_LIMIT": (("api", "rate_limit", "health"), "int"),
    "PINGWATCH_DATA_DIR": (("storage", "data_dir"), "str"),
}
