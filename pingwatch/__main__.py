import uvicorn
from dotenv import load_dotenv

from .logging_config import configure_logging
from .settings_store import ENV_FILE, get_settings


def main():
    # existing environment variables win over the file
    load_dotenv(ENV_FILE)
    configure_logging()
    settings = get_settings()
    uvicorn.run(
        "pingwatch.main:app",
        host=settings["api"]["host"],
        port=int(settings["api"]["port"]),
        log_config=None,
    )


if __name__ == "__main__":
    main()
