import os


def _int_env(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


class Config:
    data_directory = os.getenv("DOCKYARD_DATA_DIRECTORY", os.path.join(os.getcwd(), "data"))
    storage_directory = os.getenv(
        "DOCKYARD_STORAGE_DIRECTORY", os.path.join(data_directory, "storage")
    )
    # Deployment operations are refused when unset.
    deploy_directory = os.getenv("DOCKYARD_DEPLOY_DIRECTORY", "")

    fetch_max_bytes = _int_env("DOCKYARD_FETCH_MAX_BYTES", 50 * 1024 * 1024)
    fetch_timeout_seconds = _int_env("DOCKYARD_FETCH_TIMEOUT_SECONDS", 30)
    archive_max_bytes = _int_env("DOCKYARD_ARCHIVE_MAX_BYTES", 500 * 1024 * 1024)
    archive_max_entries = _int_env("DOCKYARD_ARCHIVE_MAX_ENTRIES", 20000)

    # Docker Compose
    compose_command = os.getenv("DOCKYARD_COMPOSE_COMMAND", "docker compose")
    compose_timeout_seconds = _int_env("DOCKYARD_COMPOSE_TIMEOUT_SECONDS", 600)

    cors_origins = [
        origin.strip()
        for origin in os.getenv("DOCKYARD_CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]

config = Config()
