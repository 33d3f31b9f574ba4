import uvicorn

from envgate.configs.settings import settings


def main() -> None:
    # One worker: the purge lock lives in the process
    uvicorn.run(
        "envgate.server.app:app",
        host=settings.host,
        port=settings.port,
        workers=1,
    )


if __name__ == "__main__":
    main()
