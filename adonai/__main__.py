import uvicorn

from adonai.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "adonai.main:get_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
