import uvicorn

from starmap.config import load_config


def main() -> None:
    cfg = load_config()
    uvicorn.run("starmap.app:app", host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
