import logging, sys

LEVEL = logging.INFO

def configure_logging(level: str | int | None = None) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root = logging.getLogger()
    root.setLevel(level or LEVEL)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    # httpx logs every request at INFO and would echo api_token query params
    logging.getLogger("httpx").setLevel(logging.WARNING)
