import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [tailor-service] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(getattr(h, "_tailor_service", False) for h in root.handlers):
        root.setLevel(level.upper())
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._tailor_service = True
    root.addHandler(handler)
    root.setLevel(level.upper())
