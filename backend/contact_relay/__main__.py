# contact_relay/__main__.py
import copy

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from contact_relay.main import app


def build_log_config() -> dict:
    config = copy.deepcopy(LOGGING_CONFIG)
    config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelprefix)s %(message)s"
    config["formatters"]["access"]["fmt"] = (
        '%(asctime)s - %(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s'
    )
    return config


def main():
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=build_log_config())


if __name__ == "__main__":
    main()
