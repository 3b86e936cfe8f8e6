"""
Main method for the init container injector. Load the configuration and start
the web server.
"""

import os
from logging.config import dictConfig

from cheroot.server import HTTPServer
from cheroot.ssl.builtin import BuiltinSSLAdapter
from cheroot.wsgi import Server

from initinjector.config import InjectionConfig
from initinjector.flask_application import create_app
from initinjector.logging import InjectorLoggingWrapper

if __name__ == "__main__":
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    PORT = int(os.environ.get("PORT", "5000"))
    CONFIG_DIR = os.environ.get("CONFIG_DIR", "/app/config")
    CONFIG_PATH = os.environ.get(
        "INIT_CONTAINER_CONFIG", os.path.join(CONFIG_DIR, "init-container.yaml")
    )

    dictConfig(
        {
            "version": 1,
            "formatters": {
                "json": {"class": "initinjector.logging.JsonLogFormatter"},
            },
            "handlers": {
                "wsgi": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json",
                },
            },
            "root": {"level": LOG_LEVEL, "handlers": ["wsgi"]},
        }
    )

    injection_config = InjectionConfig(CONFIG_PATH, CONFIG_DIR)

    HTTPServer.ssl_adapter = BuiltinSSLAdapter(
        certificate=os.environ.get("TLS_CERT_FILE", "/app/certs/tls.crt"),
        private_key=os.environ.get("TLS_KEY_FILE", "/app/certs/tls.key"),
    )

    # wrap the app with a layer that logs HTTP requests
    app = InjectorLoggingWrapper(create_app(injection_config), LOG_LEVEL)

    # the host needs to be set to `0.0.0.0` so it can be reachable from outside the container
    server = Server(("0.0.0.0", PORT), app)  # nosec
    server.start()
