"""
Logging of the injector: a WSGI middleware that writes one access log line per
HTTP request and a JSON formatter that groups the admission context of a
record.
"""

import logging
import time
from datetime import datetime as dt, timezone

from pythonjsonlogger import jsonlogger

HEALTH_PATHS = ("/ready", "/health")
ACCESS_LOG = "access"
# keys of `AdmissionRequest.context`, passed as `extra` by the mutate handler
ADMISSION_FIELDS = ("uid", "user", "operation", "kind", "wl_obj_name", "namespace")


class InjectorLoggingWrapper:
    """
    WSGI middleware that logs every HTTP request handled by the injector,
    together with the time it took to answer. The API server gives up on a
    webhook after its timeout, so slow admissions should show up in the logs.
    Health checks of the kubelet are only logged at debug level.
    """

    def __init__(self, app, log_level):
        # no handler of its own, records propagate to the root logger
        self.logger = logging.getLogger("wsgi")
        self.logger.setLevel(log_level)
        self.app = app

    def __call__(self, environ, start_response):
        statuses = []

        def start_response_wrapper(status, response_headers, exc_info=None):
            # e.g. '200 OK', may be called again if the app fails late
            statuses.append(status.partition(" ")[0])
            return start_response(status, response_headers, exc_info)

        started = time.monotonic()
        result = self.app(environ, start_response_wrapper)
        duration = time.monotonic() - started

        path = environ.get("PATH_INFO", "")
        self.logger.log(
            logging.DEBUG if path in HEALTH_PATHS else logging.INFO,
            ACCESS_LOG,
            extra={
                "client_ip": environ.get("REMOTE_ADDR", ""),
                "method": environ.get("REQUEST_METHOD", ""),
                "path": path,
                "query": environ.get("QUERY_STRING", ""),
                "protocol": environ.get("SERVER_PROTOCOL", ""),
                "content_length": environ.get("CONTENT_LENGTH", ""),
                "status_code": statuses[-1] if statuses else "",
                "duration_ms": round(duration * 1000, 3),
            },
        )
        return result


class JsonLogFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for the injector's records. The admission context of a
    record (uid, operation, workload name and namespace) is nested under an
    `admission` key, so all lines of one admission review can be found by
    `admission.uid`. Access log lines carry no message.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", dt.now(timezone.utc).isoformat())
        log_record["level"] = record.levelname

        admission = {
            field: log_record.pop(field)
            for field in ADMISSION_FIELDS
            if field in log_record
        }
        if admission:
            log_record["admission"] = admission

        if log_record.get("message") == ACCESS_LOG:
            del log_record["message"]
