import json
import logging
import traceback

from flask import Flask, request
from prometheus_client import CollectorRegistry
from prometheus_flask_exporter import NO_PREFIX, PrometheusMetrics

import initinjector.constants as const
from initinjector.admission_request import AdmissionRequest, get_uid
from initinjector.config import InjectionConfig
from initinjector.defaults import apply_container_defaults
from initinjector.eligibility import should_mutate
from initinjector.exceptions import (
    BaseInjectorException,
    InvalidAdmissionReviewFormatError,
    InvalidFormatException,
    UnknownTypeException,
)
from initinjector.patch import create_patch
from initinjector.util import get_admission_review

CONFIG_KEY = "INJECTION_CONFIG"


def create_app(injection_config: InjectionConfig) -> Flask:
    """
    Create the Flask application that receives admission requests from the
    k8s cluster, injects the init containers of `injection_config` into
    opted-in workloads and sends its response back.
    """
    app = Flask(__name__)
    app.config[CONFIG_KEY] = injection_config

    metrics = PrometheusMetrics(
        app,
        defaults_prefix=NO_PREFIX,
        registry=CollectorRegistry(auto_describe=True),
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, float("inf")),
    )

    @app.route("/mutate", methods=["POST"])
    @metrics.counter(
        "mutate_requests_total",
        "Total number of mutate requests",
        labels={
            "allowed": lambda r: metrics_label(r, "allowed"),
            "status_code": lambda r: metrics_label(r, "status_code"),
        },
    )
    def mutate():
        """
        Handle the '/mutate' path and accept CREATE and UPDATE requests.
        Send a response back, which allows the request and possibly carries a
        patch that injects the configured init containers.
        """
        body = request.get_data()
        if not body:
            logging.error("empty request body.")
            return "Empty Body", 400

        review = admit(body, app.config[CONFIG_KEY])

        try:
            data = json.dumps(review)
        except (TypeError, ValueError) as err:
            logging.error("can't encode response: %s", err)
            return f"Can't encode response: {err}", 500
        return app.response_class(data, status=200, mimetype="application/json")

    # health probe
    @app.route("/health", methods=["GET", "POST"])
    @metrics.do_not_track()
    def healthz():
        """
        Handle the '/health' endpoint and check the health status of the web server.
        Send back '200' status code.
        """

        return "", 200

    # readiness probe
    @app.route("/ready", methods=["GET", "POST"])
    @metrics.do_not_track()
    def readyz():
        return "", 200

    return app


def metrics_label(response, label):
    json_response = response.get_json(silent=True)
    if json_response:
        if label == "allowed":
            return json_response["response"]["allowed"]
        elif label == "status_code":
            return json_response["response"].get("status", {}).get("code", 200)
    return json_response


def admit(body: bytes, injection_config: InjectionConfig) -> dict:
    """
    Turn the raw `body` of an admission review into the admission review
    response.

    Errors while decoding the request or building the patch don't fail the
    HTTP request, but are reported in the response, so the API server can
    process them.
    """
    review, admission_request = None, None
    try:
        try:
            review = json.loads(body)
        except ValueError as err:
            msg = "Can't decode request body: {err}"
            raise InvalidAdmissionReviewFormatError(message=msg, err=str(err)) from err

        admission_request = AdmissionRequest(review)
        logging.debug(admission_request.object)
        return _mutate(admission_request, injection_config)
    except BaseInjectorException as err:
        if admission_request:
            err.update_context(**admission_request.context)
        logging.error(str(err))
        code = (
            400
            if isinstance(err, (InvalidFormatException, UnknownTypeException))
            else 500
        )
        msg = err.user_msg
    except Exception:  # pylint: disable=broad-except
        logging.error(traceback.format_exc())
        code = 500
        msg = "unknown error. please check the logs."

    return get_admission_review(get_uid(review), False, msg=msg, code=code)


def _mutate(admission_request: AdmissionRequest, injection_config: InjectionConfig):
    wl_object = admission_request.wl_object
    logging_context = dict(admission_request.context)
    logging.info(
        "admission review for %s %s/%s.",
        wl_object.kind,
        wl_object.namespace,
        wl_object.name,
        extra=logging_context,
    )

    if not should_mutate(wl_object.namespace, wl_object.annotations):
        logging.info(
            'skipping mutation for "%s/%s".',
            wl_object.namespace,
            wl_object.name,
            extra=logging_context,
        )
        return get_admission_review(admission_request.uid, True)

    containers = apply_container_defaults(injection_config.containers)
    patch = create_patch(
        wl_object,
        containers,
        injection_config.volumes,
        {const.INJECT_ANNOTATION_KEY: const.INJECTED_VALUE},
    )
    logging.info(
        'injecting init containers %s into "%s/%s".',
        injection_config.container_names,
        wl_object.namespace,
        wl_object.name,
        extra=dict(logging_context, patch=patch.decode("utf-8")),
    )
    return get_admission_review(admission_request.uid, True, patch=patch)
