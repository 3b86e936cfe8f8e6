"""
Defaulting of container specifications, so that injected init containers look
like the API server would have stored them.

Mirrors `SetDefaults_Container` and friends of the Kubernetes core/v1 API:
https://github.com/kubernetes/kubernetes/blob/master/pkg/apis/core/v1/defaults.go
"""

import copy

from initinjector.image import Image

PULL_ALWAYS = "Always"
PULL_IF_NOT_PRESENT = "IfNotPresent"
TERMINATION_MESSAGE_PATH = "/dev/termination-log"
TERMINATION_MESSAGE_POLICY = "File"
PROTOCOL = "TCP"
FIELD_REF_API_VERSION = "v1"
PROBES = ("livenessProbe", "readinessProbe", "startupProbe")
PROBE_DEFAULTS = {
    "timeoutSeconds": 1,
    "periodSeconds": 10,
    "successThreshold": 1,
    "failureThreshold": 3,
}


def apply_container_defaults(containers: list) -> list:
    """
    Return copies of the given `containers` with unset fields defaulted.
    The input is left untouched.
    """
    return [_default_container(copy.deepcopy(container)) for container in containers]


def _default_container(container: dict) -> dict:
    if not container.get("imagePullPolicy"):
        image = Image(container["image"])
        container["imagePullPolicy"] = (
            PULL_ALWAYS if image.is_latest else PULL_IF_NOT_PRESENT
        )
    container.setdefault("terminationMessagePath", TERMINATION_MESSAGE_PATH)
    container.setdefault("terminationMessagePolicy", TERMINATION_MESSAGE_POLICY)

    for port in container.get("ports") or []:
        port.setdefault("protocol", PROTOCOL)

    for env in container.get("env") or []:
        field_ref = (env.get("valueFrom") or {}).get("fieldRef")
        if field_ref is not None:
            field_ref.setdefault("apiVersion", FIELD_REF_API_VERSION)

    for probe_name in PROBES:
        probe = container.get(probe_name)
        if probe is None:
            continue
        for key, value in PROBE_DEFAULTS.items():
            probe.setdefault(key, value)
        http_get = probe.get("httpGet")
        if http_get is not None:
            http_get.setdefault("path", "/")
            http_get.setdefault("scheme", "HTTP")

    return container
