# annotation a workload sets to "yes" to opt into init container injection
INJECT_ANNOTATION_KEY = "init-container-injector-webhook.sphong.com/inject"
OPT_IN_VALUE = "yes"
# value the annotation must already hold before it gets replaced by INJECTED_VALUE
MARKER_VALUE = "true"
INJECTED_VALUE = "injected"

NAMESPACE_SYSTEM = "kube-system"
NAMESPACE_PUBLIC = "kube-public"
IGNORED_NAMESPACES = (NAMESPACE_SYSTEM, NAMESPACE_PUBLIC)

ADMISSION_API_VERSION = "admission.k8s.io/v1"
JSON_PATCH = "JSONPatch"
