import logging
from typing import Mapping, Optional

import initinjector.constants as const


def should_mutate(namespace: str, annotations: Optional[Mapping[str, str]]) -> bool:
    """
    Decide whether a workload in `namespace` with the given `annotations` gets
    init containers injected.

    Workloads in the system and public namespaces are never touched. All
    others have to opt in by setting the inject annotation to "yes" (case
    insensitive).
    """
    if namespace in const.IGNORED_NAMESPACES:
        logging.info('skipping mutation for "%s" namespace.', namespace)
        return False

    status = (annotations or {}).get(const.INJECT_ANNOTATION_KEY)
    if status is None:
        return False
    return str(status).lower() == const.OPT_IN_VALUE
