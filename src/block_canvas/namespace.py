"""Id namespacing for multi-system canvases.

Every id the layout engine generates is ``<namespace>-<localId>``.  Each
loaded system gets its own namespace (its system id), so the merged node
and edge lists never contain the same id twice.
"""

from __future__ import annotations


def namespaced(namespace: str, local_id: object) -> str:
    """Prefix ``local_id`` with ``namespace``."""
    return f"{namespace}-{local_id}"


class Namespacer:
    """Callable bound to one namespace.

    >>> ns = Namespacer("a1b2")
    >>> ns("gran-7")
    'a1b2-gran-7'
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    def __call__(self, local_id: object) -> str:
        return namespaced(self.namespace, local_id)
