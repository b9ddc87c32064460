"""
The Prometheus node exporter [#n1]_ exposes the host metrics (CPU, memory,
disks, network...) on an HTTP endpoint (``/metrics``).

It is installed from the upstream release archive and runs as a systemd
service under a dedicated unprivileged account. The set of collectors is
narrowed down to a curated subset (see
:py:data:`~vmexporters.service.node_exporter.node_exporter.DISABLED_COLLECTORS`).

.. topic:: links

    .. [#n1] https://github.com/prometheus/node_exporter
"""
