"""
The NVIDIA DCGM exporter [#d1]_ exposes GPU telemetry on an HTTP endpoint
(``/metrics``).

It runs as a docker container with access to all the GPUs of the host. The
fields it exposes are listed in a CSV file mounted read-only in the
container, either the built-in list of
:py:data:`~vmexporters.counters.COUNTERS` or a file fetched from a URL.

.. topic:: links

    .. [#d1] https://github.com/NVIDIA/dcgm-exporter
"""
