import os

# transitioning to Pathlib
from pathlib import Path

# PATH constants
VMEXPORTERS_PATH = os.path.abspath(os.path.dirname(os.path.realpath(__file__)))
TEMPLATES_DIR = os.path.join(VMEXPORTERS_PATH, "templates")

LOG_FILE = Path("/var/log/monitoring_exporters_install.log")

# node exporter
NODE_EXPORTER_VERSION = "1.9.1"
NODE_EXPORTER_PORT = 9100
NODE_EXPORTER_DIR = Path("/opt/node_exporter")
NODE_EXPORTER_USER = "node_exporter"
NODE_EXPORTER_SERVICE = "node_exporter"
NODE_EXPORTER_UNIT = Path("/etc/systemd/system/node_exporter.service")
NODE_EXPORTER_OPTIONS = Path("/etc/sysconfig/node_exporter")
NODE_EXPORTER_URL = (
    "https://github.com/prometheus/node_exporter/releases/download/"
    "v{version}/{package}"
)

# dcgm exporter
DCGM_EXPORTER_VERSION = "4.2.3-4.1.3-ubuntu22.04"
DCGM_EXPORTER_IMAGE = "nvcr.io/nvidia/k8s/dcgm-exporter"
DCGM_EXPORTER_PORT = 9400
DCGM_EXPORTER_DIR = Path("/opt/dcgm-exporter")
DCGM_CONTAINER_NAME = "dcgm-exporter"
COUNTERS_FILENAME = "custom-counters.csv"
COUNTERS_CONTAINER_PATH = "/etc/dcgm-exporter/custom-counters.csv"
# lines of the exposition format we count as DCGM metrics
DCGM_METRIC_PREFIX = "DCGM_FI"

BASE_PACKAGES = ["wget", "curl"]
