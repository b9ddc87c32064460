"""The DCGM fields exposed by the DCGM exporter.

The exporter reads a CSV file, one field per line::

    DCGM FIELD, Prometheus metric type, help message

Lines starting with ``#`` are comments.
"""
from dataclasses import dataclass
from typing import List

from vmexporters.templates import render

GAUGE = "gauge"
COUNTER = "counter"
METRIC_TYPES = (GAUGE, COUNTER)


@dataclass(frozen=True)
class Counter:
    field: str
    type: str
    help: str
    section: str = ""
    enabled: bool = True

    def __post_init__(self):
        if self.type not in METRIC_TYPES:
            raise ValueError(f"Unknown metric type {self.type} for {self.field}")


# (section, note) in rendering order
SECTIONS = [
    ("Clocks", None),
    ("Temperature", None),
    ("Power & Energy", None),
    ("PCIE", None),
    ("Utilization (the sample period varies depending on the product)", None),
    ("Errors and violations", None),
    ("Memory usage", None),
    ("ECC", None),
    ("NVLink", None),
    (
        "Datacenter Profiling (DCP) metrics",
        "NOTE: supported on Nvidia datacenter Volta GPUs and newer",
    ),
]

_CLOCKS, _TEMP, _POWER, _PCIE, _UTIL, _ERRORS, _MEMORY, _ECC, _NVLINK, _DCP = (
    s for s, _ in SECTIONS
)

COUNTERS: List[Counter] = [
    Counter("DCGM_FI_DEV_SM_CLOCK", GAUGE, "SM clock frequency (in MHz).", _CLOCKS),
    Counter(
        "DCGM_FI_DEV_MEM_CLOCK", GAUGE, "Memory clock frequency (in MHz).", _CLOCKS
    ),
    Counter(
        "DCGM_FI_DEV_APP_MEM_CLOCK",
        GAUGE,
        "Ratio of time the graphics engine is active.",
        _CLOCKS,
    ),
    Counter(
        "DCGM_FI_DEV_CLOCKS_EVENT_REASONS",
        GAUGE,
        "Current clock throttle reasons.",
        _CLOCKS,
    ),
    Counter("DCGM_FI_DEV_MEMORY_TEMP", GAUGE, "Memory temperature (in C).", _TEMP),
    Counter("DCGM_FI_DEV_GPU_TEMP", GAUGE, "GPU temperature (in C).", _TEMP),
    Counter(
        "DCGM_FI_DEV_GPU_MAX_OP_TEMP",
        GAUGE,
        "Maximum operating temperature for this GPU.",
        _TEMP,
    ),
    Counter("DCGM_FI_DEV_POWER_USAGE", GAUGE, "Power draw (in W).", _POWER),
    Counter(
        "DCGM_FI_DEV_POWER_MGMT_LIMIT",
        GAUGE,
        "Current Power limit for the device (in W)",
        _POWER,
    ),
    Counter(
        "DCGM_FI_DEV_TOTAL_ENERGY_CONSUMPTION",
        COUNTER,
        "Total energy consumption since boot (in mJ).",
        _POWER,
    ),
    Counter(
        "DCGM_FI_PROF_PCIE_TX_BYTES",
        COUNTER,
        "Total number of bytes transmitted through PCIe TX via NVML.",
        _PCIE,
    ),
    Counter(
        "DCGM_FI_PROF_PCIE_RX_BYTES",
        COUNTER,
        "Total number of bytes received through PCIe RX via NVML.",
        _PCIE,
    ),
    Counter(
        "DCGM_FI_DEV_PCIE_REPLAY_COUNTER",
        COUNTER,
        "Total number of PCIe retries.",
        _PCIE,
    ),
    Counter("DCGM_FI_DEV_GPU_UTIL", GAUGE, "GPU utilization (in %).", _UTIL),
    Counter("DCGM_FI_DEV_MEM_COPY_UTIL", GAUGE, "Memory utilization (in %).", _UTIL),
    Counter(
        "DCGM_FI_DEV_XID_ERRORS",
        GAUGE,
        "Value of the last XID error encountered.",
        _ERRORS,
    ),
    Counter(
        "DCGM_FI_DEV_POWER_VIOLATION",
        COUNTER,
        "Throttling duration due to power constraints (in us).",
        _ERRORS,
    ),
    Counter(
        "DCGM_FI_DEV_THERMAL_VIOLATION",
        COUNTER,
        "Throttling duration due to thermal constraints (in us).",
        _ERRORS,
    ),
    Counter(
        "DCGM_FI_DEV_FB_FREE",
        GAUGE,
        "Framebuffer memory free (in MiB).",
        _MEMORY,
        enabled=False,
    ),
    Counter(
        "DCGM_FI_DEV_FB_USED",
        GAUGE,
        "Framebuffer memory used (in MiB).",
        _MEMORY,
        enabled=False,
    ),
    Counter(
        "DCGM_FI_DEV_ECC_SBE_VOL_TOTAL",
        COUNTER,
        "Total number of single-bit volatile ECC errors.",
        _ECC,
    ),
    Counter(
        "DCGM_FI_DEV_ECC_DBE_VOL_TOTAL",
        COUNTER,
        "Total number of double-bit volatile ECC errors.",
        _ECC,
    ),
    Counter(
        "DCGM_FI_DEV_ECC_SBE_AGG_TOTAL",
        COUNTER,
        "Total number of single-bit persistent ECC errors.",
        _ECC,
    ),
    Counter(
        "DCGM_FI_DEV_ECC_DBE_AGG_TOTAL",
        COUNTER,
        "Total number of double-bit persistent ECC errors.",
        _ECC,
    ),
    Counter(
        "DCGM_FI_DEV_NVLINK_COUNT_LINK_RECOVERY_FAILED_EVENTS",
        COUNTER,
        "Number of times link went from Up to recovery failed and link down.",
        _NVLINK,
    ),
    Counter(
        "DCGM_FI_DEV_NVLINK_COUNT_LOCAL_LINK_INTEGRITY_ERRORS",
        COUNTER,
        "Total number of times that the count of local errors.",
        _NVLINK,
    ),
    Counter(
        "DCGM_FI_DEV_NVLINK_COUNT_RX_ERRORS",
        COUNTER,
        "Total number of packets with errors Rx on a link.",
        _NVLINK,
    ),
    Counter(
        "DCGM_FI_DEV_NVLINK_COUNT_TX_DISCARDS",
        COUNTER,
        "Total number of tx error packets that were discarded.",
        _NVLINK,
    ),
    Counter(
        "DCGM_FI_PROF_NVLINK_TX_BYTES",
        COUNTER,
        "Nvlink Port Raw bandwidth (TX)",
        _NVLINK,
    ),
    Counter(
        "DCGM_FI_PROF_NVLINK_RX_BYTES",
        COUNTER,
        "Nvlink Port Raw bandwidth (RX)",
        _NVLINK,
    ),
    Counter(
        "DCGM_FI_PROF_SM_ACTIVE",
        GAUGE,
        "The ratio of cycles an SM has at least 1 warp assigned.",
        _DCP,
    ),
    Counter(
        "DCGM_FI_PROF_SM_OCCUPANCY",
        GAUGE,
        "The ratio of number of warps resident on an SM.",
        _DCP,
    ),
    Counter(
        "DCGM_FI_PROF_PIPE_TENSOR_ACTIVE",
        GAUGE,
        "Ratio of cycles the tensor (HMMA) pipe is active.",
        _DCP,
    ),
    Counter(
        "DCGM_FI_PROF_DRAM_ACTIVE",
        GAUGE,
        "Ratio of cycles the device memory interface is active sending or "
        "receiving data.",
        _DCP,
    ),
    Counter(
        "DCGM_FI_PROF_PIPE_FP64_ACTIVE",
        GAUGE,
        "Ratio of cycles the fp64 pipes are active.",
        _DCP,
    ),
    Counter(
        "DCGM_FI_PROF_PIPE_FP32_ACTIVE",
        GAUGE,
        "Ratio of cycles the fp32 pipes are active.",
        _DCP,
    ),
    Counter(
        "DCGM_FI_PROF_PIPE_FP16_ACTIVE",
        GAUGE,
        "Ratio of cycles the fp16 pipes are active.",
        _DCP,
    ),
]


def enabled_counters(counters: List[Counter] = COUNTERS) -> List[Counter]:
    return [c for c in counters if c.enabled]


def render_counters(counters: List[Counter] = COUNTERS) -> str:
    """Render the counters as the CSV file expected by the DCGM exporter."""
    sections = []
    for section, note in SECTIONS:
        members = [c for c in counters if c.section == section]
        if members:
            sections.append(dict(name=section, note=note, counters=members))
    # counters without a known section go at the end
    known = {s for s, _ in SECTIONS}
    orphans = [c for c in counters if c.section not in known]
    if orphans:
        sections.append(dict(name="Custom", note=None, counters=orphans))
    return render("custom-counters.csv.j2", sections=sections)


def parse_counters(text: str) -> List[Counter]:
    """Parse a counters CSV.

    Comments and blank lines are skipped.

    Raises:
        ValueError: if a line is malformed
    """
    counters = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = [p.strip() for p in line.split(",", 2)]
        if len(parts) != 3:
            raise ValueError(f"line {lineno}: expected 3 columns, got {line!r}")
        field, metric_type, help_msg = parts
        counters.append(Counter(field, metric_type, help_msg))
    return counters
