SCHEMA = {
    "type": "object",
    "properties": {
        "node_exporter_version": {"type": "string"},
        "node_exporter_port": {"$ref": "#/port"},
        "node_exporter_dir": {"type": "string"},
        "dcgm_exporter_version": {"type": "string"},
        "dcgm_image": {"type": "string"},
        "dcgm_exporter_port": {"$ref": "#/port"},
        "dcgm_exporter_dir": {"type": "string"},
        "container_name": {"type": "string", "minLength": 1},
        "custom_counters_url": {"type": ["string", "null"]},
        "packages": {"type": "array", "items": {"type": "string"}},
        "log_file": {"type": "string"},
    },
    "additionalProperties": False,
    "port": {"type": "integer", "minimum": 1, "maximum": 65535},
}
