"""Configuration file schema for ncbackup."""

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "remote": {
            "type": "object",
            "properties": {
                "host": {"type": "string", "minLength": 1},
                "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                "user": {"type": "string", "minLength": 1},
                "ssh_key": {
                    "type": "string",
                    "description": "Path to the private key used for ssh and rsync",
                },
                "backup_dir": {
                    "type": "string",
                    "description": "Remote directory holding the archives",
                },
            },
            "additionalProperties": False,
        },
        "database": {
            "type": "object",
            "properties": {
                "container": {"type": "string", "minLength": 1},
                "name": {"type": "string", "minLength": 1},
                "user": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
        "nextcloud": {
            "type": "object",
            "properties": {
                "container": {"type": "string", "minLength": 1},
                "user": {
                    "type": "string",
                    "description": "User that runs occ inside the container",
                },
                "volume": {"type": "string", "minLength": 1},
                "data_dir": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
        "helper_image": {"type": "string", "minLength": 1},
        "retention_days": {"type": "integer", "minimum": 0},
        "log_file": {"type": "string"},
        "staging_root": {"type": "string"},
        "required_commands": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
        },
    },
    "additionalProperties": False,
}
