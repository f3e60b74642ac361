from dissect.regdump.dump import DumpOptions, RegistryDumper, dump_hive
from dissect.regdump.exceptions import (
    BadArgumentError,
    Error,
    HiveReadError,
    InvalidSignatureError,
    MalformedHiveError,
)
from dissect.regdump.regf import RegistryHive
from dissect.regdump.render import TraversalContext, render_value

__all__ = [
    "BadArgumentError",
    "DumpOptions",
    "Error",
    "HiveReadError",
    "InvalidSignatureError",
    "MalformedHiveError",
    "RegistryDumper",
    "RegistryHive",
    "TraversalContext",
    "dump_hive",
    "render_value",
]
