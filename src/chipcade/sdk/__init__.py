"""
Chipcade Machine Definitions
============================

This package describes the Chipcade virtual machine for the toolchain:
its configuration, its memory map, the named constants programs use to
reach hardware, and the header files that expose those constants.

Overview
--------
**config.py**: Machine configuration and memory layout
    - MachineConfig dataclass, loaded from `chipcade.toml`
    - MemoryMap derived from the video and palette settings

**constants.py**: Named constants
    - SystemConst dataclass
    - system_constants() for hardware addresses and input bits
    - sprite_constants() for `SPR_<NAME>` sprite indices

**headers.py**: Generated include files
    - chipcade.inc for assembly, chipcade.h for C

Quick Start
-----------
    >>> from chipcade.sdk import MachineConfig, MemoryMap, system_constants
    >>> config = MachineConfig()
    >>> memory_map = MemoryMap.from_config(config)
    >>> hex(memory_map.sprite_ram)
    '0x8030'

    >>> from chipcade.sdk import write_headers
    >>> write_headers("src/include", system_constants(memory_map, config))
"""

from chipcade.sdk.config import (
    CONFIG_FILENAME,
    MachineConfig,
    MemoryMap,
    load_config,
    load_project_config,
)
from chipcade.sdk.constants import (
    SystemConst,
    constants_dict,
    sprite_constant_name,
    sprite_constants,
    system_constants,
)
from chipcade.sdk.headers import (
    ASM_INCLUDE_NAME,
    C_HEADER_NAME,
    generate_asm_include,
    generate_c_header,
    write_headers,
)

__all__ = [
    # Configuration
    "CONFIG_FILENAME",
    "MachineConfig",
    "MemoryMap",
    "load_config",
    "load_project_config",
    # Constants
    "SystemConst",
    "constants_dict",
    "sprite_constant_name",
    "sprite_constants",
    "system_constants",
    # Headers
    "ASM_INCLUDE_NAME",
    "C_HEADER_NAME",
    "generate_asm_include",
    "generate_c_header",
    "write_headers",
]
