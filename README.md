# neonova

A set of simulated operating-system services for Python. It includes a small
register-based bytecode virtual machine with several execution backends, along
with process, application, game and device management, a copy-on-write file
store, and power and resource monitors.

## Installation

```
pip install .
```

To run the tests, install the test extra and run pytest:

```
pip install .[test]
pytest
```

## Modules

- `neonova.vm`: the bytecode interpreter (`VM`, `Opcode`, `Arch`, `VMSnapshot`,
  `VMError`). It has 16 registers, a 256-slot stack that also serves as memory,
  and recovery through snapshot rollback.
- `neonova.x86_64`: emits x86-64 machine code for a program (`emit_x86_64`) and
  runs it (`compile_x86_64`). It raises `JitError` on opcodes it does not support.
- `neonova.backends`: the ARM, RISC-V and photonic backends (`JitBackend`,
  `interpret_subset`), plus `select_backend` and `compile_vm`, which dispatch on `Arch`.
- `neonova.process`: `ProcessTable`, `Process`, `ProcessState`,
  `mac_enforce_policy` and `sandbox_process`.
- `neonova.apps`: `AppRuntime` and `AppContainer` for native, WASM, JVM and
  Electron apps (`AppType`).
- `neonova.gaming`: `GamingMode`, `Game`, a framebuffer `GpuApi`, and renderer
  detection (`Renderer`, `renderer_name`, `gaming_support_init`).
- `neonova.cloud`: `AIAssistant`, `EdgeComputeEngine`, `PredictiveLoader` and
  `CloudSync`.
- `neonova.compat`: `AndroidApp`, the `ElfBinary`, `MachOBinary` and `PeBinary`
  images, and `launch_container`, which runs a shell command.
- `neonova.drivers`: `HwFingerprint`, `Driver` and `DriverRegistry`, plus the
  rule-based `suggest_driver` and the fallbacks `generate_generic_driver` and
  `fetch_driver_from_cloud`.
- `neonova.cowfs`: `CowFS`, with read and write at an offset, snapshots, block
  deduplication, AES-256-CBC encryption and backups.
- `neonova.power`: the power governor, suspend and usage-learning log helpers.
- `neonova.resources`: `ResourceManager` and `ResourceUsage`, plus the CPU, RAM,
  I/O and GPU usage probes.

## Example

```python
import struct
from neonova.vm import VM, Opcode

code = (
    bytes([Opcode.LOAD_IMM, 0]) + struct.pack("<I", 6)
    + bytes([Opcode.LOAD_IMM, 1]) + struct.pack("<I", 7)
    + bytes([Opcode.MUL, 0, 1, Opcode.HALT])
)
vm = VM(code)
vm.run()
print(vm.regs[0])  # 42
```