"""
Process attachment for reading emulator memory.

Finds the emulator by name (psutil) and reads raw bytes from it with
ReadProcessMemory on Windows or /proc/<pid>/mem on Linux. Read-only;
nothing here ever writes to the target.
"""

from __future__ import annotations

import ctypes
import logging
import sys
from dataclasses import dataclass
from typing import BinaryIO

import psutil

from ..errors import MemoryReadError

log = logging.getLogger(__name__)

# Windows constants
PROCESS_VM_READ = 0x0010
PROCESS_QUERY_INFORMATION = 0x0400

_kernel32 = None


def _get_kernel32():
    """Bind the few kernel32 calls we need, once, on first use."""
    global _kernel32
    if _kernel32 is None:
        import ctypes.wintypes as wt

        k32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        k32.OpenProcess.argtypes = [wt.DWORD, wt.BOOL, wt.DWORD]
        k32.OpenProcess.restype = wt.HANDLE
        k32.CloseHandle.argtypes = [wt.HANDLE]
        k32.CloseHandle.restype = wt.BOOL
        k32.ReadProcessMemory.argtypes = [
            wt.HANDLE,
            ctypes.c_void_p,
            ctypes.c_void_p,
            ctypes.c_size_t,
            ctypes.POINTER(ctypes.c_size_t),
        ]
        k32.ReadProcessMemory.restype = wt.BOOL
        _kernel32 = k32
    return _kernel32


@dataclass
class ProcessInfo:
    """Information about a running process."""
    pid: int
    name: str


def enumerate_processes(name_filter: str = "") -> list[ProcessInfo]:
    """List running processes whose name contains name_filter (case-insensitive)."""
    needle = name_filter.lower()
    found: list[ProcessInfo] = []
    for proc in psutil.process_iter(["name"]):
        name = proc.info.get("name") or ""
        if needle and needle not in name.lower():
            continue
        found.append(ProcessInfo(pid=proc.pid, name=name))
    return found


def find_process(name: str) -> ProcessInfo | None:
    """First process whose name matches exactly, else the first partial match."""
    candidates = enumerate_processes(name)
    for proc in candidates:
        if proc.name.lower() == name.lower():
            return proc
    return candidates[0] if candidates else None


class ProcessMemory:
    """
    Attach to a process for memory reading.

    Usage:
        mem = ProcessMemory()
        mem.attach(pid)
        data = mem.read(address, size)
        mem.detach()
    """

    def __init__(self):
        self._handle = None                  # Windows process handle
        self._mem_file: BinaryIO | None = None   # /proc/<pid>/mem
        self._pid: int = 0
        self._process_name: str = ""

    @property
    def is_attached(self) -> bool:
        return self._handle is not None or self._mem_file is not None

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def process_name(self) -> str:
        return self._process_name

    def attach(self, pid: int) -> bool:
        """Attach to a process by PID. Returns True on success."""
        self.detach()

        try:
            self._process_name = psutil.Process(pid).name()
        except psutil.Error as e:
            log.warning("No such process %d: %s", pid, e)
            return False

        if sys.platform == "win32":
            k32 = _get_kernel32()
            handle = k32.OpenProcess(PROCESS_VM_READ | PROCESS_QUERY_INFORMATION, False, pid)
            if not handle:
                log.warning("OpenProcess failed for %d", pid)
                return False
            self._handle = handle
        else:
            try:
                self._mem_file = open(f"/proc/{pid}/mem", "rb", buffering=0)
            except OSError as e:
                log.warning("Cannot open memory of %d: %s", pid, e)
                return False

        self._pid = pid
        log.info("Attached to %s (pid %d)", self._process_name, pid)
        return True

    def attach_by_name(self, name: str) -> bool:
        proc = find_process(name)
        if proc is None:
            log.warning("Process %r not found", name)
            return False
        return self.attach(proc.pid)

    def detach(self):
        """Detach from current process."""
        if self._handle is not None:
            _get_kernel32().CloseHandle(self._handle)
        if self._mem_file is not None:
            self._mem_file.close()
        self._handle = None
        self._mem_file = None
        self._pid = 0
        self._process_name = ""

    def read(self, address: int, size: int) -> bytes:
        """
        Read raw bytes from process memory.

        Raises MemoryReadError on failure or short read.
        """
        if not self.is_attached:
            raise MemoryReadError(address, size, "not attached")

        if self._handle is not None:
            k32 = _get_kernel32()
            buf = ctypes.create_string_buffer(size)
            bytes_read = ctypes.c_size_t(0)
            ok = k32.ReadProcessMemory(
                self._handle,
                ctypes.c_void_p(address),
                buf,
                size,
                ctypes.byref(bytes_read),
            )
            if not ok:
                raise MemoryReadError(address, size, "ReadProcessMemory failed")
            data = buf.raw[: bytes_read.value]
        else:
            try:
                self._mem_file.seek(address)
                data = self._mem_file.read(size) or b""
            except (OSError, ValueError, OverflowError) as e:
                raise MemoryReadError(address, size, str(e)) from e

        if len(data) < size:
            raise MemoryReadError(address, size, f"short read ({len(data)} bytes)")
        return data

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.detach()
