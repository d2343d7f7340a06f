import shutil
from pathlib import Path
from typing import Dict, List, Optional, Union
from unittest.mock import MagicMock

import pytest

from headroom.system.config import ReserveConfig

FIXTURES = Path(__file__).parent / "fixtures"


def fixture_text(*parts: str) -> str:
    return FIXTURES.joinpath(*parts).read_text()


@pytest.fixture
def fast_config(tmp_path) -> ReserveConfig:
    """Short sampling window, /proc and /sys rooted in the test's tmp dir."""
    return ReserveConfig(
        sampling_interval_s=0.01,
        proc_root=tmp_path / "proc",
        sys_root=tmp_path / "sys",
    )


@pytest.fixture
def proc_tree(tmp_path) -> Path:
    """A static /proc tree built from the linux fixtures."""
    proc = tmp_path / "proc"
    layout = {
        "stat": "stat_a.txt",
        "loadavg": "loadavg.txt",
        "cpuinfo": "cpuinfo.txt",
        "meminfo": "meminfo.txt",
        "pressure/memory": "pressure_memory.txt",
        "diskstats": "diskstats_a.txt",
        "net/dev": "net_dev_a.txt",
        "sys/fs/file-nr": "file-nr.txt",
    }
    for rel, name in layout.items():
        dest = proc / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(FIXTURES / "linux" / name, dest)
    threads_max = proc / "sys" / "kernel" / "threads-max"
    threads_max.parent.mkdir(parents=True, exist_ok=True)
    threads_max.write_text("1000\n")
    return proc


class SequencedReader:
    """
    Stand-in for read_text(): each path yields its listed contents in order,
    repeating the last one. Unknown paths read as missing.
    """

    def __init__(self, root: Path, files: Dict[str, Union[str, List[str]]]) -> None:
        self.root = root
        self.files = {k: list(v) if isinstance(v, list) else [v] for k, v in files.items()}

    def __call__(self, path: Path) -> Optional[str]:
        seq = self.files.get(Path(path).relative_to(self.root).as_posix())
        if not seq:
            return None
        return seq.pop(0) if len(seq) > 1 else seq[0]


class CannedRunner:
    """Stand-in for run_command(): maps argv tuples to stdout (or a sequence of them)."""

    def __init__(self, outputs: Dict[tuple, Union[str, List[str], None]]) -> None:
        self.outputs = {k: list(v) if isinstance(v, list) else [v] for k, v in outputs.items()}
        self.calls: List[tuple] = []

    def __call__(self, args) -> Optional[str]:
        key = tuple(args)
        self.calls.append(key)
        seq = self.outputs.get(key)
        if not seq:
            return None
        return seq.pop(0) if len(seq) > 1 else seq[0]


def fixed_clock(*stamps: float) -> MagicMock:
    """Replacement for the `time` module seen by sample_twice()."""
    clock = MagicMock()
    clock.monotonic.side_effect = list(stamps)
    return clock
