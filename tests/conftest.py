import pytest

from cdda_backup.config import Settings


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def set(self, value: float) -> None:
        self.now = value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def save_root(tmp_path):
    root = tmp_path / "save"
    root.mkdir()
    return root


@pytest.fixture
def settings(save_root):
    return Settings(
        watched_root=save_root,
        backup_folder_name="Backups",
        timestamp_format="%Y-%m-%d %H-%M-%S",
        grace_period=0.5,
        poll_interval=0.1,
    )


@pytest.fixture
def make_save(save_root):
    def _make(name):
        save = save_root / name
        save.mkdir(parents=True, exist_ok=True)
        return save

    return _make
