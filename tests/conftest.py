import pytest

from bmw_scrapper.config import Settings
from bmw_scrapper.selectors import Timing


@pytest.fixture
def timing():
    # Same control flow as production, a hundredth of the waiting
    return Timing().scaled(0.01)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        dev_mode=False,
        grid_url="https://www.bmw.co.uk/en/all-models.html",
        configure_host="configure.bmw.co.uk",
        fallback_host="www.bmw.co.uk",
        urls_csv=str(tmp_path / "urls.csv"),
        data_csv=str(tmp_path / "data.csv"),
        max_cars=None,
        duplicate_streak=2,
    )
