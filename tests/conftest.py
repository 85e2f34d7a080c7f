"""Shared fixtures.

The detail cache is process-wide, so it is emptied around every test to
keep one test's resolved drugs from leaking into the next.
"""

from collections.abc import Iterator

import pytest

from medcheck.cache import get_detail_cache


@pytest.fixture(autouse=True)
def _clear_detail_cache() -> Iterator[None]:
    get_detail_cache().clear()
    yield
    get_detail_cache().clear()
