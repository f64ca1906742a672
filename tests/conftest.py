import os
import sys

import pytest


def pytest_configure():
    # Ensure the root-level modules are importable without installing
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    if root not in sys.path:
        sys.path.insert(0, root)


@pytest.fixture
def cipher():
    from tiddlercrypt import SjclCipher

    # Low iteration count keeps the suite fast; the envelope records it.
    return SjclCipher(iterations=1000)


@pytest.fixture
def make_tiddler():
    def _make(tags: str, body: str, *, before: str = "", after: str = "\n") -> str:
        return (
            f'{before}<div title="Secret" created="20240101000000000" tags="{tags}" type="text/vnd.tiddlywiki">\n'
            f"<pre>{body}</pre>\n"
            f"</div>{after}"
        )

    return _make
