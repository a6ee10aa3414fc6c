"""pytest glue for the self-running harness in test_qris.py."""

import pytest

from test_qris import CaseResult


@pytest.fixture
def r(request):
    """Per-test result object, as handed out by test_qris.run_test()."""
    return CaseResult(request.node.name)
