"""Unit tests for the core package exports."""

import docstore_server.core as core
from docstore_server.core import errors


class TestExports:
    """Public names of the core package."""

    def test_exported_errors_are_the_error_classes(self):
        for name in core.__all__:
            if name.endswith("Error"):
                assert getattr(core, name) is getattr(errors, name)

    def test_every_listed_name_is_bound(self):
        assert set(core.__all__) <= set(vars(core))
        assert not hasattr(core, "Any")
