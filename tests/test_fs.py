import os
from pathlib import Path

import pytest

from jobboard.service.fs import (
    PathTraversalError,
    public_upload_path,
    safe_join,
    upload_name_from_public,
)


def test_safe_join_accepts_child_path(tmp_path: Path):
    result = safe_join(tmp_path, "cv.pdf")

    assert tmp_path.resolve() in result.parents


def test_safe_join_rejects_traversal(tmp_path: Path):
    with pytest.raises(PathTraversalError):
        safe_join(tmp_path, os.path.join("..", "escape.pdf"))


def test_safe_join_rejects_absolute(tmp_path: Path):
    with pytest.raises(PathTraversalError):
        safe_join(tmp_path, str(Path("/tmp/absolute.pdf")))


def test_safe_join_rejects_base_itself(tmp_path: Path):
    with pytest.raises(PathTraversalError):
        safe_join(tmp_path, ".")


def test_public_path_round_trip():
    public = public_upload_path("abc.pdf")

    assert public == "/uploads/abc.pdf"
    assert upload_name_from_public(public) == "abc.pdf"


def test_stored_traversal_reference_is_reduced_to_name(tmp_path: Path):
    name = upload_name_from_public("/uploads/../../etc/passwd")
    assert safe_join(tmp_path, name) == tmp_path.resolve() / "passwd"
