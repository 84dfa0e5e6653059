"""Loader: discover and parse test case definition files.

Walks a source tree in lexical order and parses every file into a
``TestFile``. Definition files are YAML documents (JSON is accepted since it
is a YAML subset) of the form ``{"cases": [...]}``. Any unreadable or
malformed file aborts the whole run.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Union

import yaml
from pydantic import ValidationError

from plan_fixtures.schemas.test_case import TestFile

logger = logging.getLogger(__name__)


class FixtureLoadError(Exception):
    """Raised when a test definition file cannot be read or parsed."""
    pass


class _DefinitionLoader(yaml.SafeLoader):
    """SafeLoader that keeps timestamp-looking scalars as plain strings.

    Test documents are JSON data; a value such as ``2020-01-01`` must reach
    the engine as a string, not a ``datetime.date``.
    """


_DefinitionLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag != "tag:yaml.org,2002:timestamp"
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def iter_definition_files(root: Union[str, Path]) -> Iterator[Path]:
    """Yield files under ``root`` depth-first in lexical name order.

    Files and directories of one level are visited interleaved by name, so a
    directory ``b/`` is walked between files ``a.yaml`` and ``c.yaml``. A
    ``root`` that is itself a file yields just that file.
    """
    root = Path(root)
    if not root.exists():
        raise FixtureLoadError(f"Source path not found: {root}")

    if not root.is_dir():
        yield root
        return

    for name in sorted(os.listdir(root)):
        path = root / name
        if path.is_dir():
            yield from iter_definition_files(path)
        else:
            yield path


def load_test_file(path: Union[str, Path]) -> TestFile:
    """Parse one definition file and stamp every case with its path.

    Raises:
        FixtureLoadError: If the file cannot be read or is not a valid
            definition document
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FixtureLoadError(f"{path}: {e}") from e

    try:
        document = yaml.load(text, Loader=_DefinitionLoader)
    except yaml.YAMLError as e:
        raise FixtureLoadError(f"{path}: {e}") from e

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise FixtureLoadError(f"{path}: expected a mapping with a 'cases' list")

    try:
        test_file = TestFile.model_validate(document)
    except ValidationError as e:
        raise FixtureLoadError(f"{path}: {e}") from e

    filename = str(path)
    test_file.filename = filename
    for case in test_file.cases:
        case.filename = filename

    return test_file


def load_tests(root: Union[str, Path]) -> List[TestFile]:
    """Load every definition file under ``root``, in walk order.

    Raises:
        FixtureLoadError: On the first file that cannot be loaded
    """
    tests = [load_test_file(path) for path in iter_definition_files(root)]
    logger.info(
        f"Loaded {sum(len(t.cases) for t in tests)} cases from {len(tests)} files under {root}"
    )
    return tests
