"""Shared fixtures: small analyzed projects written into temporary directories."""

import sys
import textwrap
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from scanners import GeneratorConfig, generate  # noqa: E402
from typeindex import load_program  # noqa: E402

SAMPLES_DIR = ROOT / "test_samples"
PETSTORE_DIR = SAMPLES_DIR / "petstore"


@pytest.fixture
def write_project(tmp_path):
    """Write ``{relative path: source}`` under a fresh project root."""
    def write(files, name="app"):
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, source in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return root
    return write


@pytest.fixture
def load_project(write_project):
    def load(files, name="app"):
        return load_program(write_project(files, name))
    return load


@pytest.fixture
def generate_document(write_project):
    """Generate the document of a written project and return it as a dict."""
    def run(files, config=None):
        root = write_project(files)
        generator, _ = generate(str(root), config or GeneratorConfig())
        return generator.to_dict()
    return run


@pytest.fixture(scope="session")
def petstore():
    generator, document = generate(str(PETSTORE_DIR), GeneratorConfig(title="Pet Store"))
    return generator, generator.to_dict()
