"""
Pytest configuration and fixtures for Engram tests.
"""

import os
import sys
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

# Add project root to path so we can import the engram package
sys.path.insert(0, str(Path(__file__).parent.parent))

# -----------------------------------------------------------------------------
# Hypothesis Profiles for Test Performance
# -----------------------------------------------------------------------------
# Usage: HYPOTHESIS_PROFILE=fast pytest tests/
#
# Profiles:
#   fast   - 10 examples, minimal phases (quick iteration)
#   dev    - 50 examples, standard phases (default for local development)
#   ci     - 100 examples, all phases, no deadline (thorough CI testing)
# -----------------------------------------------------------------------------

settings.register_profile(
    "fast",
    max_examples=10,
    phases=[Phase.generate],
    verbosity=Verbosity.quiet,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=50,
    phases=[Phase.generate, Phase.target, Phase.shrink],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.generate, Phase.target, Phase.shrink, Phase.explain],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

from engram import EngramFile, EngramHeader, FileMetadata, MemoryNode


@pytest.fixture
def family_nodes():
    """A root with two children, tagged for index queries."""
    return [
        MemoryNode(id="root", content="Root node", tags=["important"]),
        MemoryNode(id="child-1", content="Child one", tags=["child"], parent_id="root"),
        MemoryNode(
            id="child-2",
            content="Child two",
            tags=["child", "important"],
            parent_id="root",
        ),
    ]


@pytest.fixture
def embedded_nodes():
    """Nodes with small embeddings for similarity search."""
    return [
        MemoryNode(id="a", content="Apple", embedding=[1, 0, 0]),
        MemoryNode(id="b", content="Banana", embedding=[0, 1, 0]),
        MemoryNode(id="c", content="Cherry", embedding=[0.9, 0.1, 0]),
    ]


@pytest.fixture
def sample_file(family_nodes):
    """A small file with a titled header."""
    return EngramFile(
        header=EngramHeader(version="1.0", metadata=FileMetadata(title="Test File")),
        nodes=family_nodes,
    )
