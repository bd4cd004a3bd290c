"""Pytest configuration and shared fixtures for Block-Canvas tests."""

import pytest

from block_canvas import CompositionManager


def granular(block_id, name, feeds_into=None, **extra):
    block = {"ID": block_id, "GranularBlockName": name}
    if feeds_into is not None:
        block["FeedsInto"] = feeds_into
    block.update(extra)
    return block


@pytest.fixture
def compute_document():
    """One high-level block with one intermediate and two linked blocks."""
    return {
        "SystemName": "Compute Stack",
        "HighestLevelBlocks": [
            {
                "HighestLevelBlockName": "Compute",
                "IntermediateBlocks": [
                    {
                        "IntermediateBlockName": "Core",
                        "GranularBlocks": [
                            granular(1, "A", feeds_into=[2]),
                            granular(2, "B"),
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def pipeline_document():
    """Two data areas and an Interaction area with cross-area references."""
    return {
        "SystemName": "Retrieval Pipeline",
        "HighestLevelBlocks": [
            {
                "HighestLevelBlockName": "Ingestion",
                "IntermediateBlocks": [
                    {
                        "IntermediateBlockName": "Sources",
                        "GranularBlocks": [
                            granular("crawl", "Crawler", feeds_into=["clean", "index"],
                                     Inputs=["urls"], Outputs=["pages"],
                                     PaperDescription="Fetches pages",
                                     ReferenceCitation="Doe et al. 2021"),
                            granular("clean", "Cleaner", feeds_into=["index"]),
                        ],
                    },
                    {
                        "IntermediateBlockName": "Empty Stage",
                        "GranularBlocks": [],
                    },
                ],
            },
            {
                "HighestLevelBlockName": "Search",
                "IntermediateBlocks": [
                    {
                        "IntermediateBlockName": "Index",
                        "GranularBlocks": [
                            granular("index", "Indexer", feeds_into=["rank", "missing"]),
                            granular("rank", "Ranker"),
                        ],
                    }
                ],
            },
            {
                "HighestLevelBlockName": "Interaction",
                "IntermediateBlocks": [
                    {
                        "IntermediateBlockName": "Filters",
                        "GranularBlocks": [
                            granular("facet", "Facet Filter", feeds_into=["rank"]),
                        ],
                    }
                ],
            },
        ],
    }


@pytest.fixture
def short_variant_document():
    """The compute document written with the alternate field names."""
    return {
        "PaperTitle": "Compute Stack",
        "HighBlocks": [
            {
                "HighBlockName": "Compute",
                "IntermediateBlocks": [
                    {
                        "IntermediateBlockName": "Core",
                        "GranularBlocks": [
                            granular(1, "A", feeds_into=[2]),
                            granular(2, "B"),
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def manager():
    """Empty composition manager."""
    return CompositionManager()
