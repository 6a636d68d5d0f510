"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    └── golden/      Characterization of models, pricing and references

Usage:
    pytest tests/unit -v
    pytest tests/unit/golden -v
"""
import os
import sys

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "golden: characterization tests"
    )
